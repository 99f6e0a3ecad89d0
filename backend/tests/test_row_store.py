"""
Tests for the generic entity store (fetch/create/update/delete by entity type).
"""

from decimal import Decimal

import pytest

from bizledger.services import expense_service, row_store
from bizledger.validation import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


class TestEntityRegistry:

    def test_unknown_entity_type(self, db_session):
        with pytest.raises(ValidationError, match="Unknown entity type"):
            row_store.fetch_all("widgets")

    def test_unknown_filter(self, db_session):
        with pytest.raises(ValidationError, match="Unknown filter"):
            row_store.fetch_all("employees", favourite_colour="blue")


class TestCrud:

    def test_create_and_fetch_material(self, db_session):
        created = row_store.create_one("raw_materials", {
            "sku": "RM-SALT", "name_en": "Salt", "unit": "kg", "cost_per_unit": "2.5",
        })
        fetched = row_store.fetch_one("raw_materials", created.id)

        assert fetched == created
        assert fetched.cost_per_unit == Decimal("2.50")

    def test_duplicate_sku_conflicts(self, materials):
        with pytest.raises(ConflictError):
            row_store.create_one("raw_materials", {"sku": "RM-FLOUR", "name_en": "Flour again"})

    def test_update_and_filter(self, materials):
        flour, _ = materials
        row_store.update_one("raw_materials", flour.id, {"category": "Dry goods"})

        rows = row_store.fetch_all("raw_materials", category="Dry goods")
        assert [r.sku for r in rows] == ["RM-FLOUR"]

    def test_negative_stock_rejected(self, materials):
        flour, _ = materials
        with pytest.raises(ValidationError, match=">= 0"):
            row_store.update_one("raw_materials", flour.id, {"current_stock": -1})

    def test_missing_row(self, db_session):
        with pytest.raises(NotFoundError):
            row_store.fetch_one("employees", 999)
        with pytest.raises(NotFoundError):
            row_store.delete_one("raw_materials", 999)

    def test_workflow_entities_route_to_service(self, categories, expense_payload):
        record = row_store.create_one("expenses", expense_payload())
        assert record.expense_number == "EXP-2024-001"

        updated = row_store.update_one("expenses", record.id, {"notes": "checked"})
        assert updated.notes == "checked"

    def test_delete_expense_removes_payments(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        expense_service.record_payment(record.id, {"amount": 10, "reference_number": "R"})

        row_store.delete_one("expenses", record.id)
        assert row_store.fetch_all("expenses") == []
        assert row_store.fetch_all("expense_payments") == []


class TestLedgerEntities:
    """Payments and runs are only written through the ledger."""

    def test_create_payment_through_ledger(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        payment = row_store.create_one("expense_payments", {
            "expense_id": record.id, "amount": 25, "reference_number": "R",
        })

        assert payment.amount == Decimal("25.00")
        assert row_store.fetch_one("expenses", record.id).paid_amount == Decimal("25.00")

    def test_parent_id_required(self, db_session):
        with pytest.raises(ValidationError, match="expense_id"):
            row_store.create_one("expense_payments", {"amount": 25, "reference_number": "R"})

    def test_entries_cannot_be_edited(self, db_session):
        with pytest.raises(InvalidStateError):
            row_store.update_one("expense_payments", 1, {"amount": 5})

    def test_delete_payment_through_ledger(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        payment = expense_service.record_payment(record.id, {"amount": 25, "reference_number": "R"})

        row_store.delete_one("expense_payments", payment.entry.id)
        assert row_store.fetch_one("expenses", record.id).paid_amount == Decimal("0.00")
