"""
Tests for the expense workflow: categories, numbering, approval decisions and the summary.
"""

from datetime import date
from decimal import Decimal

import pytest

from bizledger.services import expense_service
from bizledger.validation import InvalidStateError, ValidationError


class TestCategories:

    def test_seed_is_idempotent(self, db_session):
        assert expense_service.seed_default_categories() == len(expense_service.DEFAULT_CATEGORIES)
        assert expense_service.seed_default_categories() == 0

    def test_defaults_listed_by_name(self, categories):
        names = [c.name for c in categories]
        assert names == sorted(names)
        assert "Other" in names
        assert all(c.is_default for c in categories)

    def test_create_custom_category(self, categories):
        created = expense_service.create_category({"name": "Travel"})
        assert created.is_default is False
        assert created.color == expense_service.DEFAULT_CATEGORY_COLOR

    def test_color_class(self):
        assert expense_service.color_class("blue") == "bg-blue-100 text-blue-700 border-blue-200"


class TestCreateExpense:

    def test_number_and_amounts(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload(tax_rate=15))

        assert record.expense_number == "EXP-2024-001"
        assert record.tax_amount == Decimal("15.00")
        assert record.total_amount == Decimal("115.00")
        assert record.paid_amount == Decimal("0.00")
        assert record.status == "Pending"

    def test_numbers_are_sequential_per_year(self, categories, expense_payload):
        first = expense_service.create_expense(expense_payload())
        second = expense_service.create_expense(expense_payload())
        next_year = expense_service.create_expense(expense_payload(expense_date="2025-01-02"))

        assert (first.expense_number, second.expense_number) == ("EXP-2024-001", "EXP-2024-002")
        assert next_year.expense_number == "EXP-2025-001"

    def test_default_tax_rate_from_config(self, categories, expense_payload):
        payload = expense_payload()
        del payload["tax_rate"]
        record = expense_service.create_expense(payload)
        assert record.tax_rate == Decimal("15.00")
        assert record.total_amount == Decimal("115.00")

    def test_missing_category_falls_back_to_other(self, categories, expense_payload):
        payload = expense_payload()
        del payload["category"]
        assert expense_service.create_expense(payload).category == "Other"

    def test_unknown_category_rejected(self, categories, expense_payload):
        with pytest.raises(ValidationError, match="Unknown expense category"):
            expense_service.create_expense(expense_payload(category="Yachts"))

    def test_required_fields(self, categories):
        with pytest.raises(ValidationError, match="Missing required fields"):
            expense_service.create_expense({"category": "Rent"})

    def test_negative_amount_rejected(self, categories, expense_payload):
        with pytest.raises(ValidationError, match=">= 0"):
            expense_service.create_expense(expense_payload(base_amount=-5))

    def test_unknown_field_rejected(self, categories, expense_payload):
        with pytest.raises(ValidationError, match="Field not allowed"):
            expense_service.create_expense(expense_payload(paid_amount=100))


class TestUpdateExpense:

    def test_amount_change_rederives_total(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        updated = expense_service.update_expense(record.id, {"base_amount": 200, "tax_rate": 10})

        assert updated.tax_amount == Decimal("20.00")
        assert updated.total_amount == Decimal("220.00")

    def test_total_cannot_drop_below_paid(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        expense_service.record_payment(record.id, {"amount": 80, "reference_number": "R"})

        with pytest.raises(ValidationError, match="already paid"):
            expense_service.update_expense(record.id, {"base_amount": 50})

    def test_raising_total_moves_paid_back_to_partial(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        expense_service.record_payment(record.id, {"amount": 100, "reference_number": "R"})

        updated = expense_service.update_expense(record.id, {"base_amount": 150})
        assert updated.status == "Partial"
        assert updated.remaining_amount == Decimal("50.00")

    def test_description_only(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        updated = expense_service.update_expense(record.id, {"description": "Water bill"})
        assert updated.description == "Water bill"
        assert updated.total_amount == record.total_amount


class TestApprovalDecisions:

    def test_approve_then_pay(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        approved = expense_service.approve_expense(record.id)
        assert approved.status == "Approved"

        paid = expense_service.record_payment(record.id, {"amount": 40, "reference_number": "R"})
        assert paid.parent.status == "Partial"

    def test_cannot_decide_twice(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        expense_service.reject_expense(record.id)

        with pytest.raises(InvalidStateError):
            expense_service.approve_expense(record.id)

    def test_cannot_decide_after_payment(self, categories, expense_payload):
        record = expense_service.create_expense(expense_payload())
        expense_service.record_payment(record.id, {"amount": 10, "reference_number": "R"})

        with pytest.raises(InvalidStateError):
            expense_service.reject_expense(record.id)


class TestExpenseSummary:

    def test_figures(self, categories, expense_payload):
        settled = expense_service.create_expense(expense_payload())
        expense_service.record_payment(settled.id, {"amount": 100, "reference_number": "R1"})

        partial = expense_service.create_expense(expense_payload(category="Rent", base_amount=300))
        expense_service.record_payment(partial.id, {"amount": 120, "reference_number": "R2"})

        rejected = expense_service.create_expense(expense_payload(expense_date="2024-02-10"))
        expense_service.reject_expense(rejected.id)

        summary = expense_service.expense_summary(as_of=date(2024, 3, 20))

        assert summary["count"] == 3
        assert summary["paid_total"] == 100.0
        assert summary["outstanding_total"] == 180.0
        assert summary["this_month_count"] == 2
        assert summary["by_status"]["Paid"] == 1
        assert summary["by_status"]["Partial"] == 1
        assert summary["by_status"]["Rejected"] == 1
        assert summary["by_category"] == {"Rent": 300.0, "Utilities": 100.0}

    def test_empty(self, db_session):
        summary = expense_service.expense_summary(as_of=date(2024, 3, 1))
        assert summary["count"] == 0
        assert summary["outstanding_total"] == 0.0
