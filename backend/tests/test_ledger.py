"""
Tests for ledger reconciliation: payments and production runs keep their
parent's paid figure and status in step, including under a concurrent writer.
"""

import dataclasses
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from bizledger.extensions import db
from bizledger.models import Expense, ExpensePayment, ManufacturingOrder, ProductionRun
from bizledger.services import (
    expense_service,
    invoice_service,
    ledger_service,
    manufacturing_service,
)
from bizledger.validation import InvalidStateError, NotFoundError, ValidationError


def _pay(expense_id, amount, ref="REF"):
    return expense_service.record_payment(
        expense_id, {"amount": amount, "payment_date": "2024-03-05", "reference_number": ref}
    )


@pytest.fixture
def expense(categories, expense_payload):
    return expense_service.create_expense(expense_payload())


@pytest.fixture
def order(materials):
    flour, sugar = materials
    recipe = manufacturing_service.create_recipe({
        "sku": "BREAD", "name_en": "Bread", "output_quantity": 10,
        "labor_cost": 20, "overhead_cost": 10,
        "lines": [{"material_id": flour.id, "quantity": 2}, {"material_id": sugar.id, "quantity": 1}],
    })
    return manufacturing_service.create_order({"recipe_id": recipe.id, "batch_size": 10})


class TestExpensePayments:
    """Expense payments move the expense through Partial to Paid."""

    def test_two_payments_settle_the_expense(self, expense):
        first = _pay(expense.id, 50, "R1")
        assert first.parent.paid_amount == Decimal("50.00")
        assert first.parent.status == "Partial"
        assert first.parent.remaining_amount == Decimal("50.00")

        second = _pay(expense.id, 50, "R2")
        assert second.parent.paid_amount == Decimal("100.00")
        assert second.parent.status == "Paid"

        with pytest.raises(ValidationError, match="Nothing remaining"):
            _pay(expense.id, 1, "R3")

    def test_overpayment_rejected(self, db_session, expense):
        with pytest.raises(ValidationError, match="exceeds the remaining"):
            _pay(expense.id, "100.01")

        stored = db_session.get(Expense, expense.id)
        assert stored.paid_amount == Decimal("0.00")
        assert db_session.query(ExpensePayment).count() == 0

    def test_amount_must_be_positive(self, expense):
        with pytest.raises(ValidationError, match="greater than zero"):
            _pay(expense.id, 0)

    def test_reference_required(self, expense):
        with pytest.raises(ValidationError, match="reference_number"):
            expense_service.record_payment(expense.id, {"amount": 10})

    def test_blank_reference_rejected(self, expense):
        with pytest.raises(ValidationError, match="Missing required fields: reference_number"):
            expense_service.record_payment(expense.id, {"amount": 10, "reference_number": "   "})
        assert expense_service.list_payments(expense.id) == []

    def test_unknown_payment_method(self, expense):
        with pytest.raises(ValidationError, match="Invalid payment method"):
            expense_service.record_payment(
                expense.id, {"amount": 10, "reference_number": "R", "payment_method": "Barter"}
            )

    def test_rejected_expense_blocks_payments(self, expense):
        expense_service.reject_expense(expense.id)
        with pytest.raises(InvalidStateError) as exc:
            _pay(expense.id, 10)
        assert exc.value.status_code == 409

    def test_missing_expense(self, db_session):
        with pytest.raises(NotFoundError):
            _pay(999, 10)

    def test_payment_date_defaults_to_today(self, expense):
        result = expense_service.record_payment(expense.id, {"amount": 10, "reference_number": "R"})
        assert result.entry.payment_date is not None

    def test_delete_rolls_paid_back(self, expense):
        first = _pay(expense.id, 60, "R1")
        _pay(expense.id, 40, "R2")

        parent = expense_service.delete_payment(first.entry.id)
        assert parent.paid_amount == Decimal("40.00")
        assert parent.status == "Partial"
        assert [p.reference_number for p in expense_service.list_payments(expense.id)] == ["R2"]

    def test_delete_last_payment_returns_to_pending(self, expense):
        payment = _pay(expense.id, 30)
        parent = expense_service.delete_payment(payment.entry.id)
        assert parent.paid_amount == Decimal("0.00")
        assert parent.status == "Pending"

    def test_paid_equals_sum_of_payments(self, db_session, expense):
        for amount in (10, "12.35", 7):
            _pay(expense.id, amount)

        stored = db_session.get(Expense, expense.id)
        total = sum(p.amount for p in db_session.query(ExpensePayment).filter_by(expense_id=expense.id))
        assert stored.paid_amount == total == Decimal("29.35")

    def test_mismatched_parent_id_rejected(self, expense):
        with pytest.raises(ValidationError, match="does not match"):
            expense_service.record_payment(
                expense.id, {"expense_id": expense.id + 1, "amount": 5, "reference_number": "R"}
            )


class TestInvoicePayments:

    def test_partial_then_paid(self, db_session, invoice_payload):
        invoice = invoice_service.create_invoice(invoice_payload())
        assert invoice.total_amount == Decimal("207.00")

        result = invoice_service.record_payment(invoice.id, {"amount": 100, "payment_method": "Cash"})
        assert result.parent.payment_status == "Partial"

        result = invoice_service.record_payment(invoice.id, {"amount": 107, "payment_method": "Cash"})
        assert result.parent.payment_status == "Paid"
        assert result.parent.remaining_amount == Decimal("0.00")

    def test_payment_method_required(self, db_session, invoice_payload):
        invoice = invoice_service.create_invoice(invoice_payload())
        with pytest.raises(ValidationError, match="payment_method"):
            invoice_service.record_payment(invoice.id, {"amount": 10})

    def test_delete_payment(self, db_session, invoice_payload):
        invoice = invoice_service.create_invoice(invoice_payload())
        payment = invoice_service.record_payment(invoice.id, {"amount": 207, "payment_method": "Cash"})

        parent = invoice_service.delete_payment(payment.entry.id)
        assert parent.payment_status == "Pending"
        assert parent.paid_amount == Decimal("0.00")


class TestProductionRuns:
    """Production runs are the manufacturing order's ledger."""

    def test_runs_progress_and_complete_order(self, order):
        assert order.status == "pending"

        first = manufacturing_service.record_run(order.id, {"quantity": 4})
        assert first.parent.status == "in-progress"
        assert first.parent.start_date is not None
        assert first.parent.produced_quantity == Decimal("4.000")

        second = manufacturing_service.record_run(order.id, {"quantity": 6})
        assert second.parent.status == "completed"
        assert second.parent.completion_date is not None
        assert second.parent.remaining_quantity == Decimal("0")

    def test_completed_order_blocks_runs(self, order):
        manufacturing_service.record_run(order.id, {"quantity": 10})
        with pytest.raises(InvalidStateError):
            manufacturing_service.record_run(order.id, {"quantity": 1})

    def test_cancelled_order_blocks_runs(self, order):
        manufacturing_service.set_order_status(order.id, "cancelled")
        with pytest.raises(InvalidStateError):
            manufacturing_service.record_run(order.id, {"quantity": 1})

    def test_overproduction_rejected(self, order):
        with pytest.raises(ValidationError, match="exceeds the remaining"):
            manufacturing_service.record_run(order.id, {"quantity": "10.001"})

    def test_quantities_rounded_to_three_places(self, db_session, order):
        result = manufacturing_service.record_run(order.id, {"quantity": "1.2345"})
        assert result.entry.quantity == Decimal("1.235")
        assert db_session.get(ManufacturingOrder, order.id).produced_quantity == Decimal("1.235")

    def test_delete_run(self, db_session, order):
        run = manufacturing_service.record_run(order.id, {"quantity": 3})
        parent = manufacturing_service.delete_run(run.entry.id)

        assert parent.produced_quantity == Decimal("0.000")
        assert db_session.query(ProductionRun).count() == 0

    def test_delete_unknown_run(self, db_session):
        with pytest.raises(NotFoundError):
            manufacturing_service.delete_run(12345)


class TestConcurrentWriter:
    """
    A second writer commits a payment between our read and our commit.

    The parent's version check turns the lost update into a retry, and the
    retry re-validates against the other writer's figures.
    """

    def _expense(self):
        row = Expense(
            expense_number="EXP-2024-001",
            expense_date=date(2024, 3, 1),
            category="Other",
            description="Shared bill",
            base_amount=Decimal("100.00"),
            tax_amount=Decimal("0.00"),
            total_amount=Decimal("100.00"),
            paid_amount=Decimal("0.00"),
            status="Pending",
        )
        db.session.add(row)
        db.session.commit()
        return row.id

    def _binding_with_interleaved_payment(self, expense_id):
        calls = {"count": 0}

        def interleave(parent):
            calls["count"] += 1
            if calls["count"] > 1:
                return
            with Session(db.engine) as other:
                competing = other.get(Expense, expense_id)
                competing.paid_amount = Decimal("60.00")
                competing.status = "Partial"
                other.add(ExpensePayment(
                    expense_id=expense_id,
                    amount=Decimal("60.00"),
                    payment_date=date(2024, 3, 2),
                    reference_number="CONCURRENT",
                ))
                other.commit()

        return dataclasses.replace(ledger_service.EXPENSE_PAYMENTS, on_change=interleave), calls

    def test_retry_applies_payment_on_top_of_concurrent_one(self, file_app):
        expense_id = self._expense()
        binding, calls = self._binding_with_interleaved_payment(expense_id)

        result = ledger_service.record_ledger_entry(
            binding, expense_id, {"amount": 30, "reference_number": "OURS"}
        )

        assert calls["count"] == 2
        assert result.parent.paid_amount == Decimal("90.00")
        assert result.parent.status == "Partial"
        payments = db.session.query(ExpensePayment).filter_by(expense_id=expense_id).all()
        assert sorted(p.reference_number for p in payments) == ["CONCURRENT", "OURS"]

    def test_retry_rejects_payment_that_no_longer_fits(self, file_app):
        expense_id = self._expense()
        binding, _ = self._binding_with_interleaved_payment(expense_id)

        with pytest.raises(ValidationError, match="exceeds the remaining"):
            ledger_service.record_ledger_entry(
                binding, expense_id, {"amount": 60, "reference_number": "OURS"}
            )

        db.session.rollback()
        stored = db.session.get(Expense, expense_id)
        assert stored.paid_amount == Decimal("60.00")
        assert db.session.query(ExpensePayment).count() == 1
