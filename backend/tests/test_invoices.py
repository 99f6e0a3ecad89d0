"""
Tests for invoices: line totals on create/update, invoice-level discounts and receivables summary.
"""

from datetime import date
from decimal import Decimal

import pytest

from bizledger.services import invoice_service
from bizledger.validation import NotFoundError, ValidationError


class TestCreateInvoice:

    def test_totals_and_number(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload())

        assert record.invoice_number == "INV-2024-001"
        assert record.gross_amount == Decimal("200.00")
        assert record.discount_total == Decimal("20.00")
        assert record.subtotal == Decimal("180.00")
        assert record.tax_amount == Decimal("27.00")
        assert record.total_amount == Decimal("207.00")
        assert record.payment_status == "Pending"
        assert len(record.lines) == 1
        assert record.lines[0].line_total == Decimal("207.00")

    def test_lines_sum_to_total(self, db_session, invoice_payload):
        lines = [
            {"description": "A", "quantity": 3, "unit_price": "19.99", "discount_percent": 5},
            {"description": "B", "quantity": 1, "unit_price": 40, "tax_enabled": False},
            {"description": "C", "quantity": "0.5", "unit_price": 12, "discount_type": "fixed", "discount_amount": 1},
        ]
        record = invoice_service.create_invoice(invoice_payload(lines=lines))
        assert record.total_amount == sum(line.line_total for line in record.lines)
        assert [line.position for line in record.lines] == [0, 1, 2]

    def test_invoice_level_fixed_discount(self, db_session, invoice_payload):
        lines = [
            {"description": "A", "quantity": 1, "unit_price": 300},
            {"description": "B", "quantity": 1, "unit_price": 100},
        ]
        record = invoice_service.create_invoice(
            invoice_payload(lines=lines, tax_rate=0, discount_type="fixed", discount_value=40)
        )
        assert record.discount_total == Decimal("40.00")
        assert record.total_amount == Decimal("360.00")

    def test_at_least_one_line(self, db_session, invoice_payload):
        with pytest.raises(ValidationError, match="at least one line"):
            invoice_service.create_invoice(invoice_payload(lines=[]))

    def test_due_date_before_invoice_date(self, db_session, invoice_payload):
        with pytest.raises(ValidationError, match="Due date"):
            invoice_service.create_invoice(invoice_payload(due_date="2024-02-01"))

    def test_bad_line_rejected(self, db_session, invoice_payload):
        with pytest.raises(ValidationError, match="unit_price"):
            invoice_service.create_invoice(invoice_payload(lines=[{"description": "A", "quantity": 1}]))

    def test_tax_rate_above_hundred(self, db_session, invoice_payload):
        with pytest.raises(ValidationError, match="tax_rate"):
            invoice_service.create_invoice(invoice_payload(tax_rate=120))

    def test_unknown_discount_type(self, db_session, invoice_payload):
        with pytest.raises(ValidationError, match="discount_type"):
            invoice_service.create_invoice(invoice_payload(discount_type="coupon", discount_value=5))


class TestUpdateInvoice:

    def test_tax_change_recomputes_lines(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload())
        updated = invoice_service.update_invoice(record.id, {"tax_rate": 0})

        assert updated.tax_amount == Decimal("0.00")
        assert updated.total_amount == Decimal("180.00")
        assert updated.lines[0].line_vat == Decimal("0.00")

    def test_replace_lines(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload())
        updated = invoice_service.update_invoice(
            record.id, {"lines": [{"description": "New", "quantity": 1, "unit_price": 10}]}
        )
        assert [line.description for line in updated.lines] == ["New"]
        assert updated.total_amount == Decimal("11.50")

    def test_total_cannot_drop_below_paid(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload())
        invoice_service.record_payment(record.id, {"amount": 200, "payment_method": "Cash"})

        with pytest.raises(ValidationError, match="already paid"):
            invoice_service.update_invoice(record.id, {"tax_rate": 0})

        assert invoice_service.get_invoice(record.id).total_amount == Decimal("207.00")

    def test_clearing_percentage_discount(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload(
            tax_rate=0, discount_type="percentage", discount_value=10,
            lines=[{"description": "Widget", "quantity": 1, "unit_price": 100}],
        ))
        assert record.total_amount == Decimal("90.00")

        updated = invoice_service.update_invoice(record.id, {"discount_type": None, "discount_value": 0})

        assert updated.discount_type is None
        assert updated.discount_total == Decimal("0.00")
        assert updated.total_amount == Decimal("100.00")
        assert updated.lines[0].discount_percent == Decimal("0.00")

    def test_fixed_to_percentage_keeps_line_discounts(self, db_session, invoice_payload):
        lines = [
            {"description": "A", "quantity": 1, "unit_price": 300},
            {"description": "B", "quantity": 1, "unit_price": 100, "discount_percent": 5},
        ]
        record = invoice_service.create_invoice(
            invoice_payload(lines=lines, tax_rate=0, discount_type="fixed", discount_value=40)
        )
        assert record.total_amount == Decimal("360.00")

        switched = invoice_service.update_invoice(record.id, {"discount_type": "percentage", "discount_value": 25})
        assert switched.discount_total == Decimal("100.00")
        assert switched.total_amount == Decimal("300.00")
        assert [line.discount_type for line in switched.lines] == ["percentage", "percentage"]

        cleared = invoice_service.update_invoice(record.id, {"discount_type": None})
        assert [line.line_discount for line in cleared.lines] == [Decimal("0.00"), Decimal("5.00")]
        assert cleared.total_amount == Decimal("395.00")

    def test_header_discount_change_with_lines_untouched(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload())
        assert record.total_amount == Decimal("207.00")

        updated = invoice_service.update_invoice(record.id, {"discount_type": "percentage", "discount_value": 20})
        line = updated.lines[0]
        assert line.discount_percent == Decimal("20.00")
        assert line.entered_discount_percent == Decimal("10.00")
        assert updated.total_amount == Decimal("184.00")

        updated = invoice_service.update_invoice(record.id, {"discount_value": 5})
        assert updated.subtotal == Decimal("190.00")
        assert updated.total_amount == Decimal("218.50")
        assert updated.total_amount == sum(line.line_total for line in updated.lines)

        updated = invoice_service.update_invoice(record.id, {"discount_type": None, "discount_value": 0})
        assert updated.total_amount == Decimal("207.00")

    def test_line_percent_stored_clamped(self, db_session, invoice_payload):
        record = invoice_service.create_invoice(invoice_payload(
            tax_rate=0, lines=[{"description": "Widget", "quantity": 1, "unit_price": 100, "discount_percent": 150}],
        ))
        line = record.lines[0]
        assert line.discount_percent == Decimal("100.00")
        assert line.line_discount == Decimal("100.00")
        assert record.total_amount == Decimal("0.00")

    def test_missing_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_service.update_invoice(404, {"notes": "x"})


class TestInvoiceSummary:

    def test_overdue_and_outstanding(self, db_session, invoice_payload):
        overdue = invoice_service.create_invoice(invoice_payload())
        invoice_service.record_payment(overdue.id, {"amount": 7, "payment_method": "Cash"})

        settled = invoice_service.create_invoice(invoice_payload())
        invoice_service.record_payment(settled.id, {"amount": 207, "payment_method": "Bank Transfer"})

        invoice_service.create_invoice(invoice_payload(due_date="2024-05-01"))

        summary = invoice_service.invoice_summary(as_of=date(2024, 4, 15))

        assert summary["count"] == 3
        assert summary["total_amount"] == 621.0
        assert summary["paid_amount"] == 214.0
        assert summary["outstanding_amount"] == 407.0
        assert summary["overdue_count"] == 1
        assert summary["overdue_amount"] == 200.0
        assert summary["by_status"] == {"Pending": 1, "Partial": 1, "Paid": 1}
        assert summary["as_of"] == "2024-04-15"
