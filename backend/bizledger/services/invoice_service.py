# Overview: Invoice workflows; typed lines, discount and VAT totals, numbering, payments and receivables summary.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoiceLine
from ..money_utils import ZERO, round_money, to_decimal
from ..time_utils import today
from ..validation import ModelValidationPolicy, ValidationError, require_date_order
from . import ledger_service, row_store
from .concurrency import run_in_transaction
from .identifier_service import INVOICE_PREFIX, allocate_identifier
from .normalizer import parse_invoice_lines
from .status_service import PAYMENT_STATUSES, derive_payment_status
from .totals_service import (
    VALID_DISCOUNT_TYPES,
    apply_global_discount,
    compute_invoice_totals,
)


INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name", "customer_vat_number", "invoice_date", "due_date",
        "tax_rate", "discount_type", "discount_value", "notes",
    },
    required_on_create={"customer_name", "invoice_date"},
    non_negative_fields={"tax_rate", "discount_value"},
)


def _split_lines(payload: dict | None) -> tuple[dict, list | None, bool]:
    header = dict(payload or {})
    has_lines = "lines" in header
    return header, header.pop("lines", None), has_lines


def _clean_discount(values: dict) -> None:
    if "discount_type" in values:
        discount_type = values["discount_type"] or None
        if discount_type is not None and discount_type not in VALID_DISCOUNT_TYPES:
            raise ValidationError(f"discount_type must be one of {', '.join(VALID_DISCOUNT_TYPES)}")
        values["discount_type"] = discount_type


def _apply_totals(invoice: Invoice, items: list) -> None:
    """Recompute every derived figure from the entered lines and replace the line rows."""
    if not items:
        raise ValidationError("An invoice needs at least one line")
    rate = to_decimal(invoice.tax_rate)
    if rate > 100:
        raise ValidationError("tax_rate must be between 0 and 100")

    applied = apply_global_discount(items, invoice.discount_type, invoice.discount_value)
    totals = compute_invoice_totals(applied, rate)

    invoice.lines = [
        InvoiceLine(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_type=applied_line.discount_type,
            discount_percent=applied_line.discount_percent,
            discount_amount=applied_line.discount_amount,
            entered_discount_type=item.discount_type,
            entered_discount_percent=item.discount_percent,
            entered_discount_amount=item.discount_amount,
            tax_enabled=item.tax_enabled,
            line_gross=line.line_gross,
            line_discount=line.line_discount,
            price_after_discount=line.price_after_discount,
            line_subtotal=line.line_subtotal,
            line_vat=line.line_vat,
            line_total=line.line_total,
        )
        for position, (item, applied_line, line) in enumerate(zip(items, applied, totals.lines))
    ]
    invoice.gross_amount = totals.gross_amount
    invoice.discount_total = totals.discount_total
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total_amount = totals.total_amount

    paid = to_decimal(invoice.paid_amount)
    if totals.total_amount < paid:
        raise ValidationError(
            f"Total {totals.total_amount} cannot be less than the amount already paid ({round_money(paid)})"
        )
    invoice.payment_status = derive_payment_status(totals.total_amount, paid)


def _stored_items(invoice: Invoice) -> list:
    # Lines come back with the discount the user entered; the invoice-level discount re-applies on top.
    return parse_invoice_lines([
        {
            "description": line.description,
            "quantity": line.quantity,
            "unit_price": line.unit_price,
            "discount_type": line.entered_discount_type,
            "discount_percent": line.entered_discount_percent,
            "discount_amount": line.entered_discount_amount,
            "tax_enabled": line.tax_enabled,
        }
        for line in invoice.lines
    ])


def _scan_invoice_numbers(year: int):
    def _scan():
        return [
            number
            for (number,) in db.session.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.ilike(f"{INVOICE_PREFIX}-{year}-%"))
            .all()
        ]
    return _scan


def create_invoice(payload: dict | None):
    header, raw_lines, _ = _split_lines(payload)

    def _op():
        values = row_store.validate("invoices", header, partial=False, policy=INVOICE_POLICY)
        _clean_discount(values)
        require_date_order(values["invoice_date"], values.get("due_date"), label="Due date")
        items = parse_invoice_lines(raw_lines)

        if values.get("tax_rate") is None:
            values["tax_rate"] = to_decimal(current_app.config["DEFAULT_TAX_RATE_PERCENT"])
        if values.get("discount_value") is None:
            values["discount_value"] = ZERO

        invoice_date: date = values["invoice_date"]
        invoice = Invoice(paid_amount=ZERO, **values)
        _apply_totals(invoice, items)
        invoice.invoice_number = allocate_identifier(
            INVOICE_PREFIX, invoice_date.year, _scan_invoice_numbers(invoice_date.year)
        )
        db.session.add(invoice)
        db.session.commit()
        return row_store.to_record("invoices", invoice)

    record = run_in_transaction(_op)
    current_app.logger.info("Created invoice %s (%s)", record.invoice_number, record.total_amount)
    return record


def update_invoice(invoice_id: int, payload: dict | None):
    """
    Patch header fields and optionally replace the lines.

    Totals are always recomputed, so a tax rate or discount change on the
    header is reflected in every line.
    """
    header, raw_lines, has_lines = _split_lines(payload)

    def _op():
        patch = row_store.validate("invoices", header, partial=True, policy=INVOICE_POLICY)
        _clean_discount(patch)
        invoice = row_store.get_row("invoices", invoice_id, lock=True)
        items = parse_invoice_lines(raw_lines) if has_lines else _stored_items(invoice)

        for key, value in patch.items():
            setattr(invoice, key, value)
        if invoice.tax_rate is None:
            invoice.tax_rate = to_decimal(current_app.config["DEFAULT_TAX_RATE_PERCENT"])
        if invoice.discount_value is None:
            invoice.discount_value = ZERO
        require_date_order(invoice.invoice_date, invoice.due_date, label="Due date")

        _apply_totals(invoice, items)
        db.session.commit()
        return row_store.to_record("invoices", invoice)

    return run_in_transaction(_op)


def get_invoice(invoice_id: int):
    return row_store.fetch_one("invoices", invoice_id)


# =============================================================================
# PAYMENTS
# =============================================================================

def record_payment(invoice_id: int, payload: dict | None):
    return ledger_service.record_ledger_entry(ledger_service.INVOICE_PAYMENTS, invoice_id, payload)


def list_payments(invoice_id: int) -> list:
    return ledger_service.list_entries(ledger_service.INVOICE_PAYMENTS, invoice_id)


def delete_payment(payment_id: int):
    return ledger_service.delete_ledger_entry(ledger_service.INVOICE_PAYMENTS, payment_id)


# =============================================================================
# SUMMARY
# =============================================================================

def invoice_summary(*, as_of: date | None = None) -> dict:
    """Receivables: totals, what is still outstanding, and what is overdue as of a date."""
    as_of = as_of or today()
    records = row_store.fetch_all("invoices")

    by_status = {s: 0 for s in PAYMENT_STATUSES}
    total = paid = outstanding = overdue_amount = ZERO
    overdue_count = 0
    for record in records:
        by_status[record.payment_status] += 1
        total += record.total_amount
        paid += record.paid_amount
        outstanding += record.remaining_amount
        if record.is_overdue(as_of):
            overdue_count += 1
            overdue_amount += record.remaining_amount

    return {
        "count": len(records),
        "total_amount": float(round_money(total)),
        "paid_amount": float(round_money(paid)),
        "outstanding_amount": float(round_money(outstanding)),
        "overdue_count": overdue_count,
        "overdue_amount": float(round_money(overdue_amount)),
        "by_status": by_status,
        "as_of": as_of.isoformat(),
    }
