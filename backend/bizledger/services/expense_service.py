# Overview: Expense workflows; categories, numbering, tax amounts, approval and payments.

"""
Expense Service

Expenses are payables. Their totals are derived (base + tax) at save time,
their number is allocated from the EXP sequence of the expense year, and
paid_amount only ever moves through the ledger service.

Status precedence:
- Rejected always wins and blocks further payments
- Approved is kept until the first payment, then Partial/Paid take over
- otherwise Pending/Partial/Paid follow the amounts
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Expense, ExpenseCategory
from ..money_utils import ZERO, round_money, to_decimal
from ..time_utils import today
from ..validation import InvalidStateError, ModelValidationPolicy, ValidationError
from . import ledger_service, row_store
from .concurrency import run_in_transaction
from .identifier_service import EXPENSE_PREFIX, allocate_identifier
from .status_service import (
    STATUS_APPROVED,
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_PENDING,
    STATUS_REJECTED,
    resolve_expense_status,
)
from .totals_service import compute_expense_amounts


PAYMENT_METHODS = ("Cash", "Credit Card", "Bank Transfer", "Check")

DEFAULT_CATEGORY_COLOR = "bg-gray-100 text-gray-700 border-gray-200"

DEFAULT_CATEGORIES = (
    ("Office Supplies", "blue"),
    ("Transportation", "green"),
    ("Utilities", "yellow"),
    ("Marketing", "purple"),
    ("Maintenance", "orange"),
    ("Salaries", "pink"),
    ("Rent", "cyan"),
    ("Other", "gray"),
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "expense_date", "category", "description", "base_amount", "tax_rate",
        "tax_amount", "payment_method", "paid_to", "receipt_number", "notes",
    },
    required_on_create={"expense_date", "description", "base_amount"},
    non_negative_fields={"base_amount", "tax_rate", "tax_amount"},
)

AMOUNT_FIELDS = ("base_amount", "tax_rate", "tax_amount")


def color_class(color: str) -> str:
    """Tailwind badge classes for a colour name ("blue" -> bg-blue-100 ...)."""
    return f"bg-{color}-100 text-{color}-700 border-{color}-200"


# =============================================================================
# CATEGORIES
# =============================================================================

def seed_default_categories() -> int:
    """Insert any missing default categories. Returns how many were created."""
    def _op() -> int:
        existing = {name for (name,) in db.session.query(ExpenseCategory.name).all()}
        created = 0
        for name, color in DEFAULT_CATEGORIES:
            if name in existing:
                continue
            db.session.add(ExpenseCategory(name=name, color=color_class(color), is_default=True))
            created += 1
        db.session.commit()
        return created

    created = run_in_transaction(_op)
    if created:
        current_app.logger.info("Seeded %s default expense categories", created)
    return created


def list_categories() -> list:
    return row_store.fetch_all("expense_categories")


def create_category(payload: dict | None):
    def _op():
        values = row_store.validate("expense_categories", payload, partial=False)
        values.setdefault("color", DEFAULT_CATEGORY_COLOR)
        if not values.get("color"):
            values["color"] = DEFAULT_CATEGORY_COLOR
        row = ExpenseCategory(is_default=False, **values)
        db.session.add(row)
        db.session.commit()
        return row_store.to_record("expense_categories", row)

    return run_in_transaction(_op)


def _check_category(name: str | None) -> str:
    name = name or "Other"
    known = db.session.query(ExpenseCategory.id).filter_by(name=name).first()
    if known is None:
        raise ValidationError(f"Unknown expense category: {name}")
    return name


def _check_payment_method(method: str | None) -> None:
    if method and method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {', '.join(PAYMENT_METHODS)}")


# =============================================================================
# EXPENSES
# =============================================================================

def _scan_expense_numbers(year: int):
    def _scan():
        return [
            number
            for (number,) in db.session.query(Expense.expense_number)
            .filter(Expense.expense_number.ilike(f"{EXPENSE_PREFIX}-{year}-%"))
            .all()
        ]
    return _scan


def create_expense(payload: dict | None):
    """Validate, derive tax/total, allocate EXP-YYYY-NNN and store."""
    def _op():
        values = row_store.validate("expenses", payload, partial=False, policy=EXPENSE_POLICY)
        values["category"] = _check_category(values.get("category"))
        _check_payment_method(values.get("payment_method"))

        rate = values.get("tax_rate")
        if rate is None:
            rate = current_app.config["DEFAULT_TAX_RATE_PERCENT"]
        amounts = compute_expense_amounts(values["base_amount"], rate, values.get("tax_amount"))

        expense_date: date = values["expense_date"]
        number = allocate_identifier(EXPENSE_PREFIX, expense_date.year, _scan_expense_numbers(expense_date.year))

        values.update(
            expense_number=number,
            base_amount=amounts.base_amount,
            tax_rate=amounts.tax_rate,
            tax_amount=amounts.tax_amount,
            total_amount=amounts.total_amount,
            paid_amount=ZERO,
            status=STATUS_PENDING,
        )
        row = Expense(**values)
        db.session.add(row)
        db.session.commit()
        return row_store.to_record("expenses", row)

    record = run_in_transaction(_op)
    current_app.logger.info("Created expense %s (%s)", record.expense_number, record.total_amount)
    return record


def update_expense(expense_id: int, payload: dict | None):
    """
    Patch an expense. Amount changes re-derive tax and total; the new total
    may not drop below what has already been paid.
    """
    def _op():
        patch = row_store.validate("expenses", payload, partial=True, policy=EXPENSE_POLICY)
        row = row_store.get_row("expenses", expense_id, lock=True)

        if "category" in patch:
            patch["category"] = _check_category(patch["category"])
        if "payment_method" in patch:
            _check_payment_method(patch["payment_method"])
        if "expense_date" in patch and patch["expense_date"] is None:
            raise ValidationError("expense_date cannot be null")

        if any(k in patch for k in AMOUNT_FIELDS):
            base = patch.get("base_amount", row.base_amount)
            rate = patch.get("tax_rate", row.tax_rate)
            if rate is None:
                rate = current_app.config["DEFAULT_TAX_RATE_PERCENT"]
            # Changing base or rate without an explicit tax re-derives it
            amounts = compute_expense_amounts(base, rate, patch.get("tax_amount"))
            if amounts.total_amount < to_decimal(row.paid_amount):
                raise ValidationError(
                    f"Total {amounts.total_amount} cannot be less than the amount already paid ({row.paid_amount})"
                )
            patch.update(
                base_amount=amounts.base_amount,
                tax_rate=amounts.tax_rate,
                tax_amount=amounts.tax_amount,
                total_amount=amounts.total_amount,
            )

        for key, value in patch.items():
            setattr(row, key, value)
        row.status = resolve_expense_status(row.status, row.total_amount, row.paid_amount)
        db.session.commit()
        return row_store.to_record("expenses", row)

    return run_in_transaction(_op)


def _decide(expense_id: int, target: str):
    def _op():
        row = row_store.get_row("expenses", expense_id, lock=True)
        if row.status != STATUS_PENDING or to_decimal(row.paid_amount) > 0:
            raise InvalidStateError(f"Cannot mark a {row.status} expense as {target}")
        row.status = target
        db.session.commit()
        return row_store.to_record("expenses", row)

    record = run_in_transaction(_op)
    current_app.logger.info("Expense %s marked %s", record.expense_number, target)
    return record


def approve_expense(expense_id: int):
    return _decide(expense_id, STATUS_APPROVED)


def reject_expense(expense_id: int):
    return _decide(expense_id, STATUS_REJECTED)


# =============================================================================
# PAYMENTS
# =============================================================================

def record_payment(expense_id: int, payload: dict | None):
    """Returns LedgerResult(entry=payment record, parent=expense record)."""
    _check_payment_method((payload or {}).get("payment_method"))
    return ledger_service.record_ledger_entry(ledger_service.EXPENSE_PAYMENTS, expense_id, payload)


def list_payments(expense_id: int) -> list:
    return ledger_service.list_entries(ledger_service.EXPENSE_PAYMENTS, expense_id)


def delete_payment(payment_id: int):
    return ledger_service.delete_ledger_entry(ledger_service.EXPENSE_PAYMENTS, payment_id)


# =============================================================================
# SUMMARY
# =============================================================================

def expense_summary(*, as_of: date | None = None) -> dict:
    """
    Dashboard figures over all expenses.

    paid_total sums fully paid expenses; outstanding_total sums what is
    still owed on Pending, Approved and Partial ones.
    """
    as_of = as_of or today()
    records = row_store.fetch_all("expenses")

    by_status = {s: 0 for s in (STATUS_PENDING, STATUS_APPROVED, STATUS_PARTIAL, STATUS_PAID, STATUS_REJECTED)}
    by_category: dict[str, float] = {}
    paid_total = ZERO
    outstanding_total = ZERO
    month_count = 0

    for record in records:
        by_status[record.status] = by_status.get(record.status, 0) + 1
        if record.status == STATUS_REJECTED:
            continue
        by_category[record.category] = by_category.get(record.category, ZERO) + record.total_amount
        if record.status == STATUS_PAID:
            paid_total += record.total_amount
        else:
            outstanding_total += record.remaining_amount
        if record.expense_date and (record.expense_date.year, record.expense_date.month) == (as_of.year, as_of.month):
            month_count += 1

    return {
        "count": len(records),
        "paid_total": float(round_money(paid_total)),
        "outstanding_total": float(round_money(outstanding_total)),
        "this_month_count": month_count,
        "by_status": by_status,
        "by_category": {k: float(round_money(v)) for k, v in sorted(by_category.items())},
    }
