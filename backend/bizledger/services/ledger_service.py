# Overview: Ledger reconciliation; records entries and keeps the parent balance and status in step.

"""
Ledger Service

A ledger parent (expense, invoice, manufacturing order) carries a running
"paid" figure that must always equal the sum of its entries (payments,
production runs). Recording or deleting an entry and updating the parent
happen in ONE transaction:

1. validate the entry (amount > 0, required fields)
2. load the parent with SELECT ... FOR UPDATE
3. reject the entry if the parent status blocks it or the amount exceeds
   the remaining balance
4. insert/delete the entry, set paid, recompute status, commit

Parents carry a version_id column, so the UPDATE in step 4 only matches
the row version read in step 2. A concurrent writer makes it match nothing,
SQLAlchemy raises StaleDataError and run_with_retry replays steps 1-4
against fresh data. Over-payment is impossible even on SQLite, which
ignores FOR UPDATE.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

from flask import current_app

from ..extensions import db
from ..models import (
    Expense,
    ExpensePayment,
    Invoice,
    InvoicePayment,
    ManufacturingOrder,
    ProductionRun,
)
from ..money_utils import ZERO, round_money, round_quantity, to_decimal
from ..time_utils import today
from ..validation import (
    InvalidStateError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_fields,
    validate_payload,
)
from . import normalizer
from .concurrency import lock_for_update, run_in_transaction
from .status_service import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_IN_PROGRESS,
    STATUS_REJECTED,
    derive_order_status,
    derive_payment_status,
    resolve_expense_status,
)


@dataclass(frozen=True)
class LedgerBinding:
    """Describes one parent/entry pair and how its aggregate is kept."""
    name: str
    label: str
    parent_model: Any
    entry_model: Any
    parent_key: str
    amount_field: str
    total_field: str
    paid_field: str
    status_field: str
    date_field: str
    entry_policy: ModelValidationPolicy
    blocked_statuses: frozenset
    derive_status: Callable[[Any, Decimal, Decimal], str]
    normalize_parent: Callable[[dict], Any]
    normalize_entry: Callable[[dict], Any]
    rounding: Callable[[Any], Decimal] = round_money
    on_change: Callable[[Any], None] | None = None


@dataclass(frozen=True)
class LedgerResult:
    entry: Any
    parent: Any


def stamp_order_dates(order: ManufacturingOrder) -> None:
    if order.status == ORDER_IN_PROGRESS and order.start_date is None:
        order.start_date = today()
    if order.status == ORDER_COMPLETED and order.completion_date is None:
        order.completion_date = today()


EXPENSE_PAYMENTS = LedgerBinding(
    name="expense_payments",
    label="payment",
    parent_model=Expense,
    entry_model=ExpensePayment,
    parent_key="expense_id",
    amount_field="amount",
    total_field="total_amount",
    paid_field="paid_amount",
    status_field="status",
    date_field="payment_date",
    entry_policy=ModelValidationPolicy(
        writable_fields={"amount", "payment_date", "payment_method", "reference_number", "notes"},
        required_on_create={"amount", "reference_number"},
    ),
    blocked_statuses=frozenset({STATUS_REJECTED}),
    derive_status=lambda parent, total, paid: resolve_expense_status(parent.status, total, paid),
    normalize_parent=normalizer.normalize_expense,
    normalize_entry=normalizer.normalize_expense_payment,
)

INVOICE_PAYMENTS = LedgerBinding(
    name="invoice_payments",
    label="payment",
    parent_model=Invoice,
    entry_model=InvoicePayment,
    parent_key="invoice_id",
    amount_field="amount",
    total_field="total_amount",
    paid_field="paid_amount",
    status_field="payment_status",
    date_field="payment_date",
    entry_policy=ModelValidationPolicy(
        writable_fields={"amount", "payment_date", "payment_method", "reference_number", "notes"},
        required_on_create={"amount", "payment_method"},
    ),
    blocked_statuses=frozenset(),
    derive_status=lambda parent, total, paid: derive_payment_status(total, paid),
    normalize_parent=normalizer.normalize_invoice,
    normalize_entry=normalizer.normalize_invoice_payment,
)

PRODUCTION_RUNS = LedgerBinding(
    name="production_runs",
    label="production run",
    parent_model=ManufacturingOrder,
    entry_model=ProductionRun,
    parent_key="order_id",
    amount_field="quantity",
    total_field="batch_size",
    paid_field="produced_quantity",
    status_field="status",
    date_field="run_date",
    entry_policy=ModelValidationPolicy(
        writable_fields={"quantity", "run_date", "reference", "notes"},
        required_on_create={"quantity"},
    ),
    blocked_statuses=frozenset({ORDER_CANCELLED, ORDER_COMPLETED}),
    derive_status=lambda parent, total, produced: derive_order_status(parent.status, total, produced),
    normalize_parent=normalizer.normalize_manufacturing_order,
    normalize_entry=normalizer.normalize_production_run,
    rounding=round_quantity,
    on_change=stamp_order_dates,
)

BINDINGS = {b.name: b for b in (EXPENSE_PAYMENTS, INVOICE_PAYMENTS, PRODUCTION_RUNS)}


def _clean_entry(binding: LedgerBinding, parent_id: int, entry: dict | None) -> dict:
    payload = dict(entry or {})
    given_parent = payload.pop(binding.parent_key, None)
    if given_parent not in (None, "") and str(given_parent) != str(parent_id):
        raise ValidationError(f"{binding.parent_key} does not match the target record")

    values = validate_payload(
        model=binding.entry_model,
        payload=payload,
        policy=binding.entry_policy,
        partial=False,
    )
    require_fields(values, sorted(binding.entry_policy.required_on_create))
    amount = binding.rounding(values[binding.amount_field])
    if amount <= 0:
        raise ValidationError(f"{binding.amount_field.capitalize()} must be greater than zero")
    values[binding.amount_field] = amount
    if values.get(binding.date_field) is None:
        values[binding.date_field] = today()
    return values


def _load_parent(binding: LedgerBinding, parent_id: int):
    parent = lock_for_update(
        db.session.query(binding.parent_model).filter_by(id=parent_id)
    ).first()
    if not parent:
        raise NotFoundError(f"{binding.parent_model.__name__} {parent_id} not found")

    status = getattr(parent, binding.status_field)
    if status in binding.blocked_statuses:
        raise InvalidStateError(f"Cannot change {binding.label}s of a {status} {binding.parent_model.__name__.lower()}")
    return parent


def _apply_paid(binding: LedgerBinding, parent, total: Decimal, paid: Decimal) -> None:
    setattr(parent, binding.paid_field, paid)
    setattr(parent, binding.status_field, binding.derive_status(parent, total, paid))
    if binding.on_change:
        binding.on_change(parent)


def remaining_for(binding: LedgerBinding, parent) -> Decimal:
    total = to_decimal(getattr(parent, binding.total_field))
    paid = to_decimal(getattr(parent, binding.paid_field))
    return binding.rounding(max(ZERO, total - paid))


def record_ledger_entry(binding: LedgerBinding, parent_id: int, entry: dict) -> LedgerResult:
    """
    Insert a ledger entry and update its parent's paid figure and status.

    Raises:
        ValidationError: bad entry, amount <= 0, or amount above the remaining balance
        NotFoundError: parent does not exist
        InvalidStateError: parent status does not accept entries
    """
    def _op() -> LedgerResult:
        values = _clean_entry(binding, parent_id, entry)
        amount = values[binding.amount_field]

        parent = _load_parent(binding, parent_id)
        total = to_decimal(getattr(parent, binding.total_field))
        paid = to_decimal(getattr(parent, binding.paid_field))
        remaining = remaining_for(binding, parent)

        if remaining <= 0:
            raise ValidationError("Nothing remaining: this record is already settled")
        if amount > remaining:
            raise ValidationError(f"{binding.amount_field.capitalize()} {amount} exceeds the remaining {remaining}")

        row = binding.entry_model(**values)
        setattr(row, binding.parent_key, parent.id)
        db.session.add(row)
        _apply_paid(binding, parent, total, binding.rounding(paid + amount))

        db.session.commit()
        return LedgerResult(
            entry=binding.normalize_entry(row.to_dict()),
            parent=binding.normalize_parent(parent.to_dict()),
        )

    result = run_in_transaction(_op)
    current_app.logger.info(
        "Recorded %s %s on %s %s (status now %s)",
        binding.label,
        result.entry.id,
        binding.parent_model.__name__,
        parent_id,
        getattr(result.parent, binding.status_field),
    )
    return result


def delete_ledger_entry(binding: LedgerBinding, entry_id: int):
    """
    Remove an entry and roll its amount back out of the parent.

    Returns the normalized parent record.
    """
    def _op():
        row = db.session.query(binding.entry_model).filter_by(id=entry_id).first()
        if not row:
            raise NotFoundError(f"{binding.label.capitalize()} {entry_id} not found")

        parent = _load_parent(binding, getattr(row, binding.parent_key))
        total = to_decimal(getattr(parent, binding.total_field))
        paid = to_decimal(getattr(parent, binding.paid_field))
        amount = to_decimal(getattr(row, binding.amount_field))

        db.session.delete(row)
        _apply_paid(binding, parent, total, binding.rounding(max(ZERO, paid - amount)))

        db.session.commit()
        return binding.normalize_parent(parent.to_dict())

    parent = run_in_transaction(_op)
    current_app.logger.info(
        "Deleted %s %s from %s %s", binding.label, entry_id, binding.parent_model.__name__, parent.id
    )
    return parent


def list_entries(binding: LedgerBinding, parent_id: int) -> list:
    def _op():
        parent = db.session.query(binding.parent_model).filter_by(id=parent_id).first()
        if not parent:
            raise NotFoundError(f"{binding.parent_model.__name__} {parent_id} not found")
        rows = (
            db.session.query(binding.entry_model)
            .filter(getattr(binding.entry_model, binding.parent_key) == parent_id)
            .order_by(binding.entry_model.id.asc())
            .all()
        )
        return [binding.normalize_entry(r.to_dict()) for r in rows]

    return run_in_transaction(_op)
