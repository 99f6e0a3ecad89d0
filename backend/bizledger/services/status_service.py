# Overview: Status derivation and the allowed lifecycle transitions for every status-bearing entity.

from __future__ import annotations

from ..money_utils import ZERO, to_decimal
from ..validation import InvalidStateError


# Payment-derived statuses (expenses and invoices)
STATUS_PENDING = "Pending"
STATUS_PARTIAL = "Partial"
STATUS_PAID = "Paid"
PAYMENT_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_PAID)

# Explicit expense approval outcomes
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
EXPENSE_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_PARTIAL, STATUS_PAID)

# Leaves and employee requests
APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"
APPROVAL_COMPLETED = "completed"
APPROVAL_STATUSES = (APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED, APPROVAL_COMPLETED)

APPROVAL_TRANSITIONS = {
    APPROVAL_PENDING: {APPROVAL_APPROVED, APPROVAL_REJECTED},
    APPROVAL_APPROVED: {APPROVAL_COMPLETED},
    APPROVAL_REJECTED: set(),
    APPROVAL_COMPLETED: set(),
}

# Manufacturing orders
ORDER_PENDING = "pending"
ORDER_IN_PROGRESS = "in-progress"
ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_IN_PROGRESS, ORDER_COMPLETED, ORDER_CANCELLED)

ORDER_TRANSITIONS = {
    ORDER_PENDING: {ORDER_IN_PROGRESS, ORDER_CANCELLED},
    ORDER_IN_PROGRESS: {ORDER_COMPLETED, ORDER_CANCELLED},
    ORDER_COMPLETED: set(),
    ORDER_CANCELLED: set(),
}


def derive_payment_status(total, paid) -> str:
    """
    Pending / Partial / Paid from the amounts alone.

    A zero total is never Paid: there is nothing to settle, so it stays Pending.
    """
    total = to_decimal(total)
    paid = to_decimal(paid)
    if total > ZERO and paid >= total:
        return STATUS_PAID
    if paid > ZERO and paid < total:
        return STATUS_PARTIAL
    return STATUS_PENDING


def resolve_expense_status(stored: str | None, total, paid) -> str:
    """
    Combine an explicit approval decision with the payment-derived status.

    - Rejected always wins.
    - Approved is kept only while nothing has been paid.
    - Otherwise the derived Pending/Partial/Paid applies.
    """
    derived = derive_payment_status(total, paid)
    if stored == STATUS_REJECTED:
        return STATUS_REJECTED
    if stored == STATUS_APPROVED and derived == STATUS_PENDING:
        return STATUS_APPROVED
    return derived


def _check(transitions: dict, current: str, target: str, label: str) -> str:
    allowed = transitions.get(current)
    if allowed is None:
        raise InvalidStateError(f"Unknown {label} status: {current}")
    if target not in allowed:
        raise InvalidStateError(f"Cannot change {label} status from {current} to {target}")
    return target


def transition(current: str, target: str) -> str:
    """Validate a leave/request approval transition; returns the new status."""
    return _check(APPROVAL_TRANSITIONS, current, target, "approval")


def transition_order(current: str, target: str) -> str:
    """Validate a manufacturing order transition; returns the new status."""
    return _check(ORDER_TRANSITIONS, current, target, "order")


def derive_order_status(current: str, batch_size, produced) -> str:
    """
    Status implied by production progress.

    Cancelled and completed orders keep their status; otherwise any
    production moves the order to in-progress and reaching the batch size
    completes it.
    """
    if current in (ORDER_CANCELLED, ORDER_COMPLETED):
        return current
    batch_size = to_decimal(batch_size)
    produced = to_decimal(produced)
    if batch_size > ZERO and produced >= batch_size:
        return ORDER_COMPLETED
    if produced > ZERO:
        return ORDER_IN_PROGRESS
    return current
