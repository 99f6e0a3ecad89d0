"""
Tests for status derivation and the approval / manufacturing order state machines.
"""

from decimal import Decimal

import pytest

from bizledger.services.status_service import (
    APPROVAL_STATUSES,
    derive_order_status,
    derive_payment_status,
    resolve_expense_status,
    transition,
    transition_order,
)
from bizledger.validation import InvalidStateError


class TestPaymentStatus:

    @pytest.mark.parametrize("total,paid,expected", [
        (100, 0, "Pending"),
        (100, 50, "Partial"),
        (100, 100, "Paid"),
        (100, 120, "Paid"),
        (0, 0, "Pending"),
        (0, 10, "Pending"),
        ("100.00", "99.99", "Partial"),
    ])
    def test_derived_from_amounts(self, total, paid, expected):
        assert derive_payment_status(total, paid) == expected

    def test_always_one_of_three(self):
        for total in (0, 1, 100):
            for paid in (0, 1, 50, 100, 200):
                assert derive_payment_status(Decimal(total), Decimal(paid)) in {"Pending", "Partial", "Paid"}


class TestExpenseStatusPrecedence:
    """Explicit approval decisions versus amount-derived status."""

    def test_rejected_always_wins(self):
        assert resolve_expense_status("Rejected", 100, 100) == "Rejected"

    def test_approved_kept_while_unpaid(self):
        assert resolve_expense_status("Approved", 100, 0) == "Approved"

    def test_payment_overrides_approved(self):
        assert resolve_expense_status("Approved", 100, 40) == "Partial"
        assert resolve_expense_status("Approved", 100, 100) == "Paid"

    def test_stale_stored_status_corrected(self):
        assert resolve_expense_status("Pending", 100, 100) == "Paid"
        assert resolve_expense_status("Paid", 100, 0) == "Pending"


class TestApprovalMachine:

    def test_allowed_transitions(self):
        assert transition("pending", "approved") == "approved"
        assert transition("pending", "rejected") == "rejected"
        assert transition("approved", "completed") == "completed"

    @pytest.mark.parametrize("current,target", [
        ("rejected", "approved"),
        ("completed", "pending"),
        ("pending", "completed"),
        ("approved", "rejected"),
        ("approved", "pending"),
    ])
    def test_disallowed_transitions(self, current, target):
        with pytest.raises(InvalidStateError):
            transition(current, target)

    def test_unknown_current_status(self):
        with pytest.raises(InvalidStateError, match="Unknown"):
            transition("archived", "approved")

    def test_terminal_states_have_no_exit(self):
        for target in APPROVAL_STATUSES:
            with pytest.raises(InvalidStateError):
                transition("rejected", target)
            with pytest.raises(InvalidStateError):
                transition("completed", target)


class TestOrderMachine:

    def test_lifecycle(self):
        assert transition_order("pending", "in-progress") == "in-progress"
        assert transition_order("in-progress", "completed") == "completed"
        assert transition_order("pending", "cancelled") == "cancelled"
        assert transition_order("in-progress", "cancelled") == "cancelled"

    def test_completed_cannot_be_cancelled(self):
        with pytest.raises(InvalidStateError):
            transition_order("completed", "cancelled")

    def test_pending_cannot_jump_to_completed(self):
        with pytest.raises(InvalidStateError):
            transition_order("pending", "completed")

    def test_status_from_production(self):
        assert derive_order_status("pending", 100, 0) == "pending"
        assert derive_order_status("pending", 100, 10) == "in-progress"
        assert derive_order_status("in-progress", 100, 100) == "completed"
        assert derive_order_status("cancelled", 100, 100) == "cancelled"
