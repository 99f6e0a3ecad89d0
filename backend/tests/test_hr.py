"""
Tests for HR: employees, leaves and employee requests with their approval flow.
"""

from decimal import Decimal

import pytest

from bizledger.services import hr_service, row_store
from bizledger.validation import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def _leave(employee, **overrides):
    payload = {
        "employee_id": employee.id,
        "leave_type": "annual",
        "start_date": "2024-07-01",
        "end_date": "2024-07-05",
        "reason": "Family trip",
    }
    payload.update(overrides)
    return hr_service.create_leave(payload)


def _request(employee, **overrides):
    payload = {
        "employee_id": employee.id,
        "request_type": "loan",
        "amount": 1200,
        "repayment_months": 12,
        "description": "Car repair",
        "requested_date": "2024-05-10",
    }
    payload.update(overrides)
    return hr_service.create_request(payload)


class TestEmployees:

    def test_create_and_list(self, db_session):
        row_store.create_one("employees", {"employee_code": "E-002", "name_en": "Omar", "department": "Sales"})
        row_store.create_one("employees", {"employee_code": "E-001", "name_en": "Lina"})

        codes = [e.employee_code for e in row_store.fetch_all("employees")]
        assert codes == ["E-001", "E-002"]

    def test_duplicate_code_conflicts(self, employee):
        with pytest.raises(ConflictError):
            row_store.create_one("employees", {"employee_code": "E-001", "name_en": "Copy"})

    def test_delete_without_history(self, employee):
        hr_service.delete_employee(employee.id)
        assert row_store.fetch_all("employees") == []

    def test_delete_with_history_conflicts(self, employee):
        _leave(employee)
        with pytest.raises(ConflictError, match="is_active"):
            hr_service.delete_employee(employee.id)


class TestLeaves:

    def test_create_snapshots_employee(self, employee):
        leave = _leave(employee)

        assert leave.leave_number == "LV-2024-001"
        assert leave.total_days == 5
        assert leave.status == "pending"
        assert leave.employee_name == "Sara Ali"
        assert leave.department == "Production"
        assert leave.applied_date is not None

    def test_end_before_start(self, employee):
        with pytest.raises(ValidationError):
            _leave(employee, end_date="2024-06-30")

    def test_invalid_leave_type(self, employee):
        with pytest.raises(ValidationError, match="Invalid leave type"):
            _leave(employee, leave_type="sabbatical")

    def test_inactive_employee(self, employee):
        row_store.update_one("employees", employee.id, {"is_active": False})
        with pytest.raises(ValidationError, match="not active"):
            _leave(employee)

    def test_unknown_employee(self, db_session):
        with pytest.raises(NotFoundError):
            hr_service.create_leave({
                "employee_id": 404, "leave_type": "sick",
                "start_date": "2024-01-01", "end_date": "2024-01-01",
            })

    def test_update_recomputes_days(self, employee):
        leave = _leave(employee)
        updated = hr_service.update_leave(leave.id, {"end_date": "2024-07-10"})
        assert updated.total_days == 10

    def test_approve_records_approver(self, employee):
        leave = _leave(employee)
        approved = hr_service.approve_leave(leave.id, approved_by="Plant Manager")

        assert approved.status == "approved"
        assert approved.approved_by == "Plant Manager"
        assert approved.approved_date is not None

    def test_default_approver(self, employee):
        leave = _leave(employee)
        assert hr_service.reject_leave(leave.id).approved_by == hr_service.DEFAULT_APPROVER

    def test_only_pending_can_be_edited(self, employee):
        leave = _leave(employee)
        hr_service.approve_leave(leave.id)

        with pytest.raises(InvalidStateError):
            hr_service.update_leave(leave.id, {"reason": "changed"})

    def test_complete_after_approval(self, employee):
        leave = _leave(employee)
        with pytest.raises(InvalidStateError):
            hr_service.complete_leave(leave.id)

        hr_service.approve_leave(leave.id)
        assert hr_service.complete_leave(leave.id).status == "completed"

    def test_rejected_is_final(self, employee):
        leave = _leave(employee)
        hr_service.reject_leave(leave.id)
        with pytest.raises(InvalidStateError):
            hr_service.approve_leave(leave.id)


class TestEmployeeRequests:

    def test_loan_monthly_deduction(self, employee):
        request = _request(employee)

        assert request.request_number == "REQ-2024-001"
        assert request.amount == Decimal("1200.00")
        assert request.monthly_deduction == Decimal("100.00")
        assert request.leave_days is None

    def test_monetary_request_needs_amount(self, employee):
        with pytest.raises(ValidationError, match="amount is required"):
            _request(employee, amount=None, repayment_months=None)

    def test_zero_repayment_months(self, employee):
        with pytest.raises(ValidationError, match="repayment_months"):
            _request(employee, repayment_months=0)

    def test_leave_request_needs_dates(self, employee):
        with pytest.raises(ValidationError, match="leave_start_date"):
            _request(employee, request_type="leave", amount=None, repayment_months=None)

    def test_leave_request_days(self, employee):
        request = _request(
            employee, request_type="leave", amount=None, repayment_months=None,
            leave_start_date="2024-08-01", leave_end_date="2024-08-03",
        )
        assert request.leave_days == 3
        assert request.monthly_deduction is None

    def test_invalid_type(self, employee):
        with pytest.raises(ValidationError, match="Invalid request type"):
            _request(employee, request_type="bonus")

    def test_update_while_pending(self, employee):
        request = _request(employee)
        updated = hr_service.update_request(request.id, {"repayment_months": 6})
        assert updated.monthly_deduction == Decimal("200.00")

    def test_approval_flow(self, employee):
        request = _request(employee)
        approved = hr_service.approve_request(request.id, approved_by="CFO")
        assert approved.approved_by == "CFO"

        with pytest.raises(InvalidStateError):
            hr_service.update_request(request.id, {"amount": 10})

        assert hr_service.complete_request(request.id).status == "completed"
