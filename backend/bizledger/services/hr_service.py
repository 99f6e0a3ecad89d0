# Overview: HR workflows; leave applications and employee requests with their approval lifecycle.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Employee, EmployeeRequest, Leave
from ..time_utils import today
from ..validation import (
    ConflictError,
    InvalidStateError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
)
from . import row_store
from .concurrency import run_in_transaction
from .identifier_service import LEAVE_PREFIX, REQUEST_PREFIX, allocate_identifier
from .normalizer import LEAVE_TYPES, MONETARY_REQUEST_TYPES, REQUEST_TYPES
from .status_service import (
    APPROVAL_APPROVED,
    APPROVAL_COMPLETED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    transition,
)
from .totals_service import leave_days, monthly_deduction


DEFAULT_APPROVER = "HR Manager"

LEAVE_POLICY = ModelValidationPolicy(
    writable_fields={"employee_id", "leave_type", "start_date", "end_date", "reason", "notes", "applied_date"},
    required_on_create={"employee_id", "leave_type", "start_date", "end_date"},
)
LEAVE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"leave_type", "start_date", "end_date", "reason", "notes"},
)

REQUEST_POLICY = ModelValidationPolicy(
    writable_fields={
        "employee_id", "request_type", "amount", "repayment_months", "leave_start_date",
        "leave_end_date", "description", "notes", "requested_date",
    },
    required_on_create={"employee_id", "request_type", "description"},
    non_negative_fields={"amount", "repayment_months"},
)
REQUEST_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "request_type", "amount", "repayment_months", "leave_start_date",
        "leave_end_date", "description", "notes",
    },
    non_negative_fields={"amount", "repayment_months"},
)


# =============================================================================
# EMPLOYEES
# =============================================================================

def delete_employee(employee_id: int) -> None:
    """Employees with leave or request history are deactivated, not deleted."""
    def _op():
        employee = row_store.get_row("employees", employee_id)
        has_history = (
            db.session.query(Leave.id).filter_by(employee_id=employee_id).first()
            or db.session.query(EmployeeRequest.id).filter_by(employee_id=employee_id).first()
        )
        if has_history:
            raise ConflictError(
                f"Employee {employee.employee_code} has leave or request history; set is_active to false instead"
            )
        db.session.delete(employee)
        db.session.commit()

    run_in_transaction(_op)


def _active_employee(employee_id: int) -> Employee:
    employee = db.session.query(Employee).filter_by(id=employee_id).first()
    if not employee:
        raise NotFoundError(f"Employee {employee_id} not found")
    if not employee.is_active:
        raise ValidationError(f"Employee {employee.employee_code} is not active")
    return employee


def _snapshot(employee: Employee) -> dict:
    return {
        "employee_name": employee.name_en,
        "department": employee.department,
        "position": employee.position,
    }


def _scan_numbers(column, prefix: str, year: int):
    def _scan():
        return [n for (n,) in db.session.query(column).filter(column.ilike(f"{prefix}-{year}-%")).all()]
    return _scan


def _require_pending(row, label: str) -> None:
    if row.status != APPROVAL_PENDING:
        raise InvalidStateError(f"Only pending {label}s can be edited (this one is {row.status})")


def _set_approval(entity_type: str, row_id: int, target: str, approved_by: str | None):
    def _op():
        row = row_store.get_row(entity_type, row_id, lock=True)
        row.status = transition(row.status, target)
        if target in (APPROVAL_APPROVED, APPROVAL_REJECTED):
            row.approved_by = approved_by or DEFAULT_APPROVER
            row.approved_date = today()
        db.session.commit()
        return row_store.to_record(entity_type, row)

    record = run_in_transaction(_op)
    current_app.logger.info("%s %s is now %s", entity_type, row_id, target)
    return record


# =============================================================================
# LEAVES
# =============================================================================

def _check_leave_type(value: str | None) -> None:
    if value not in LEAVE_TYPES:
        raise ValidationError(f"Invalid leave type: {value}. Must be one of {', '.join(LEAVE_TYPES)}")


def create_leave(payload: dict | None):
    def _op():
        values = row_store.validate("leaves", payload, partial=False, policy=LEAVE_POLICY)
        _check_leave_type(values["leave_type"])
        employee = _active_employee(values["employee_id"])
        total_days = leave_days(values["start_date"], values["end_date"])

        year = values["start_date"].year
        number = allocate_identifier(LEAVE_PREFIX, year, _scan_numbers(Leave.leave_number, LEAVE_PREFIX, year))
        leave = Leave(
            leave_number=number,
            total_days=total_days,
            status=APPROVAL_PENDING,
            **_snapshot(employee),
            **values,
        )
        if leave.applied_date is None:
            leave.applied_date = today()
        db.session.add(leave)
        db.session.commit()
        return row_store.to_record("leaves", leave)

    record = run_in_transaction(_op)
    current_app.logger.info("Created leave %s (%s days)", record.leave_number, record.total_days)
    return record


def update_leave(leave_id: int, payload: dict | None):
    def _op():
        patch = row_store.validate("leaves", payload, partial=True, policy=LEAVE_UPDATE_POLICY)
        leave = row_store.get_row("leaves", leave_id, lock=True)
        _require_pending(leave, "leave")
        if "leave_type" in patch:
            _check_leave_type(patch["leave_type"])
        for key, value in patch.items():
            setattr(leave, key, value)
        leave.total_days = leave_days(leave.start_date, leave.end_date)
        db.session.commit()
        return row_store.to_record("leaves", leave)

    return run_in_transaction(_op)


def approve_leave(leave_id: int, approved_by: str | None = None):
    return _set_approval("leaves", leave_id, APPROVAL_APPROVED, approved_by)


def reject_leave(leave_id: int, approved_by: str | None = None):
    return _set_approval("leaves", leave_id, APPROVAL_REJECTED, approved_by)


def complete_leave(leave_id: int):
    return _set_approval("leaves", leave_id, APPROVAL_COMPLETED, None)


# =============================================================================
# EMPLOYEE REQUESTS
# =============================================================================

def _apply_request_rules(request: EmployeeRequest) -> None:
    """Type-specific checks and derived fields (deduction, leave days)."""
    if request.request_type not in REQUEST_TYPES:
        raise ValidationError(
            f"Invalid request type: {request.request_type}. Must be one of {', '.join(REQUEST_TYPES)}"
        )

    if request.request_type in MONETARY_REQUEST_TYPES:
        if request.amount is None or request.amount <= 0:
            raise ValidationError(f"amount is required for {request.request_type} requests")
    if request.repayment_months is not None and request.repayment_months <= 0:
        raise ValidationError("repayment_months must be greater than zero")
    request.monthly_deduction = monthly_deduction(request.amount, request.repayment_months)

    if request.request_type == "leave":
        if request.leave_start_date is None or request.leave_end_date is None:
            raise ValidationError("leave_start_date and leave_end_date are required for leave requests")
        request.leave_days = leave_days(request.leave_start_date, request.leave_end_date)
    else:
        request.leave_days = None


def create_request(payload: dict | None):
    def _op():
        values = row_store.validate("employee_requests", payload, partial=False, policy=REQUEST_POLICY)
        employee = _active_employee(values["employee_id"])

        request = EmployeeRequest(status=APPROVAL_PENDING, **_snapshot(employee), **values)
        if request.requested_date is None:
            request.requested_date = today()
        _apply_request_rules(request)

        year = request.requested_date.year
        request.request_number = allocate_identifier(
            REQUEST_PREFIX, year, _scan_numbers(EmployeeRequest.request_number, REQUEST_PREFIX, year)
        )
        db.session.add(request)
        db.session.commit()
        return row_store.to_record("employee_requests", request)

    record = run_in_transaction(_op)
    current_app.logger.info("Created employee request %s (%s)", record.request_number, record.request_type)
    return record


def update_request(request_id: int, payload: dict | None):
    def _op():
        patch = row_store.validate("employee_requests", payload, partial=True, policy=REQUEST_UPDATE_POLICY)
        request = row_store.get_row("employee_requests", request_id, lock=True)
        _require_pending(request, "request")
        for key, value in patch.items():
            setattr(request, key, value)
        _apply_request_rules(request)
        db.session.commit()
        return row_store.to_record("employee_requests", request)

    return run_in_transaction(_op)


def approve_request(request_id: int, approved_by: str | None = None):
    return _set_approval("employee_requests", request_id, APPROVAL_APPROVED, approved_by)


def reject_request(request_id: int, approved_by: str | None = None):
    return _set_approval("employee_requests", request_id, APPROVAL_REJECTED, approved_by)


def complete_request(request_id: int):
    return _set_approval("employee_requests", request_id, APPROVAL_COMPLETED, None)
