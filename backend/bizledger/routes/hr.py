# Overview: Flask API routes for employees, leave applications and employee requests.

# backend/bizledger/routes/hr.py
"""
HR API Routes

DESIGN:
- Employees are plain rows; employees with history cannot be deleted (deactivate instead)
- Leaves and requests snapshot employee name/department/position when created
- Approval lifecycle: pending -> approved | rejected, approved -> completed
- Only pending leaves/requests can be edited
"""

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from ..services import export_service, hr_service, row_store
from ..validation import DomainError


hr_bp = Blueprint("hr", __name__, url_prefix="/api/hr")


def _approver() -> str | None:
    data = request.get_json(silent=True) or {}
    return data.get("approved_by") if isinstance(data, dict) else None


def _export(entity_type: str):
    filename, content = export_service.export_entity(entity_type)
    return send_file(
        BytesIO(content),
        mimetype=export_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


# =============================================================================
# EMPLOYEES
# =============================================================================

@hr_bp.get("/employees")
def list_employees_route():
    """Query params: department, active (true/false)."""
    try:
        active = request.args.get("active")
        is_active = None if active is None else active.lower() in {"1", "true", "yes"}
        records = row_store.fetch_all(
            "employees",
            department=request.args.get("department"),
            is_active=is_active,
        )
        return jsonify({"employees": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list employees")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/employees")
def create_employee_route():
    """
    Create an employee.

    Request body:
    {
        "employee_code": "E-001",
        "name_en": "Sara Ali",
        "name_ar": "...",            (optional)
        "department": "Production",  (optional)
        "position": "Supervisor",    (optional)
        "is_active": true            (optional)
    }
    """
    try:
        record = row_store.create_one("employees", request.get_json(silent=True))
        return jsonify({"employee": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.get("/employees/<int:employee_id>")
def get_employee_route(employee_id: int):
    try:
        record = row_store.fetch_one("employees", employee_id)
        return jsonify({"employee": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get employee")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.put("/employees/<int:employee_id>")
def update_employee_route(employee_id: int):
    try:
        record = row_store.update_one("employees", employee_id, request.get_json(silent=True))
        return jsonify({"employee": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update employee")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.delete("/employees/<int:employee_id>")
def delete_employee_route(employee_id: int):
    try:
        row_store.delete_one("employees", employee_id)
        return jsonify({"deleted": employee_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete employee")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LEAVES
# =============================================================================

@hr_bp.get("/leaves")
def list_leaves_route():
    """Query params: status, employee_id."""
    try:
        records = row_store.fetch_all(
            "leaves",
            status=request.args.get("status"),
            employee_id=request.args.get("employee_id", type=int),
        )
        return jsonify({"leaves": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list leaves")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/leaves")
def create_leave_route():
    """
    Apply for leave.

    Request body:
    {
        "employee_id": 1,
        "leave_type": "annual" | "sick" | "emergency" | "unpaid" | "other",
        "start_date": "2024-03-10",
        "end_date": "2024-03-14",
        "reason": "...",             (optional)
        "applied_date": "..."        (optional, default today)
    }

    Returns:
        201: Leave created (pending, LV-YYYY-NNN, total_days inclusive)
        400: Invalid input, end before start, inactive employee
        404: Employee not found
    """
    try:
        record = hr_service.create_leave(request.get_json(silent=True))
        return jsonify({"leave": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.get("/leaves/<int:leave_id>")
def get_leave_route(leave_id: int):
    try:
        record = row_store.fetch_one("leaves", leave_id)
        return jsonify({"leave": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.put("/leaves/<int:leave_id>")
def update_leave_route(leave_id: int):
    try:
        record = hr_service.update_leave(leave_id, request.get_json(silent=True))
        return jsonify({"leave": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.delete("/leaves/<int:leave_id>")
def delete_leave_route(leave_id: int):
    try:
        row_store.delete_one("leaves", leave_id)
        return jsonify({"deleted": leave_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/leaves/<int:leave_id>/approve")
def approve_leave_route(leave_id: int):
    """Optional body: {"approved_by": "..."}; defaults to the HR manager."""
    try:
        record = hr_service.approve_leave(leave_id, _approver())
        return jsonify({"leave": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/leaves/<int:leave_id>/reject")
def reject_leave_route(leave_id: int):
    try:
        record = hr_service.reject_leave(leave_id, _approver())
        return jsonify({"leave": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/leaves/<int:leave_id>/complete")
def complete_leave_route(leave_id: int):
    try:
        record = hr_service.complete_leave(leave_id)
        return jsonify({"leave": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete leave")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.get("/leaves/export")
def export_leaves_route():
    try:
        return _export("leaves")
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export leaves")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# EMPLOYEE REQUESTS
# =============================================================================

@hr_bp.get("/requests")
def list_requests_route():
    """Query params: status, request_type, employee_id."""
    try:
        records = row_store.fetch_all(
            "employee_requests",
            status=request.args.get("status"),
            request_type=request.args.get("request_type"),
            employee_id=request.args.get("employee_id", type=int),
        )
        return jsonify({"requests": [r.to_dict() for r in records]}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list employee requests")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/requests")
def create_request_route():
    """
    Submit an employee request.

    Request body:
    {
        "employee_id": 1,
        "request_type": "leave" | "advance" | "loan" | "overtime" | "other",
        "description": "...",
        "amount": 3000,                 (required for advance/loan/overtime)
        "repayment_months": 6,          (optional; derives monthly_deduction)
        "leave_start_date": "...",      (required for leave)
        "leave_end_date": "..."         (required for leave)
    }

    Returns:
        201: Request created (pending, REQ-YYYY-NNN)
        400: Invalid input
        404: Employee not found
    """
    try:
        record = hr_service.create_request(request.get_json(silent=True))
        return jsonify({"request": record.to_dict()}), 201
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.get("/requests/<int:request_id>")
def get_request_route(request_id: int):
    try:
        record = row_store.fetch_one("employee_requests", request_id)
        return jsonify({"request": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.put("/requests/<int:request_id>")
def update_request_route(request_id: int):
    try:
        record = hr_service.update_request(request_id, request.get_json(silent=True))
        return jsonify({"request": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.delete("/requests/<int:request_id>")
def delete_request_route(request_id: int):
    try:
        row_store.delete_one("employee_requests", request_id)
        return jsonify({"deleted": request_id}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/requests/<int:request_id>/approve")
def approve_request_route(request_id: int):
    try:
        record = hr_service.approve_request(request_id, _approver())
        return jsonify({"request": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/requests/<int:request_id>/reject")
def reject_request_route(request_id: int):
    try:
        record = hr_service.reject_request(request_id, _approver())
        return jsonify({"request": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.post("/requests/<int:request_id>/complete")
def complete_request_route(request_id: int):
    try:
        record = hr_service.complete_request(request_id)
        return jsonify({"request": record.to_dict()}), 200
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete employee request")
        return jsonify({"error": "Internal server error"}), 500


@hr_bp.get("/requests/export")
def export_requests_route():
    try:
        return _export("employee_requests")
    except DomainError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to export employee requests")
        return jsonify({"error": "Internal server error"}), 500
