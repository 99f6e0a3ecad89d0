from __future__ import annotations

from ..extensions import db


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, unique=True)
    name_en = db.Column(db.String(128), nullable=False)
    name_ar = db.Column(db.String(128), nullable=True)
    department = db.Column(db.String(64), nullable=True)
    position = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_code": self.employee_code,
            "name_en": self.name_en,
            "name_ar": self.name_ar,
            "department": self.department,
            "position": self.position,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class Leave(db.Model):
    """
    Leave application.

    Employee name/department/position are copied at creation so the record
    stays readable after the employee is renamed or moved.
    """
    __tablename__ = "leaves"
    __table_args__ = (
        db.Index("ix_leaves_employee_status", "employee_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    leave_number = db.Column(db.String(32), nullable=True, unique=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    employee_name = db.Column(db.String(128), nullable=True)
    department = db.Column(db.String(64), nullable=True)
    position = db.Column(db.String(64), nullable=True)

    # annual, sick, emergency, unpaid, other
    leave_type = db.Column(db.String(16), nullable=False, default="annual")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False, default=1)
    reason = db.Column(db.Text, nullable=True)

    # pending, approved, rejected, completed
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    applied_date = db.Column(db.Date, nullable=True)
    approved_by = db.Column(db.String(128), nullable=True)
    approved_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", backref=db.backref("leaves", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "leave_number": self.leave_number,
            "employee_id": self.employee_id,
            "employee_code": self.employee.employee_code if self.employee else None,
            "employee_name": self.employee_name,
            "department": self.department,
            "position": self.position,
            "leave_type": self.leave_type,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "total_days": self.total_days,
            "reason": self.reason,
            "status": self.status,
            "applied_date": self.applied_date,
            "approved_by": self.approved_by,
            "approved_date": self.approved_date,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }


class EmployeeRequest(db.Model):
    """Advance, loan, overtime or leave request raised by an employee."""
    __tablename__ = "employee_requests"
    __table_args__ = (
        db.Index("ix_employee_requests_employee_status", "employee_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_number = db.Column(db.String(32), nullable=True, unique=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    employee_name = db.Column(db.String(128), nullable=True)
    department = db.Column(db.String(64), nullable=True)
    position = db.Column(db.String(64), nullable=True)

    # leave, advance, loan, overtime, other
    request_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    repayment_months = db.Column(db.Integer, nullable=True)
    monthly_deduction = db.Column(db.Numeric(12, 2), nullable=True)
    leave_start_date = db.Column(db.Date, nullable=True)
    leave_end_date = db.Column(db.Date, nullable=True)
    leave_days = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    requested_date = db.Column(db.Date, nullable=True)
    approved_by = db.Column(db.String(128), nullable=True)
    approved_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee", backref=db.backref("requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_number": self.request_number,
            "employee_id": self.employee_id,
            "employee_code": self.employee.employee_code if self.employee else None,
            "employee_name": self.employee_name,
            "department": self.department,
            "position": self.position,
            "request_type": self.request_type,
            "amount": self.amount,
            "repayment_months": self.repayment_months,
            "monthly_deduction": self.monthly_deduction,
            "leave_start_date": self.leave_start_date,
            "leave_end_date": self.leave_end_date,
            "leave_days": self.leave_days,
            "description": self.description,
            "status": self.status,
            "requested_date": self.requested_date,
            "approved_by": self.approved_by,
            "approved_date": self.approved_date,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }
