from __future__ import annotations

from ..extensions import db


class ExpenseCategory(db.Model):
    """Expense category with its display colour (replaces a shared in-memory map)."""
    __tablename__ = "expense_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    color = db.Column(db.String(128), nullable=False, default="bg-gray-100 text-gray-700 border-gray-200")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "is_default": self.is_default,
            "created_at": self.created_at,
        }


class Expense(db.Model):
    """
    Expense document: a payable with tax, a running paid amount and a status.

    paid_amount is the ledger aggregate over ExpensePayment rows; it is only
    written by the ledger service in the same transaction as the payment.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_status_date", "status", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    expense_number = db.Column(db.String(32), nullable=True, unique=True)
    expense_date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False, default="Other")
    description = db.Column(db.String(255), nullable=False)

    base_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=True)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    paid_to = db.Column(db.String(128), nullable=True)
    receipt_number = db.Column(db.String(64), nullable=True)

    # Pending, Approved, Rejected, Partial, Paid
    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_number": self.expense_number,
            "expense_date": self.expense_date,
            "category": self.category,
            "description": self.description,
            "base_amount": self.base_amount,
            "tax_rate": self.tax_rate,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "payment_method": self.payment_method,
            "paid_to": self.paid_to,
            "receipt_number": self.receipt_number,
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
        }


class ExpensePayment(db.Model):
    """Immutable payment against an expense (created or deleted, never edited)."""
    __tablename__ = "expense_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    reference_number = db.Column(db.String(64), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    expense = db.relationship(
        "Expense",
        backref=db.backref("payments", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_id": self.expense_id,
            "amount": self.amount,
            "payment_date": self.payment_date,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_at": self.created_at,
        }
