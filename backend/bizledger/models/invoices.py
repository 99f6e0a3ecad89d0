from __future__ import annotations

from ..extensions import db


class Invoice(db.Model):
    """
    Customer invoice (ledger parent for InvoicePayment rows).

    Totals are stored as computed at save time from the invoice lines so the
    stored remaining balance never drifts from the derived one.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_date", "payment_status", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=True, unique=True)
    customer_name = db.Column(db.String(128), nullable=False)
    customer_vat_number = db.Column(db.String(32), nullable=True)
    invoice_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=True)

    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=15)
    # Invoice-level discount spread across the lines: percentage | fixed
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    gross_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Pending, Partial, Paid
    payment_status = db.Column(db.String(16), nullable=False, default="Pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "customer_vat_number": self.customer_vat_number,
            "invoice_date": self.invoice_date,
            "due_date": self.due_date,
            "tax_rate": self.tax_rate,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "gross_amount": self.gross_amount,
            "discount_total": self.discount_total,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version_id": self.version_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class InvoiceLine(db.Model):
    """Typed invoice item; derived columns are written by the totals service."""
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # discount as entered on the line, before an invoice-level discount replaced it
    entered_discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    entered_discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    entered_discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_enabled = db.Column(db.Boolean, nullable=False, default=True)

    line_gross = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_after_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_vat = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    invoice = db.relationship("Invoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount_type": self.discount_type,
            "discount_percent": self.discount_percent,
            "discount_amount": self.discount_amount,
            "entered_discount_type": self.entered_discount_type,
            "entered_discount_percent": self.entered_discount_percent,
            "entered_discount_amount": self.entered_discount_amount,
            "tax_enabled": self.tax_enabled,
            "line_gross": self.line_gross,
            "line_discount": self.line_discount,
            "price_after_discount": self.price_after_discount,
            "line_subtotal": self.line_subtotal,
            "line_vat": self.line_vat,
            "line_total": self.line_total,
        }


class InvoicePayment(db.Model):
    """Immutable payment collected against an invoice."""
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("payments", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": self.amount,
            "payment_date": self.payment_date,
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "created_at": self.created_at,
        }
