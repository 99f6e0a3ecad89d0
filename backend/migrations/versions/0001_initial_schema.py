"""Initial ledger schema: expenses, invoices, manufacturing, HR, identifier sequences

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, server_default=None if nullable else sa.text("0"))


def _qty(name, nullable=False):
    return sa.Column(name, sa.Numeric(12, 3), nullable=nullable, server_default=None if nullable else sa.text("0"))


def _timestamps(updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False))
    return cols


def _version():
    return sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1"))


def upgrade():
    op.create_table(
        "identifier_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("prefix", sa.String(16), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_identifier_sequences"),
        sa.UniqueConstraint("prefix", "year", name="uq_identifier_sequences_prefix_year"),
        sqlite_autoincrement=True,
    )

    # -- Expenses ---------------------------------------------------------------
    op.create_table(
        "expense_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("color", sa.String(128), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id", name="pk_expense_categories"),
        sa.UniqueConstraint("name", name="uq_expense_categories_name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("expense_number", sa.String(32), nullable=True),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(64), nullable=False, server_default="Other"),
        sa.Column("description", sa.String(255), nullable=False),
        _money("base_amount"),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=True),
        _money("tax_amount"),
        _money("total_amount"),
        _money("paid_amount"),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("paid_to", sa.String(128), nullable=True),
        sa.Column("receipt_number", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _version(),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.UniqueConstraint("expense_number", name="uq_expenses_expense_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("expenses", schema=None) as batch_op:
        batch_op.create_index("ix_expenses_expense_date", ["expense_date"], unique=False)
        batch_op.create_index("ix_expenses_status", ["status"], unique=False)
        batch_op.create_index("ix_expenses_status_date", ["status", "expense_date"], unique=False)

    op.create_table(
        "expense_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("expense_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("reference_number", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["expense_id"], ["expenses.id"], name="fk_expense_payments_expense_id_expenses", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_expense_payments"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("expense_payments", schema=None) as batch_op:
        batch_op.create_index("ix_expense_payments_expense_id", ["expense_id"], unique=False)
        batch_op.create_index("ix_expense_payments_created_at", ["created_at"], unique=False)

    # -- Invoices ---------------------------------------------------------------
    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(32), nullable=True),
        sa.Column("customer_name", sa.String(128), nullable=False),
        sa.Column("customer_vat_number", sa.String(32), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("15")),
        sa.Column("discount_type", sa.String(16), nullable=True),
        _money("discount_value"),
        _money("gross_amount"),
        _money("discount_total"),
        _money("subtotal"),
        _money("tax_amount"),
        _money("total_amount"),
        _money("paid_amount"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="Pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _version(),
        sa.PrimaryKeyConstraint("id", name="pk_invoices"),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("invoices", schema=None) as batch_op:
        batch_op.create_index("ix_invoices_invoice_date", ["invoice_date"], unique=False)
        batch_op.create_index("ix_invoices_payment_status", ["payment_status"], unique=False)
        batch_op.create_index("ix_invoices_status_date", ["payment_status", "invoice_date"], unique=False)

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False, server_default="percentage"),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        _money("discount_amount"),
        sa.Column("tax_enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        _money("line_gross"),
        _money("line_discount"),
        _money("price_after_discount"),
        _money("line_subtotal"),
        _money("line_vat"),
        _money("line_total"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], name="fk_invoice_lines_invoice_id_invoices", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_invoice_lines"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("invoice_lines", schema=None) as batch_op:
        batch_op.create_index("ix_invoice_lines_invoice_id", ["invoice_id"], unique=False)

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("reference_number", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], name="fk_invoice_payments_invoice_id_invoices", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_invoice_payments"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("invoice_payments", schema=None) as batch_op:
        batch_op.create_index("ix_invoice_payments_invoice_id", ["invoice_id"], unique=False)
        batch_op.create_index("ix_invoice_payments_created_at", ["created_at"], unique=False)

    # -- Manufacturing ----------------------------------------------------------
    op.create_table(
        "raw_materials",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name_en", sa.String(128), nullable=False),
        sa.Column("name_ar", sa.String(128), nullable=True),
        sa.Column("unit", sa.String(16), nullable=True),
        _money("cost_per_unit"),
        _qty("current_stock"),
        _qty("min_stock"),
        sa.Column("category", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_raw_materials"),
        sa.UniqueConstraint("sku", name="uq_raw_materials_sku"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name_en", sa.String(128), nullable=False),
        sa.Column("name_ar", sa.String(128), nullable=True),
        sa.Column("output_quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("output_unit", sa.String(16), nullable=True),
        _money("labor_cost"),
        _money("overhead_cost"),
        _money("total_material_cost"),
        _money("total_cost"),
        _money("cost_per_unit"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _version(),
        sa.PrimaryKeyConstraint("id", name="pk_recipes"),
        sa.UniqueConstraint("sku", name="uq_recipes_sku"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "recipe_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("material_name", sa.String(128), nullable=False),
        sa.Column("unit", sa.String(16), nullable=True),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("cost_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], name="fk_recipe_lines_recipe_id_recipes", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["material_id"], ["raw_materials.id"], name="fk_recipe_lines_material_id_raw_materials"),
        sa.PrimaryKeyConstraint("id", name="pk_recipe_lines"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("recipe_lines", schema=None) as batch_op:
        batch_op.create_index("ix_recipe_lines_recipe_id", ["recipe_id"], unique=False)
        batch_op.create_index("ix_recipe_lines_material_id", ["material_id"], unique=False)

    op.create_table(
        "manufacturing_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(32), nullable=True),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("batch_size", sa.Numeric(12, 3), nullable=False),
        _qty("produced_quantity"),
        _money("unit_cost"),
        _money("total_cost"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        *_timestamps(),
        _version(),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], name="fk_manufacturing_orders_recipe_id_recipes"),
        sa.PrimaryKeyConstraint("id", name="pk_manufacturing_orders"),
        sa.UniqueConstraint("order_number", name="uq_manufacturing_orders_order_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("manufacturing_orders", schema=None) as batch_op:
        batch_op.create_index("ix_manufacturing_orders_recipe_id", ["recipe_id"], unique=False)
        batch_op.create_index("ix_manufacturing_orders_status", ["status"], unique=False)

    op.create_table(
        "production_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("run_date", sa.Date(), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["order_id"], ["manufacturing_orders.id"], name="fk_production_runs_order_id_manufacturing_orders", ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_production_runs"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("production_runs", schema=None) as batch_op:
        batch_op.create_index("ix_production_runs_order_id", ["order_id"], unique=False)

    # -- HR ---------------------------------------------------------------------
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_code", sa.String(32), nullable=False),
        sa.Column("name_en", sa.String(128), nullable=False),
        sa.Column("name_ar", sa.String(128), nullable=True),
        sa.Column("department", sa.String(64), nullable=True),
        sa.Column("position", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_employees"),
        sa.UniqueConstraint("employee_code", name="uq_employees_employee_code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "leaves",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("leave_number", sa.String(32), nullable=True),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("employee_name", sa.String(128), nullable=True),
        sa.Column("department", sa.String(64), nullable=True),
        sa.Column("position", sa.String(64), nullable=True),
        sa.Column("leave_type", sa.String(16), nullable=False, server_default="annual"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("applied_date", sa.Date(), nullable=True),
        sa.Column("approved_by", sa.String(128), nullable=True),
        sa.Column("approved_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _version(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], name="fk_leaves_employee_id_employees"),
        sa.PrimaryKeyConstraint("id", name="pk_leaves"),
        sa.UniqueConstraint("leave_number", name="uq_leaves_leave_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("leaves", schema=None) as batch_op:
        batch_op.create_index("ix_leaves_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_leaves_status", ["status"], unique=False)
        batch_op.create_index("ix_leaves_employee_status", ["employee_id", "status"], unique=False)

    op.create_table(
        "employee_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_number", sa.String(32), nullable=True),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("employee_name", sa.String(128), nullable=True),
        sa.Column("department", sa.String(64), nullable=True),
        sa.Column("position", sa.String(64), nullable=True),
        sa.Column("request_type", sa.String(16), nullable=False),
        _money("amount", nullable=True),
        sa.Column("repayment_months", sa.Integer(), nullable=True),
        _money("monthly_deduction", nullable=True),
        sa.Column("leave_start_date", sa.Date(), nullable=True),
        sa.Column("leave_end_date", sa.Date(), nullable=True),
        sa.Column("leave_days", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("requested_date", sa.Date(), nullable=True),
        sa.Column("approved_by", sa.String(128), nullable=True),
        sa.Column("approved_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        _version(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], name="fk_employee_requests_employee_id_employees"),
        sa.PrimaryKeyConstraint("id", name="pk_employee_requests"),
        sa.UniqueConstraint("request_number", name="uq_employee_requests_request_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("employee_requests", schema=None) as batch_op:
        batch_op.create_index("ix_employee_requests_employee_id", ["employee_id"], unique=False)
        batch_op.create_index("ix_employee_requests_status", ["status"], unique=False)
        batch_op.create_index("ix_employee_requests_employee_status", ["employee_id", "status"], unique=False)


def downgrade():
    for table in (
        "employee_requests",
        "leaves",
        "employees",
        "production_runs",
        "manufacturing_orders",
        "recipe_lines",
        "recipes",
        "raw_materials",
        "invoice_payments",
        "invoice_lines",
        "invoices",
        "expense_payments",
        "expenses",
        "expense_categories",
        "identifier_sequences",
    ):
        op.drop_table(table)
