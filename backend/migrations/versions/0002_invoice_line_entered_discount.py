"""Keep each invoice line's entered discount apart from the invoice-level one

Revision ID: 0002_invoice_line_entered_discount
Revises: 0001_initial_schema
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_invoice_line_entered_discount"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("invoice_lines", schema=None) as batch_op:
        batch_op.add_column(sa.Column("entered_discount_type", sa.String(16), nullable=False, server_default="percentage"))
        batch_op.add_column(sa.Column("entered_discount_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")))
        batch_op.add_column(sa.Column("entered_discount_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")))

    # Existing rows only know the applied discount; use it as the entered one.
    op.execute(
        "UPDATE invoice_lines SET entered_discount_type = discount_type, "
        "entered_discount_percent = discount_percent, entered_discount_amount = discount_amount"
    )


def downgrade():
    with op.batch_alter_table("invoice_lines", schema=None) as batch_op:
        batch_op.drop_column("entered_discount_amount")
        batch_op.drop_column("entered_discount_percent")
        batch_op.drop_column("entered_discount_type")
