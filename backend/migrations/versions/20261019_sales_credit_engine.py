"""Create catalog, customer, sale and payment tables

Revision ID: 20261019_sales_credit
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_sales_credit"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("legacy_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(120), nullable=True),
        sa.Column("category", sa.String(120), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("stock", sa.Numeric(12, 3), nullable=True),
        sa.Column("expires_on", sa.String(32), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_legacy_id", ["legacy_id"], unique=True)
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_category", ["category"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("legacy_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_legacy_id", ["legacy_id"], unique=True)
        batch_op.create_index("ix_customers_name", ["name"], unique=False)
        batch_op.create_index("ix_customers_email", ["email"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("legacy_id", sa.Integer(), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("customer_ref", sa.String(64), nullable=True),
        sa.Column("legacy_customer_id", sa.Integer(), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_items", sa.Numeric(12, 3), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("outstanding_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("on_credit", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_legacy_id", ["legacy_id"], unique=True)
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_created", ["created_at"], unique=False)
        batch_op.create_index("ix_sales_customer_ref", ["customer_ref"], unique=False)
        batch_op.create_index("ix_sales_legacy_customer", ["legacy_customer_id"], unique=False)
        batch_op.create_index("ix_sales_credit_outstanding", ["on_credit", "outstanding_amount"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.String(24), nullable=False),
        sa.Column("legacy_id", sa.Integer(), nullable=True),
        sa.Column("sale_ref", sa.String(64), nullable=True),
        sa.Column("legacy_sale_id", sa.Integer(), nullable=True),
        sa.Column("customer_ref", sa.String(64), nullable=True),
        sa.Column("legacy_customer_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("payments", schema=None) as batch_op:
        batch_op.create_index("ix_payments_legacy_id", ["legacy_id"], unique=True)
        batch_op.create_index("ix_payments_sale_ref", ["sale_ref"], unique=False)
        batch_op.create_index("ix_payments_legacy_sale_id", ["legacy_sale_id"], unique=False)
        batch_op.create_index("ix_payments_customer_ref", ["customer_ref"], unique=False)
        batch_op.create_index("ix_payments_legacy_customer_id", ["legacy_customer_id"], unique=False)
        batch_op.create_index("ix_payments_created", ["created_at"], unique=False)


def downgrade():
    op.drop_table("payments")
    op.drop_table("sales")
    op.drop_table("customers")
    op.drop_table("products")
