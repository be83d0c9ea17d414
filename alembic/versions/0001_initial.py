"""initial barbershop schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "barbers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_barbers_name", "barbers", ["name"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("service_name", sa.String(255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_services_price"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_products_price"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("barber_id", sa.String(36), nullable=False),
        sa.Column("cashier_id", sa.String(36), nullable=True),
        sa.Column("service_id", sa.String(36), nullable=True),
        sa.Column("product_id", sa.String(36), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["barber_id"], ["barbers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="SET NULL"),
        sa.CheckConstraint("payment_method IN ('cash', 'transfer', 'qris')", name="ck_transactions_payment_method"),
    )
    op.create_index("ix_transactions_barber_id", "transactions", ["barber_id"], unique=False)
    op.create_index("ix_transactions_cashier_id", "transactions", ["cashier_id"], unique=False)
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"], unique=False)

    op.create_table(
        "barber_schedules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("barber_id", sa.String(36), nullable=False),
        sa.Column("schedule_date", sa.Date(), nullable=False),
        sa.Column("shift", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["barber_id"], ["barbers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("barber_id", "schedule_date", name="uq_barber_schedules_barber_date"),
        sa.CheckConstraint("shift IN ('full', 'half', 'off')", name="ck_barber_schedules_shift"),
    )
    op.create_index("ix_barber_schedules_barber_id", "barber_schedules", ["barber_id"], unique=False)
    op.create_index("ix_barber_schedules_schedule_date", "barber_schedules", ["schedule_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_barber_schedules_schedule_date", table_name="barber_schedules")
    op.drop_index("ix_barber_schedules_barber_id", table_name="barber_schedules")
    op.drop_table("barber_schedules")
    op.drop_index("ix_transactions_transaction_date", table_name="transactions")
    op.drop_index("ix_transactions_cashier_id", table_name="transactions")
    op.drop_index("ix_transactions_barber_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("products")
    op.drop_table("services")
    op.drop_index("ix_barbers_name", table_name="barbers")
    op.drop_table("barbers")
