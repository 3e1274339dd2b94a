"""add warehouse, inventory balances, transactions and adjustment ledger

Revision ID: 0002_inventory_tracking
Revises: 0001_initial
Create Date: 2025-03-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_inventory_tracking"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "warehouse",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
    )
    op.create_table(
        "inv_track",
        sa.Column("inv_track_id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("bom_id", sa.Integer(), sa.ForeignKey("inv_bom.id"), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouse.id"), nullable=True),
        sa.Column("bom_qty", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("last_inv_transactionid", sa.Integer(), nullable=True),
        sa.UniqueConstraint("project_id", "bom_id", "warehouse_id", name="uq_inv_track_project_bom_warehouse"),
        sa.CheckConstraint("bom_qty >= 0", name="ck_inv_track_bom_qty_non_negative"),
    )
    op.create_table(
        "inv_transaction",
        sa.Column("inv_transaction_id", sa.Integer(), primary_key=True),
        sa.Column("purchase_id", sa.Integer(), nullable=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouse.id"), nullable=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=True),
        sa.Column("bom_id", sa.Integer(), sa.ForeignKey("inv_bom.id"), nullable=False),
        sa.Column("bom_qty", sa.Numeric(14, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("Added", "Subtract", name="inv_transaction_status"),
            nullable=False,
        ),
        sa.Column("time_date", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "inv_adjustment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("element_type_id", sa.Integer(), sa.ForeignKey("element_type.element_type_id"), nullable=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("inv_bom.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("adjusted_by", sa.String(length=200), nullable=False),
        sa.Column("adjusted_at", sa.DateTime(), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=True),
        sa.Column("element_caunt", sa.Integer(), nullable=True),
    )
    op.create_index("ix_inv_adjustment_project_adjusted_at", "inv_adjustment", ["project_id", "adjusted_at"])


def downgrade() -> None:
    op.drop_index("ix_inv_adjustment_project_adjusted_at", table_name="inv_adjustment")
    op.drop_table("inv_adjustment")
    op.drop_table("inv_transaction")
    op.drop_table("inv_track")
    op.drop_table("warehouse")
