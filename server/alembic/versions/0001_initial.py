"""initial precast schema

Revision ID: 0001
Revises: 
Create Date: 2025-03-04 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "project",
        sa.Column("project_id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "session",
        sa.Column("session_id", sa.String(length=128), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("host_name", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "element_type",
        sa.Column("element_type_id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("element_type_name", sa.String(length=200), nullable=False),
        sa.Column("element_type_version", sa.String(length=50), nullable=False),
        sa.Column("created_by", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("update_at", sa.DateTime(), nullable=True),
        sa.Column("inv_adjust", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "element",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("element_id", sa.String(length=100), nullable=False),
        sa.Column("element_type_id", sa.Integer(), sa.ForeignKey("element_type.element_type_id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("bom_revision_id", sa.Integer(), nullable=True),
        sa.Column("drawing_revision_id", sa.Integer(), nullable=True),
        sa.Column("instage", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("inv_adjust", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("update_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "activity",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("element_id", sa.Integer(), sa.ForeignKey("element.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "inv_bom",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_name", sa.String(length=200), nullable=False),
        sa.Column("unit", sa.String(length=50), nullable=True),
        sa.Column("rate", sa.Numeric(14, 2), nullable=True),
    )
    op.create_table(
        "element_type_bom",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("element_type_id", sa.Integer(), sa.ForeignKey("element_type.element_type_id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("inv_bom.id"), nullable=False),
        sa.Column("product_name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit", sa.String(length=50), nullable=True),
        sa.Column("rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("updated_by", sa.String(length=200), nullable=True),
        sa.UniqueConstraint("element_type_id", "product_id", name="uq_element_type_bom_product"),
    )
    op.create_table(
        "element_type_revision_bom",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("revision_id", sa.Integer(), nullable=False),
        sa.Column("element_type_bom_id", sa.Integer(), nullable=False),
        sa.Column("element_type_id", sa.Integer(), sa.ForeignKey("element_type.element_type_id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("project.project_id"), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("units", sa.String(length=50), nullable=True),
        sa.Column("rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("changed_by", sa.String(length=200), nullable=True),
    )
    op.create_index(
        "ix_element_type_revision_bom_revision_id",
        "element_type_revision_bom",
        ["revision_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_element_type_revision_bom_revision_id", table_name="element_type_revision_bom")
    op.drop_table("element_type_revision_bom")
    op.drop_table("element_type_bom")
    op.drop_table("inv_bom")
    op.drop_table("activity")
    op.drop_table("element")
    op.drop_table("element_type")
    op.drop_table("session")
    op.drop_table("users")
    op.drop_table("project")
