"""track the revision id the current BOM will be archived under

Revision ID: 0003_pending_bom_revision
Revises: 0002_inventory_tracking
Create Date: 2025-04-02 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_pending_bom_revision"
down_revision = "0002_inventory_tracking"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("element_type") as batch_op:
        batch_op.add_column(sa.Column("pending_bom_revision_id", sa.Integer(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("element_type") as batch_op:
        batch_op.drop_column("pending_bom_revision_id")
