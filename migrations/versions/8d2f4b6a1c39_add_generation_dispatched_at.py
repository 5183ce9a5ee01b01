"""add generation_dispatched_at to orders

Revision ID: 8d2f4b6a1c39
Revises: 5c1e9a7d3b20
Create Date: 2026-10-19 16:45:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8d2f4b6a1c39'
down_revision = '5c1e9a7d3b20'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column(
        'orders',
        sa.Column('generation_dispatched_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade():
    op.drop_column('orders', 'generation_dispatched_at')
