"""Create vouchers table.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create vouchers table."""
    op.create_table(
        'vouchers',
        sa.Column('token', sa.String(36), primary_key=True),
        sa.Column('order', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index('ix_vouchers_expires_at', 'vouchers', ['expires_at'])


def downgrade() -> None:
    """Drop vouchers table."""
    op.drop_index('ix_vouchers_expires_at', table_name='vouchers')
    op.drop_table('vouchers')
