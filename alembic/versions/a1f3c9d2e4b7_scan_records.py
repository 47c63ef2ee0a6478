"""scan_records

Append-only scan log: one row per scored token/coin scan.

Revision ID: a1f3c9d2e4b7
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d2e4b7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'scan_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('address', sa.String(128), nullable=False),
        sa.Column('symbol', sa.String(50), nullable=True),
        sa.Column('strategy', sa.String(30), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('verdict', sa.String(20), nullable=False),
        sa.Column('price', sa.Numeric(), nullable=True),
        sa.Column('scanned_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_scan_records_address', 'scan_records', ['address'])
    op.create_index('idx_scan_records_scanned_at', 'scan_records', ['scanned_at'])


def downgrade() -> None:
    op.drop_index('idx_scan_records_scanned_at', 'scan_records')
    op.drop_index('idx_scan_records_address', 'scan_records')
    op.drop_table('scan_records')
