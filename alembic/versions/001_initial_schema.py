"""Initial cache schema: report_cache, accounts_cache, query_history.

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Memoized API responses
    op.create_table(
        'report_cache',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('cache_key', sa.String(length=255), nullable=False),
        sa.Column('account_id', sa.String(length=255), nullable=False),
        sa.Column('query_hash', sa.String(length=64), nullable=False),
        sa.Column('response_data', sa.Text(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('expires_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cache_key'),
    )
    op.create_index('idx_report_cache_key', 'report_cache', ['cache_key'])
    op.create_index('idx_report_cache_expires', 'report_cache', ['expires_at'])

    # Reserved account info
    op.create_table(
        'accounts_cache',
        sa.Column('account_id', sa.String(length=255), nullable=False),
        sa.Column('account_data', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('account_id'),
    )

    # Query analytics log
    op.create_table(
        'query_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_id', sa.String(length=255), nullable=False),
        sa.Column('tool_name', sa.String(length=100), nullable=False),
        sa.Column('query_params', sa.Text(), nullable=True),
        sa.Column('executed_at', sa.BigInteger(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    op.drop_table('query_history')
    op.drop_table('accounts_cache')
    op.drop_index('idx_report_cache_expires', table_name='report_cache')
    op.drop_index('idx_report_cache_key', table_name='report_cache')
    op.drop_table('report_cache')
