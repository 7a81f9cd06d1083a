"""initial_household_finance_schema

Revision ID: 5e1a9c2b7d40
Revises: 
Create Date: 2026-10-18 09:12:44.215630

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e1a9c2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _household_fk() -> sa.Column:
    return sa.Column('household_id', sa.Uuid(), sa.ForeignKey('households.id', ondelete='CASCADE'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'households',
        *_audit_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'bank_connections',
        *_audit_columns(),
        _household_fk(),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('encrypted_credentials', sa.Text(), nullable=False),
        sa.Column('encrypted_token', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_status', sa.String(length=20), nullable=True),
        sa.Column('account_mappings', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bank_connections_household_id', 'bank_connections', ['household_id'])

    op.create_table(
        'sync_jobs',
        *_audit_columns(),
        sa.Column('connection_id', sa.Uuid(), sa.ForeignKey('bank_connections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transactions_found', sa.Integer(), nullable=False),
        sa.Column('transactions_new', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_jobs_connection_id', 'sync_jobs', ['connection_id'])

    op.create_table(
        'accounts',
        *_audit_columns(),
        _household_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('external_account_id', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accounts_household_id', 'accounts', ['household_id'])
    op.create_index('ix_accounts_household_external', 'accounts', ['household_id', 'external_account_id'])

    op.create_table(
        'categories',
        *_audit_columns(),
        _household_fk(),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('icon', sa.String(length=20), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_categories_household_id', 'categories', ['household_id'])
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'])

    op.create_table(
        'category_rules',
        *_audit_columns(),
        _household_fk(),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('pattern', sa.String(length=255), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_from', sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_category_rules_household_id', 'category_rules', ['household_id'])
    op.create_index('ix_category_rules_category_id', 'category_rules', ['category_id'])

    op.create_table(
        'transactions',
        *_audit_columns(),
        _household_fk(),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('txn_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('merchant', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('direction', sa.String(length=10), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('external_id', sa.String(length=255), nullable=True),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('categorization_source', sa.String(length=30), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('needs_review', sa.Boolean(), nullable=False),
        sa.Column('is_processing', sa.Boolean(), nullable=False),
        sa.Column('is_ignored', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('household_id', 'external_id', name='uq_transactions_household_external_id'),
    )
    op.create_index('ix_transactions_household_id', 'transactions', ['household_id'])
    op.create_index('ix_transactions_account_id', 'transactions', ['account_id'])
    op.create_index('ix_transactions_txn_date', 'transactions', ['txn_date'])
    op.create_index('ix_transactions_category_id', 'transactions', ['category_id'])
    op.create_index('ix_transactions_household_category', 'transactions', ['household_id', 'category_id'])


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('category_rules')
    op.drop_table('categories')
    op.drop_table('accounts')
    op.drop_table('sync_jobs')
    op.drop_table('bank_connections')
    op.drop_table('households')
