"""email_sync_tables

Revision ID: email_sync_2026
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'email_sync_2026'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('raw_emails',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('provider', sa.String(length=32), nullable=False, comment='Mailbox provider (gmail)'),
        sa.Column('provider_message_id', sa.String(), nullable=False, comment='Provider message ID for deduplication'),
        sa.Column('from_email', sa.String(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('snippet', sa.String(), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('body_text', sa.Text(), nullable=False),
        sa.Column('body_html', sa.Text(), nullable=True),
        sa.Column('headers', sa.JSON(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False, comment='Sync category the email was fetched for'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'provider', 'provider_message_id', name='uq_raw_emails_user_provider_message')
    )
    op.create_index(op.f('ix_raw_emails_user_id'), 'raw_emails', ['user_id'], unique=False)
    op.create_index(op.f('ix_raw_emails_received_at'), 'raw_emails', ['received_at'], unique=False)

    op.create_table('sync_jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(length=16), server_default='pending', nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('total_emails', sa.Integer(), nullable=True, comment='Set once the message reference list is known'),
        sa.Column('processed_emails', sa.Integer(), server_default='0', nullable=False),
        sa.Column('new_emails', sa.Integer(), server_default='0', nullable=False),
        sa.Column('transactions', sa.Integer(), server_default='0', nullable=False),
        sa.Column('statements', sa.Integer(), server_default='0', nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sync_jobs_user_id'), 'sync_jobs', ['user_id'], unique=False)
    op.create_index(op.f('ix_sync_jobs_status'), 'sync_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_sync_jobs_completed_at'), 'sync_jobs', ['completed_at'], unique=False)

    op.create_table('statements',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('issuer', sa.String(), nullable=False),
        sa.Column('period_start', sa.String(), nullable=False),
        sa.Column('period_end', sa.String(), nullable=False),
        sa.Column('total_due', sa.Float(), nullable=False),
        sa.Column('source_email_id', sa.String(length=36), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_statements_user_id'), 'statements', ['user_id'], unique=False)
    op.create_index(op.f('ix_statements_source_email_id'), 'statements', ['source_email_id'], unique=False)

    op.create_table('transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('dedupe_hash', sa.String(length=64), nullable=False, comment='sha256 of the normalized transaction fields'),
        sa.Column('source_email_id', sa.String(length=36), nullable=False, comment='raw_emails.id the transaction was extracted from'),
        sa.Column('statement_id', sa.String(length=36), nullable=True),
        sa.Column('merchant', sa.String(), nullable=False),
        sa.Column('merchant_raw', sa.String(), nullable=False),
        sa.Column('vpa', sa.String(), nullable=True, comment='UPI virtual payment address'),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('transaction_date', sa.String(length=24), nullable=False, comment='ISO-8601 UTC with milliseconds'),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('transaction_mode', sa.String(length=16), nullable=False),
        sa.Column('extraction_confidence', sa.Float(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('categorization_method', sa.String(length=32), nullable=True),
        sa.Column('requires_review', sa.Boolean(), nullable=False),
        sa.Column('category_metadata', sa.JSON(), nullable=True, comment='Display metadata: icon, color, parent'),
        sa.Column('card_last4', sa.String(length=4), nullable=True),
        sa.Column('card_name', sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'dedupe_hash', name='uq_transactions_user_dedupe_hash')
    )
    op.create_index(op.f('ix_transactions_user_id'), 'transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_transactions_source_email_id'), 'transactions', ['source_email_id'], unique=False)
    op.create_index(op.f('ix_transactions_merchant'), 'transactions', ['merchant'], unique=False)
    op.create_index(op.f('ix_transactions_transaction_date'), 'transactions', ['transaction_date'], unique=False)
    op.create_index(op.f('ix_transactions_category'), 'transactions', ['category'], unique=False)

    op.create_table('merchant_category_rules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('merchant', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('category_metadata', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'merchant', name='uq_merchant_rules_user_merchant')
    )
    op.create_index(op.f('ix_merchant_category_rules_user_id'), 'merchant_category_rules', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_merchant_category_rules_user_id'), table_name='merchant_category_rules')
    op.drop_table('merchant_category_rules')
    for column in ('category', 'transaction_date', 'merchant', 'source_email_id', 'user_id'):
        op.drop_index(op.f(f'ix_transactions_{column}'), table_name='transactions')
    op.drop_table('transactions')
    op.drop_index(op.f('ix_statements_source_email_id'), table_name='statements')
    op.drop_index(op.f('ix_statements_user_id'), table_name='statements')
    op.drop_table('statements')
    op.drop_index(op.f('ix_sync_jobs_completed_at'), table_name='sync_jobs')
    op.drop_index(op.f('ix_sync_jobs_status'), table_name='sync_jobs')
    op.drop_index(op.f('ix_sync_jobs_user_id'), table_name='sync_jobs')
    op.drop_table('sync_jobs')
    op.drop_index(op.f('ix_raw_emails_received_at'), table_name='raw_emails')
    op.drop_index(op.f('ix_raw_emails_user_id'), table_name='raw_emails')
    op.drop_table('raw_emails')
