"""Initial PDC schema: cheques, cheque events and collaborator tables

Revision ID: 20261018_pdc_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. tenants, invoices, bank_accounts (read models of subsystems that own them)
2. pdcs (post-dated cheques with replacement chain and version column)
3. pdc_events (append-only cheque audit log)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_pdc_initial'
down_revision = None
branch_labels = None
depends_on = None


PDC_STATUSES = ('RECEIVED', 'DUE', 'DEPOSITED', 'CLEARED', 'BOUNCED', 'CANCELLED', 'REPLACED', 'WITHDRAWN')
INVOICE_STATUSES = ('DRAFT', 'SENT', 'PARTIALLY_PAID', 'PAID', 'OVERDUE', 'CANCELLED')
NEW_PAYMENT_METHODS = ('BANK_TRANSFER', 'CASH', 'NEW_CHEQUE')


def upgrade():
    # ==========================================================================
    # 1. COLLABORATOR TABLES
    # ==========================================================================
    op.create_table('tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('bank_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('balance_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.Enum(*INVOICE_STATUSES, name='invoice_status', native_enum=False, create_constraint=True, length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('paid_amount >= 0', name='ck_invoices_paid_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoices_tenant_id'), ['tenant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_invoices_status'), ['status'], unique=False)

    # ==========================================================================
    # 2. PDCS TABLE
    # ==========================================================================
    op.create_table('pdcs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cheque_number', sa.String(length=50), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('lease_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('cheque_date', sa.Date(), nullable=False),
        sa.Column('deposit_date', sa.Date(), nullable=True),
        sa.Column('cleared_date', sa.Date(), nullable=True),
        sa.Column('bounced_date', sa.Date(), nullable=True),
        sa.Column('withdrawal_date', sa.Date(), nullable=True),
        sa.Column('status', sa.Enum(*PDC_STATUSES, name='pdc_status', native_enum=False, create_constraint=True, length=20), nullable=False),
        sa.Column('bounce_reason', sa.String(length=255), nullable=True),
        sa.Column('withdrawal_reason', sa.String(length=255), nullable=True),
        sa.Column('new_payment_method', sa.Enum(*NEW_PAYMENT_METHODS, name='pdc_new_payment_method', native_enum=False, create_constraint=True, length=20), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('bank_account_id', sa.Integer(), nullable=True),
        sa.Column('replacement_pdc_id', sa.Integer(), nullable=True),
        sa.Column('original_pdc_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_pdcs_amount_positive'),
        sa.CheckConstraint('replacement_pdc_id IS NULL OR replacement_pdc_id <> id', name='ck_pdcs_replacement_not_self'),
        sa.CheckConstraint(
            'replacement_pdc_id IS NULL OR original_pdc_id IS NULL OR replacement_pdc_id <> original_pdc_id',
            name='ck_pdcs_chain_distinct'
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ),
        sa.ForeignKeyConstraint(['bank_account_id'], ['bank_accounts.id'], ),
        sa.ForeignKeyConstraint(['replacement_pdc_id'], ['pdcs.id'], ),
        sa.ForeignKeyConstraint(['original_pdc_id'], ['pdcs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cheque_number', 'tenant_id', name='uq_pdcs_cheque_tenant'),
        sa.UniqueConstraint('replacement_pdc_id'),
        sa.UniqueConstraint('original_pdc_id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pdcs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pdcs_cheque_number'), ['cheque_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_bank_name'), ['bank_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_tenant_id'), ['tenant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_invoice_id'), ['invoice_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_lease_id'), ['lease_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_cheque_date'), ['cheque_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_deposit_date'), ['deposit_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdcs_bank_account_id'), ['bank_account_id'], unique=False)
        batch_op.create_index('ix_pdcs_status_cheque_date', ['status', 'cheque_date'], unique=False)

    # ==========================================================================
    # 3. PDC EVENTS TABLE
    # ==========================================================================
    op.create_table('pdc_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pdc_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('to_status', sa.String(length=20), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['pdc_id'], ['pdcs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pdc_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_pdc_events_pdc_id'), ['pdc_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pdc_events_event_type'), ['event_type'], unique=False)
        batch_op.create_index('ix_pdc_events_pdc_occurred', ['pdc_id', 'occurred_at'], unique=False)


def downgrade():
    with op.batch_alter_table('pdc_events', schema=None) as batch_op:
        batch_op.drop_index('ix_pdc_events_pdc_occurred')
        batch_op.drop_index(batch_op.f('ix_pdc_events_event_type'))
        batch_op.drop_index(batch_op.f('ix_pdc_events_pdc_id'))
    op.drop_table('pdc_events')

    with op.batch_alter_table('pdcs', schema=None) as batch_op:
        batch_op.drop_index('ix_pdcs_status_cheque_date')
        for column in ('bank_account_id', 'status', 'deposit_date', 'cheque_date', 'lease_id',
                       'invoice_id', 'tenant_id', 'bank_name', 'cheque_number'):
            batch_op.drop_index(batch_op.f(f'ix_pdcs_{column}'))
    op.drop_table('pdcs')

    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_invoices_status'))
        batch_op.drop_index(batch_op.f('ix_invoices_tenant_id'))
    op.drop_table('invoices')
    op.drop_table('bank_accounts')
    op.drop_table('tenants')
