"""initial ledger schema

Revision ID: 4b1e2c7d9a10
Revises:
Create Date: 2026-10-17 09:12:31.402118

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b1e2c7d9a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('member_code', sa.String(length=40), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('father_name', sa.String(length=120), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('account_number', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('member_code'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('member_id'),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=True),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])

    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('weekly_amount', sa.Float(), nullable=False),
        sa.Column('interest_rate', sa.Float(), nullable=False),
        sa.Column('loan_weeks', sa.Integer(), nullable=False),
        sa.Column('reserve_pct', sa.Float(), nullable=False),
        sa.Column('insurance_pct', sa.Float(), nullable=False),
        sa.Column('admin_fee_pct', sa.Float(), nullable=False),
        sa.Column('penalty_loan_pct', sa.Float(), nullable=False),
        sa.Column('penalty_interest_pct', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'group_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('joining_week', sa.Integer(), nullable=False),
        sa.Column('joining_date', sa.DateTime(), nullable=False),
        sa.Column('weekly_amount', sa.Float(), nullable=False),
        sa.Column('total_contributed', sa.Float(), nullable=False),
        sa.Column('total_interest_received', sa.Float(), nullable=False),
        sa.Column('benefit_amount', sa.Float(), nullable=False),
        sa.Column('benefit_week', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_group_members_group_id', 'group_members', ['group_id'])
    op.create_index('ix_group_members_member_id', 'group_members', ['member_id'])
    op.create_index(
        'uq_active_group_member', 'group_members', ['group_id', 'member_id'], unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'loan_cycles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_number', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('total_members', sa.Integer(), nullable=False),
        sa.Column('weekly_amount', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('cycle_number'),
    )
    op.create_index('ix_loan_cycles_group_id', 'loan_cycles', ['group_id'])

    op.create_table(
        'loan_sequences',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('loan_cycles.id'), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('loan_amount', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('disbursed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('cycle_id', 'week', name='uq_cycle_week'),
    )
    op.create_index('ix_loan_sequences_cycle_id', 'loan_sequences', ['cycle_id'])
    op.create_index('ix_loan_sequences_member_id', 'loan_sequences', ['member_id'])

    op.create_table(
        'group_funds',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('loan_cycles.id'), nullable=False),
        sa.Column('investment_pool', sa.Float(), nullable=False),
        sa.Column('interest_pool', sa.Float(), nullable=False),
        sa.Column('emergency_reserve', sa.Float(), nullable=False),
        sa.Column('insurance_fund', sa.Float(), nullable=False),
        sa.Column('admin_fee', sa.Float(), nullable=False),
        sa.Column('total_funds', sa.Float(), nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_group_funds_cycle_id', 'group_funds', ['cycle_id'], unique=True)

    op.create_table(
        'weekly_collections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('loan_cycles.id'), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('collection_date', sa.DateTime(), nullable=False),
        sa.Column('total_collected', sa.Float(), nullable=False),
        sa.Column('payment_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('cycle_id', 'week', name='uq_collection_cycle_week'),
    )
    op.create_index('ix_weekly_collections_cycle_id', 'weekly_collections', ['cycle_id'])

    op.create_table(
        'collection_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('collection_id', sa.Integer(), sa.ForeignKey('weekly_collections.id'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=15), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('is_backdated', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('collection_id', 'member_id', name='uq_collection_member'),
    )
    op.create_index('ix_collection_payments_collection_id', 'collection_payments', ['collection_id'])
    op.create_index('ix_collection_payments_member_id', 'collection_payments', ['member_id'])

    op.create_table(
        'loans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('cycle_id', sa.Integer(), sa.ForeignKey('loan_cycles.id'), nullable=True),
        sa.Column('sequence_id', sa.Integer(), sa.ForeignKey('loan_sequences.id'), nullable=True),
        sa.Column('principal', sa.Float(), nullable=False),
        sa.Column('remaining', sa.Float(), nullable=False),
        sa.Column('interest_rate', sa.Float(), nullable=False),
        sa.Column('weeks', sa.Integer(), nullable=False),
        sa.Column('current_week', sa.Integer(), nullable=False),
        sa.Column('total_interest', sa.Float(), nullable=False),
        sa.Column('total_principal_paid', sa.Float(), nullable=False),
        sa.Column('late_payment_penalty', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('disbursed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('guarantor1_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=True),
        sa.Column('guarantor2_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('sequence_id'),
    )
    op.create_index('ix_loans_member_id', 'loans', ['member_id'])
    op.create_index('ix_loans_cycle_id', 'loans', ['cycle_id'])
    op.create_index('ix_loans_status', 'loans', ['status'])

    op.create_table(
        'loan_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('loan_id', sa.Integer(), sa.ForeignKey('loans.id'), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('interest', sa.Float(), nullable=False),
        sa.Column('penalty', sa.Float(), nullable=False),
        sa.Column('remaining', sa.Float(), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=40), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_loan_transactions_loan_id', 'loan_transactions', ['loan_id'])
    op.create_index('ix_loan_transactions_date', 'loan_transactions', ['date'])

    op.create_table(
        'interest_distributions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('loan_id', sa.Integer(), sa.ForeignKey('loans.id'), nullable=False),
        sa.Column('group_member_id', sa.Integer(), sa.ForeignKey('group_members.id'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('contribution_snapshot', sa.Float(), nullable=False),
        sa.Column('distribution_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_interest_distributions_loan_id', 'interest_distributions', ['loan_id'])
    op.create_index('ix_interest_distributions_group_member_id', 'interest_distributions', ['group_member_id'])

    op.create_table(
        'savings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id'), nullable=False),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_savings_member_id', 'savings', ['member_id'], unique=True)

    op.create_table(
        'savings_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('savings_id', sa.Integer(), sa.ForeignKey('savings.id'), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('loan_id', sa.Integer(), sa.ForeignKey('loans.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_savings_transactions_savings_id', 'savings_transactions', ['savings_id'])
    op.create_index('ix_savings_transactions_date', 'savings_transactions', ['date'])


def downgrade():
    op.drop_table('savings_transactions')
    op.drop_table('savings')
    op.drop_table('interest_distributions')
    op.drop_table('loan_transactions')
    op.drop_table('loans')
    op.drop_table('collection_payments')
    op.drop_table('weekly_collections')
    op.drop_table('group_funds')
    op.drop_table('loan_sequences')
    op.drop_table('loan_cycles')
    op.drop_index('uq_active_group_member', table_name='group_members')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_table('audit_logs')
    op.drop_table('users')
    op.drop_table('members')
