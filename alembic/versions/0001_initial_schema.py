"""initial advisorhub schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '0001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('advisors',
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_advisors_external_id', 'advisors', ['external_id'], unique=True)

    op.create_table('clients',
        sa.Column('advisor_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('whatsapp', sa.String(length=30), nullable=True),
        sa.Column('assigned_rm', sa.String(length=100), nullable=True),
        sa.Column('risk_profile', sa.String(length=30), nullable=True),
        sa.Column('kyc_status', sa.String(length=20), nullable=True),
        sa.Column('kyc_verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('plan', sa.String(length=30), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('last_active_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('renewal_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['advisor_id'], ['advisors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('advisor_id', 'email', name='uq_client_advisor_email'),
    )
    op.create_index('ix_clients_advisor_id', 'clients', ['advisor_id'])
    op.create_index('ix_clients_plan', 'clients', ['plan'])

    op.create_table('leads',
        sa.Column('advisor_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('whatsapp', sa.String(length=30), nullable=True),
        sa.Column('source', sa.String(length=50), nullable=True),
        sa.Column('stage', sa.String(length=20), nullable=True),
        sa.Column('disposition', sa.String(length=20), nullable=True),
        sa.Column('plan', sa.String(length=30), nullable=True),
        sa.Column('is_elite', sa.Boolean(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('assigned_rm', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('extra_data', postgresql.JSONB(), nullable=True),
        sa.Column('verification_doc_uploaded', sa.Boolean(), nullable=True),
        sa.Column('contract_uploaded', sa.Boolean(), nullable=True),
        sa.Column('risk_profile', sa.String(length=30), nullable=True),
        sa.Column('client_id', sa.UUID(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['advisor_id'], ['advisors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_advisor_id', 'leads', ['advisor_id'])
    op.create_index('ix_leads_source', 'leads', ['source'])
    op.create_index('ix_leads_stage', 'leads', ['stage'])

    op.create_table('lead_status_history',
        sa.Column('lead_id', sa.UUID(), nullable=False),
        sa.Column('old_status', sa.String(length=20), nullable=False),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_status_history_lead_id', 'lead_status_history', ['lead_id'])

    op.create_table('trades',
        sa.Column('advisor_id', sa.UUID(), nullable=False),
        sa.Column('client_id', sa.UUID(), nullable=False),
        sa.Column('stock', sa.String(length=50), nullable=False),
        sa.Column('trade_type', sa.String(length=4), nullable=False),
        sa.Column('segment', sa.String(length=20), nullable=False),
        sa.Column('time_horizon', sa.String(length=20), nullable=False),
        sa.Column('entry', sa.String(length=30), nullable=False),
        sa.Column('entry_max', sa.String(length=30), nullable=True),
        sa.Column('stoploss', sa.String(length=30), nullable=False),
        sa.Column('targets', postgresql.JSONB(), nullable=True),
        sa.Column('target_max', sa.String(length=30), nullable=True),
        sa.Column('range_entry', sa.Boolean(), nullable=True),
        sa.Column('range_target', sa.Boolean(), nullable=True),
        sa.Column('trailing_sl', sa.Boolean(), nullable=True),
        sa.Column('status', sa.String(length=10), nullable=True),
        sa.Column('exit_price', sa.String(length=30), nullable=True),
        sa.Column('exit_price_max', sa.String(length=30), nullable=True),
        sa.Column('exit_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exit_reason', sa.Text(), nullable=True),
        sa.Column('pnl', sa.String(length=30), nullable=True),
        sa.Column('rationale', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['advisor_id'], ['advisors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trades_advisor_id', 'trades', ['advisor_id'])
    op.create_index('ix_trades_client_id', 'trades', ['client_id'])
    op.create_index('ix_trades_stock', 'trades', ['stock'])
    op.create_index('ix_trades_status', 'trades', ['status'])

    op.create_table('trade_events',
        sa.Column('trade_id', sa.UUID(), nullable=False),
        sa.Column('event_type', sa.String(length=20), nullable=False),
        sa.Column('snapshot', postgresql.JSONB(), nullable=True),
        sa.Column('changes', postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['trade_id'], ['trades.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trade_events_trade_id', 'trade_events', ['trade_id'])

    op.create_table('email_logs',
        sa.Column('advisor_id', sa.UUID(), nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=False),
        sa.Column('recipient_name', sa.String(length=200), nullable=True),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('content_type', sa.String(length=50), nullable=True),
        sa.Column('trade_details', postgresql.JSONB(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('message_id', sa.String(length=255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['advisor_id'], ['advisors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_email_logs_advisor_id', 'email_logs', ['advisor_id'])


def downgrade() -> None:
    op.drop_index('ix_email_logs_advisor_id', table_name='email_logs')
    op.drop_table('email_logs')
    op.drop_index('ix_trade_events_trade_id', table_name='trade_events')
    op.drop_table('trade_events')
    op.drop_index('ix_trades_status', table_name='trades')
    op.drop_index('ix_trades_stock', table_name='trades')
    op.drop_index('ix_trades_client_id', table_name='trades')
    op.drop_index('ix_trades_advisor_id', table_name='trades')
    op.drop_table('trades')
    op.drop_index('ix_lead_status_history_lead_id', table_name='lead_status_history')
    op.drop_table('lead_status_history')
    op.drop_index('ix_leads_stage', table_name='leads')
    op.drop_index('ix_leads_source', table_name='leads')
    op.drop_index('ix_leads_advisor_id', table_name='leads')
    op.drop_table('leads')
    op.drop_index('ix_clients_plan', table_name='clients')
    op.drop_index('ix_clients_advisor_id', table_name='clients')
    op.drop_table('clients')
    op.drop_index('ix_advisors_external_id', table_name='advisors')
    op.drop_table('advisors')
