"""billing schema: users, plans, user subscriptions, webhook events, downloads, usage stats

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '3f1c9a7d2b10'
down_revision = None
branch_labels = None
depends_on = None

_TS = sa.DateTime(timezone=True)
_JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('first_name', sa.String(length=120), nullable=True),
        sa.Column('last_name', sa.String(length=120), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('profile_image_url', sa.String(length=512), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', _TS, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', _TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_stripe_customer_id', 'users', ['stripe_customer_id'], unique=True)

    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=80), nullable=False, unique=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('features', _JSON, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column('stripe_price_id', sa.String(length=64), nullable=True, unique=True),
        sa.Column('created_at', _TS, nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'user_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('current_period_start', _TS, nullable=False),
        sa.Column('current_period_end', _TS, nullable=False),
        sa.Column('trial_end', _TS, nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column('created_at', _TS, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', _TS, nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(['plan_id'], ['subscription_plans.id'], ondelete="RESTRICT"),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'])
    op.create_index('ix_user_subscriptions_plan_id', 'user_subscriptions', ['plan_id'])
    op.create_index('ix_user_subscriptions_stripe_subscription_id', 'user_subscriptions', ['stripe_subscription_id'], unique=True)
    op.create_index('ix_user_subscriptions_status', 'user_subscriptions', ['status'])
    op.create_index('ix_user_subscriptions_current_period_end', 'user_subscriptions', ['current_period_end'])

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=80), nullable=False),
        sa.Column('payload', _JSON, nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column('retries', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('processed_at', _TS, nullable=True),
        sa.Column('received_at', _TS, nullable=False, server_default=sa.func.now()),
    )
    # The unique index on stripe_event_id is the idempotency guarantee
    op.create_index('ix_webhook_events_stripe_event_id', 'webhook_events', ['stripe_event_id'], unique=True)
    op.create_index('ix_webhook_events_event_type', 'webhook_events', ['event_type'])
    op.create_index('ix_webhook_events_processed', 'webhook_events', ['processed'])

    op.create_table(
        'downloads',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('platform', sa.String(length=16), nullable=False),
        sa.Column('version', sa.String(length=32), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('downloaded_at', _TS, nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete="SET NULL"),
        sa.CheckConstraint("platform IN ('mac','windows','linux')", name="ck_downloads_platform"),
    )
    op.create_index('ix_downloads_user_id', 'downloads', ['user_id'])
    op.create_index('ix_downloads_platform', 'downloads', ['platform'])

    op.create_table(
        'usage_stats',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('date', _TS, nullable=False, server_default=sa.func.now()),
        sa.Column('session_duration', sa.Integer(), nullable=True),
        sa.Column('blink_count', sa.Integer(), nullable=True),
        sa.Column('posture_alerts', sa.Integer(), nullable=True),
        sa.Column('focus_sessions', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete="CASCADE"),
    )
    op.create_index('ix_usage_stats_user_id', 'usage_stats', ['user_id'])
    op.create_index('ix_usage_stats_date', 'usage_stats', ['date'])


def downgrade():
    op.drop_index('ix_usage_stats_date', table_name='usage_stats')
    op.drop_index('ix_usage_stats_user_id', table_name='usage_stats')
    op.drop_table('usage_stats')

    op.drop_index('ix_downloads_platform', table_name='downloads')
    op.drop_index('ix_downloads_user_id', table_name='downloads')
    op.drop_table('downloads')

    op.drop_index('ix_webhook_events_processed', table_name='webhook_events')
    op.drop_index('ix_webhook_events_event_type', table_name='webhook_events')
    op.drop_index('ix_webhook_events_stripe_event_id', table_name='webhook_events')
    op.drop_table('webhook_events')

    op.drop_index('ix_user_subscriptions_current_period_end', table_name='user_subscriptions')
    op.drop_index('ix_user_subscriptions_status', table_name='user_subscriptions')
    op.drop_index('ix_user_subscriptions_stripe_subscription_id', table_name='user_subscriptions')
    op.drop_index('ix_user_subscriptions_plan_id', table_name='user_subscriptions')
    op.drop_index('ix_user_subscriptions_user_id', table_name='user_subscriptions')
    op.drop_table('user_subscriptions')

    op.drop_table('subscription_plans')

    op.drop_index('ix_users_stripe_customer_id', table_name='users')
    op.drop_table('users')
