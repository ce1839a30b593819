"""baseline_migration

Revision ID: 5c1e7a9d3b20
Revises:
Create Date: 2026-10-19 09:12:44.518203

Production-safe migration: Only creates new tables, does not modify existing ones.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d3b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PLAN_TYPES = ('free_trial', 'free', 'standard', 'premium')
SUBSCRIPTION_STATUSES = ('trial', 'active', 'inactive', 'cancelled', 'past_due', 'expired')
ANALYTICS_TIERS = ('basic', 'advanced', 'custom')
SUPPORT_TIERS = ('community', 'priority', 'premium')
BILLING_STATUSES = ('paid', 'failed', 'pending')
NOTIFICATION_TYPES = (
    'social_account_connected', 'social_account_disconnected', 'social_account_connection_failed',
    'post_published', 'post_scheduled', 'post_publish_failed', 'post_schedule_failed',
    'scheduled_post_edited',
    'subscription_activated', 'subscription_cancelled', 'subscription_expired', 'subscription_renewed',
    'profile_updated', 'password_changed', 'profile_picture_updated',
)


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    """
    Production-safe upgrade: Only creates new tables if they don't exist.
    Does not modify existing tables to avoid breaking production deployments.
    """
    # Create users table
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_users'))
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    # Create subscriptions table
    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan_type', sa.Enum(*PLAN_TYPES, name='plan_type'), nullable=False),
            sa.Column('status', sa.Enum(*SUBSCRIPTION_STATUSES, name='subscription_status'), nullable=False),
            sa.Column('start_date', sa.DateTime(), nullable=True),
            sa.Column('end_date', sa.DateTime(), nullable=True),
            sa.Column('trial_end_date', sa.DateTime(), nullable=True),
            sa.Column('next_billing_date', sa.DateTime(), nullable=True),
            sa.Column('current_period_start', sa.DateTime(), nullable=True),
            sa.Column('current_period_end', sa.DateTime(), nullable=True),
            sa.Column('price', sa.Float(), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False),
            sa.Column('limit_social_accounts', sa.Integer(), nullable=False),
            sa.Column('limit_scheduled_posts_per_week', sa.Integer(), nullable=False),
            sa.Column('limit_analytics', sa.Enum(*ANALYTICS_TIERS, name='analytics_tier'), nullable=False),
            sa.Column('limit_support', sa.Enum(*SUPPORT_TIERS, name='support_tier'), nullable=False),
            sa.Column('limit_team_members', sa.Integer(), nullable=False),
            sa.Column('connected_accounts', sa.Integer(), nullable=False),
            sa.Column('scheduled_posts_this_week', sa.Integer(), nullable=False),
            sa.Column('last_reset_date', sa.DateTime(), nullable=True),
            sa.Column('payment_method_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_subscriptions_user_id_users')),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_subscriptions'))
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=True)
        op.create_index(op.f('ix_subscriptions_stripe_customer_id'), 'subscriptions', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_subscriptions_stripe_subscription_id'), 'subscriptions', ['stripe_subscription_id'], unique=False)

    # Create billing_records table
    if not table_exists('billing_records'):
        op.create_table('billing_records',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('subscription_id', sa.Integer(), nullable=False),
            sa.Column('date', sa.DateTime(), nullable=False),
            sa.Column('amount', sa.Float(), nullable=False),
            sa.Column('status', sa.Enum(*BILLING_STATUSES, name='billing_status'), nullable=False),
            sa.Column('invoice_id', sa.String(), nullable=True),
            sa.Column('description', sa.String(), nullable=True),
            sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], name=op.f('fk_billing_records_subscription_id_subscriptions')),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_billing_records')),
            sa.UniqueConstraint('subscription_id', 'invoice_id', 'status', name=op.f('uq_billing_subscription_invoice_status'))
        )
        op.create_index('idx_billing_subscription_date', 'billing_records', ['subscription_id', 'date'], unique=False)
        op.create_index(op.f('ix_billing_records_id'), 'billing_records', ['id'], unique=False)
        op.create_index(op.f('ix_billing_records_subscription_id'), 'billing_records', ['subscription_id'], unique=False)

    # Create notifications table
    if not table_exists('notifications'):
        op.create_table('notifications',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('type', sa.Enum(*NOTIFICATION_TYPES, name='notification_type'), nullable=False),
            sa.Column('title', sa.String(length=100), nullable=False),
            sa.Column('message', sa.String(length=500), nullable=False),
            sa.Column('metadata', sa.JSON(), nullable=False),
            sa.Column('is_read', sa.Boolean(), nullable=False),
            sa.Column('read_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_notifications_user_id_users')),
            sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications'))
        )
        op.create_index('idx_notification_user_created', 'notifications', ['user_id', 'created_at'], unique=False)
        op.create_index('idx_notification_user_read_created', 'notifications', ['user_id', 'is_read', 'created_at'], unique=False)
        op.create_index(op.f('ix_notifications_created_at'), 'notifications', ['created_at'], unique=False)
        op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
        op.create_index(op.f('ix_notifications_is_read'), 'notifications', ['is_read'], unique=False)
        op.create_index(op.f('ix_notifications_type'), 'notifications', ['type'], unique=False)
        op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)


def downgrade() -> None:
    """
    Downgrade: Drop tables created in upgrade.
    Only drops if they exist.
    """
    for table_name in ('notifications', 'billing_records', 'subscriptions', 'users'):
        if table_exists(table_name):
            op.drop_table(table_name)
