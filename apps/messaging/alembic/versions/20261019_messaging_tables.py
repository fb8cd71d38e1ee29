"""otp sessions, notification audit and sms provider config tables

Revision ID: 20261019_messaging_tables
Revises: 
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = '20261019_messaging_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())
    if 'otp_sessions' not in existing:
        op.create_table(
            'otp_sessions',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('phone', sa.String(length=32), nullable=False),
            sa.Column('otp_code', sa.String(length=12), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
            sa.Column('attempts', sa.Integer(), nullable=False, server_default=sa.text('0')),
            sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        )
        op.create_index('ix_otp_sessions_phone_verified', 'otp_sessions', ['phone', 'verified'])
    # The storefront usually owns `notifications` already; only create it on a fresh database.
    if 'notifications' not in existing:
        op.create_table(
            'notifications',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('phone', sa.Text(), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('order_id', sa.String(length=36), nullable=True),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=True, server_default='pending'),
            sa.Column('provider_response', sa.Text(), nullable=True),
            sa.Column('sent_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        )
        op.create_index('ix_notifications_order', 'notifications', ['order_id'])
        op.create_index('ix_notifications_sent_at', 'notifications', ['sent_at'])
    if 'sms_provider_configs' not in existing:
        op.create_table(
            'sms_provider_configs',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('provider', sa.String(length=32), nullable=False),
            sa.Column('api_key', sa.Text(), nullable=True),
            sa.Column('api_secret', sa.Text(), nullable=True),
            sa.Column('sender_id', sa.String(length=64), nullable=True),
            sa.Column('api_url', sa.Text(), nullable=True),
            sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
            sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        )


def downgrade() -> None:
    op.drop_table('sms_provider_configs')
    notification_indexes = {ix['name'] for ix in inspect(op.get_bind()).get_indexes('notifications')}
    # Only a table this migration created carries its indexes; leave the storefront's in place.
    if 'ix_notifications_order' in notification_indexes:
        op.drop_index('ix_notifications_sent_at', table_name='notifications')
        op.drop_index('ix_notifications_order', table_name='notifications')
        op.drop_table('notifications')
    op.drop_index('ix_otp_sessions_phone_verified', table_name='otp_sessions')
    op.drop_table('otp_sessions')
