"""create events, google_tokens and google_sync_state

Revision ID: 0001_calendar_sync_tables
Revises:
Create Date: 2025-01-06 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0001_calendar_sync_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())

    if 'events' not in tables:
        op.create_table(
            'events',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
            sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
            sa.Column('reminder_sent', sa.Boolean(), nullable=False, server_default=sa.text('FALSE')),
            sa.Column('google_event_id', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_events_user_id', 'events', ['user_id'])
        op.create_index('ix_events_start_time', 'events', ['start_time'])
        op.create_index('ix_events_user_google_event', 'events', ['user_id', 'google_event_id'])
        op.create_index('ix_events_reminder_scan', 'events', ['reminder_sent', 'start_time'])

    if 'google_tokens' not in tables:
        op.create_table(
            'google_tokens',
            sa.Column('user_id', sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column('access_token', sa.Text(), nullable=False),
            sa.Column('refresh_token', sa.Text(), nullable=True),
            sa.Column('token_type', sa.String(length=50), nullable=False),
            sa.Column('expiry', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        )

    if 'google_sync_state' not in tables:
        op.create_table(
            'google_sync_state',
            sa.Column('user_id', sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column('last_sync_time', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        )


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())
    if 'google_sync_state' in tables:
        op.drop_table('google_sync_state')
    if 'google_tokens' in tables:
        op.drop_table('google_tokens')
    if 'events' in tables:
        op.drop_index('ix_events_reminder_scan', table_name='events')
        op.drop_index('ix_events_user_google_event', table_name='events')
        op.drop_index('ix_events_start_time', table_name='events')
        op.drop_index('ix_events_user_id', table_name='events')
        op.drop_table('events')
