"""create_booking_tables

Skill sessions, feedback and the per-participant calendar versions that
guard check-and-write booking.

Revision ID: 3c1e7a9b2d40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c1e7a9b2d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create booking tables with their store-level guards.

    The CHECK constraints mirror the request validation so rows written
    outside the service still respect participant and duration rules.
    ``version`` columns back the optimistic version checks on sessions and
    calendars; the unique constraint on feedback refuses a second rating
    from the same reviewer even when two submissions race.
    """
    op.create_table(
        'skill_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('requester_id', sa.String(64), nullable=False),
        sa.Column('provider_id', sa.String(64), nullable=False),
        sa.Column('skill', postgresql.JSONB(), nullable=False),
        sa.Column('scheduled_start', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('session_type', sa.String(20), nullable=False, server_default='online'),
        sa.Column('location', sa.String(200), nullable=True),
        sa.Column('meeting_link', sa.String(500), nullable=True),
        sa.Column('request_message', sa.String(500), nullable=True),
        sa.Column('response_message', sa.String(500), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_by', sa.String(64), nullable=True),
        sa.Column('cancellation_reason', sa.String(300), nullable=True),
        sa.Column('alternative_proposal', postgresql.JSONB(), nullable=True),
        sa.Column('requester_notes', sa.Text(), nullable=True),
        sa.Column('provider_notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'requester_id <> provider_id',
            name='ck_skill_sessions_distinct_participants',
        ),
        sa.CheckConstraint(
            'duration_minutes >= 15 AND duration_minutes <= 480',
            name='ck_skill_sessions_duration_range',
        ),
    )
    op.create_index(op.f('ix_skill_sessions_requester_id'), 'skill_sessions', ['requester_id'], unique=False)
    op.create_index(op.f('ix_skill_sessions_provider_id'), 'skill_sessions', ['provider_id'], unique=False)
    op.create_index(op.f('ix_skill_sessions_scheduled_start'), 'skill_sessions', ['scheduled_start'], unique=False)
    op.create_index(op.f('ix_skill_sessions_status'), 'skill_sessions', ['status'], unique=False)
    # Conflict detection scans one participant's calendar by start time
    op.create_index(
        'ix_skill_sessions_requester_calendar',
        'skill_sessions',
        ['requester_id', 'status', 'scheduled_start'],
        unique=False,
    )
    op.create_index(
        'ix_skill_sessions_provider_calendar',
        'skill_sessions',
        ['provider_id', 'status', 'scheduled_start'],
        unique=False,
    )

    op.create_table(
        'session_feedback',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewer_id', sa.String(64), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['skill_sessions.id']),
        sa.UniqueConstraint('session_id', 'reviewer_id', name='uq_session_feedback_reviewer'),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='ck_session_feedback_rating_range'),
    )
    op.create_index(op.f('ix_session_feedback_session_id'), 'session_feedback', ['session_id'], unique=False)

    op.create_table(
        'participant_calendars',
        sa.Column('participant_id', sa.String(64), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('booking_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_booked_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('participant_id'),
    )


def downgrade() -> None:
    op.drop_table('participant_calendars')
    op.drop_index(op.f('ix_session_feedback_session_id'), table_name='session_feedback')
    op.drop_table('session_feedback')
    op.drop_index('ix_skill_sessions_provider_calendar', table_name='skill_sessions')
    op.drop_index('ix_skill_sessions_requester_calendar', table_name='skill_sessions')
    op.drop_index(op.f('ix_skill_sessions_status'), table_name='skill_sessions')
    op.drop_index(op.f('ix_skill_sessions_scheduled_start'), table_name='skill_sessions')
    op.drop_index(op.f('ix_skill_sessions_provider_id'), table_name='skill_sessions')
    op.drop_index(op.f('ix_skill_sessions_requester_id'), table_name='skill_sessions')
    op.drop_table('skill_sessions')
