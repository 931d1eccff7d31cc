"""Engagement scheduler and Reframe Coach tables.

Revision ID: 0001_engagement_and_practice
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_engagement_and_practice'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='client'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active', index=True),
        sa.Column('therapist_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )

    op.create_table(
        'activity_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('module', sa.String(30), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('ix_activity_events_created_at', 'activity_events', ['created_at'])

    op.create_table(
        'engagement_states',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False, unique=True, index=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('reminder_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('digest_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('escalation_stage', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('updated_at'),
    )

    op.create_table(
        'engagement_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('data', sa.JSON(), nullable=False),
        _timestamp('updated_at'),
    )

    op.create_table(
        'notice_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), index=True),
        sa.Column('kind', sa.Enum('REMINDER', 'DIGEST', 'ESCALATION', name='noticekind'), nullable=False),
        sa.Column('stage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('channel', sa.Enum('EMAIL', 'PUSH', name='deliverychannel'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'SENT', 'FAILED', name='noticestatus'), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('idempotency_key', sa.String(255), unique=True, index=True),
        _timestamp('created_at'),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notice_logs_created_at', 'notice_logs', ['created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp('created_at'),
    )

    op.create_table(
        'thought_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('automatic_thoughts', sa.Text(), nullable=False),
        sa.Column('cognitive_distortions', sa.JSON(), nullable=False),
        sa.Column('emotion_category', sa.String(50), nullable=True),
        sa.Column('evidence_for', sa.Text(), nullable=True),
        sa.Column('evidence_against', sa.Text(), nullable=True),
        sa.Column('alternative_perspective', sa.Text(), nullable=True),
        _timestamp('created_at'),
    )

    op.create_table(
        'reframe_assignments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('thought_record_id', sa.Integer(),
                  sa.ForeignKey('thought_records.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='assigned'),
        sa.Column('is_priority', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('reframe_data', sa.JSON(), nullable=False),
        _timestamp('assigned_at'),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'practice_results',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('session_id', sa.String(64), nullable=False, unique=True, index=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('assignment_id', sa.Integer(),
                  sa.ForeignKey('reframe_assignments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('thought_record_id', sa.Integer(),
                  sa.ForeignKey('thought_records.id', ondelete='SET NULL'), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('time_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scenario_data', sa.JSON(), nullable=False),
        sa.Column('user_choices', sa.JSON(), nullable=False),
        sa.Column('game_updates', sa.JSON(), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('ix_practice_results_created_at', 'practice_results', ['created_at'])

    op.create_table(
        'game_profiles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(),
                  sa.ForeignKey('users.id', ondelete='CASCADE'),
                  nullable=False, unique=True, index=True),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('practice_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_practice_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('achievements', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )


def downgrade() -> None:
    op.drop_table('game_profiles')
    op.drop_index('ix_practice_results_created_at', table_name='practice_results')
    op.drop_table('practice_results')
    op.drop_table('reframe_assignments')
    op.drop_table('thought_records')
    op.drop_table('notifications')
    op.drop_index('ix_notice_logs_created_at', table_name='notice_logs')
    op.drop_table('notice_logs')
    op.drop_table('engagement_settings')
    op.drop_table('engagement_states')
    op.drop_index('ix_activity_events_created_at', table_name='activity_events')
    op.drop_table('activity_events')
    op.drop_table('users')

    sa.Enum(name='noticestatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='deliverychannel').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='noticekind').drop(op.get_bind(), checkfirst=True)
