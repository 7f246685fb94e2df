"""create attempt engine tables

Revision ID: e1a2b3c4d5f6
Revises:
Create Date: 2026-10-18 10:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'e1a2b3c4d5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


attempt_status = postgresql.ENUM(
    'in_progress', 'completed', 'timed_out', 'abandoned',
    name='attempt_status',
    create_type=False,
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    attempt_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('part_id', postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('question_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_marks', sa.Integer(), nullable=False),
        sa.Column('passing_marks', sa.Integer(), nullable=False),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('attempt_window_days', sa.Integer(), nullable=True),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('show_results_immediately', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('allow_review', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true'), index=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('time_limit_minutes > 0', name='ck_assignments_time_limit_positive'),
        sa.CheckConstraint('max_attempts > 0', name='ck_assignments_max_attempts_positive'),
        sa.CheckConstraint('passing_marks >= 0', name='ck_assignments_passing_marks_non_negative'),
    )

    op.create_table(
        'questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('assignment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('question_type', sa.String(20), nullable=False, server_default='single'),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('options', postgresql.JSONB(), nullable=False),
        sa.Column('correct_answers', postgresql.JSONB(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('marks', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('difficulty_level', sa.String(10), nullable=False, server_default='medium'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )

    op.create_table(
        'attempts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('assignment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('status', attempt_status, nullable=False, server_default='in_progress', index=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deadline_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('answers', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('question_order', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_remaining_seconds', sa.Integer(), nullable=True),
        sa.Column('last_saved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('student_id', 'assignment_id', 'attempt_number', name='uq_attempt_student_assignment_number'),
    )
    op.create_index(
        'uq_attempt_one_in_progress',
        'attempts',
        ['student_id', 'assignment_id'],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    op.create_table(
        'submissions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('attempt_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('attempts.id', ondelete='CASCADE'), nullable=False, unique=True, index=True),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('assignment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('answers', postgresql.JSONB(), nullable=False),
        sa.Column('review_data', postgresql.JSONB(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('total_marks', sa.Integer(), nullable=False),
        sa.Column('percentage', sa.Float(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('time_taken_seconds', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('status', attempt_status, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'assignment_results',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('assignment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('best_submission_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('submissions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('best_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('attempts_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('passed', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('completion_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('student_id', 'assignment_id', name='uq_result_student_assignment'),
    )


def downgrade() -> None:
    op.drop_table('assignment_results')
    op.drop_table('submissions')
    op.drop_index('uq_attempt_one_in_progress', table_name='attempts')
    op.drop_table('attempts')
    op.drop_table('questions')
    op.drop_table('assignments')
    attempt_status.drop(op.get_bind(), checkfirst=True)
