"""gradebook core tables

Revision ID: 20261019_0001
Revises: 
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('open_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('login_method', sa.String(length=64), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('edu_role', sa.String(length=16), nullable=False, server_default='teacher'),
        sa.Column('account_status', sa.String(length=16), nullable=False, server_default='approved'),
        sa.Column('avatar_initials', sa.String(length=4), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_signed_in', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_open_id', 'users', ['open_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_edu_role', 'users', ['edu_role'])
    op.create_index('ix_users_account_status', 'users', ['account_status'])

    op.create_table(
        'classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subject_name', sa.String(length=128), nullable=False),
        sa.Column('grade_level', sa.String(length=32), nullable=False),
        sa.Column('section', sa.String(length=32), nullable=False),
        sa.Column('academic_year', sa.String(length=16), nullable=False),
        sa.Column('term', sa.String(length=32), nullable=False),
        sa.Column('alert_threshold', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_classes_id', 'classes', ['id'])
    op.create_index('ix_classes_teacher_id', 'classes', ['teacher_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('share_token', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('class_id', 'student_code', name='uq_students_class_code'),
        sa.UniqueConstraint('share_token', name='uq_students_share_token'),
    )
    op.create_index('ix_students_id', 'students', ['id'])
    op.create_index('ix_students_class_id', 'students', ['class_id'])
    op.create_index('ix_students_student_code', 'students', ['student_code'])
    op.create_index('ix_students_share_token', 'students', ['share_token'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('week_number', sa.Integer(), nullable=True),
        sa.Column('week_label', sa.String(length=32), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_assignments_id', 'assignments', ['id'])
    op.create_index('ix_assignments_class_id', 'assignments', ['class_id'])
    op.create_index('ix_assignments_class_week', 'assignments', ['class_id', 'week_number'])

    op.create_table(
        'submissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignment_id', sa.Integer(), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('student_id', 'assignment_id', name='uq_submissions_student_assignment'),
    )
    op.create_index('ix_submissions_id', 'submissions', ['id'])
    op.create_index('ix_submissions_student_id', 'submissions', ['student_id'])
    op.create_index('ix_submissions_assignment_id', 'submissions', ['assignment_id'])

    op.create_table(
        'assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('date_taken', sa.Date(), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='quiz'),
        sa.Column('max_score', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('file_path', sa.Text(), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_name', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_assessments_id', 'assessments', ['id'])
    op.create_index('ix_assessments_class_id', 'assessments', ['class_id'])

    op.create_table(
        'grades',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assessment_id', sa.Integer(), sa.ForeignKey('assessments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('student_id', 'assessment_id', name='uq_grades_student_assessment'),
    )
    op.create_index('ix_grades_id', 'grades', ['id'])
    op.create_index('ix_grades_student_id', 'grades', ['student_id'])
    op.create_index('ix_grades_assessment_id', 'grades', ['assessment_id'])

    op.create_table(
        'teacher_notes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('class_id', name='uq_teacher_notes_class_id'),
    )
    op.create_index('ix_teacher_notes_id', 'teacher_notes', ['id'])
    op.create_index('ix_teacher_notes_class_id', 'teacher_notes', ['class_id'])


def downgrade() -> None:
    op.drop_table('teacher_notes')
    op.drop_table('grades')
    op.drop_table('assessments')
    op.drop_table('submissions')
    op.drop_table('assignments')
    op.drop_table('students')
    op.drop_table('classes')
    op.drop_table('users')
