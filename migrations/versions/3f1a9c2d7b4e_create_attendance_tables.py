"""create_attendance_tables

Revision ID: 3f1a9c2d7b4e
Revises:
Create Date: 2026-10-19 10:12:04.118532

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b4e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = sa.Enum('ADMIN', 'HR', 'EMPLOYEE', name='userrole')
attendance_origin = sa.Enum('REALTIME', 'MANUAL', name='attendanceorigin')
attendance_state = sa.Enum('NOT_CHECKED_IN', 'WORKING', 'LUNCH_BREAK', 'PERSONAL_BREAK', 'CHECKED_OUT', name='attendancestate')
attendance_status = sa.Enum('PRESENT', 'ABSENT', 'HALF_DAY', 'WFH', name='attendancestatus')


def audit_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        *audit_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'departments',
        *audit_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('code'),
    )
    op.create_index('ix_departments_id', 'departments', ['id'])

    op.create_table(
        'employees',
        *audit_columns(),
        sa.Column('employee_code', sa.String(length=20), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('designation', sa.String(length=100), nullable=True),
        sa.Column('date_of_joining', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_employees_id', 'employees', ['id'])
    op.create_index('ix_employees_employee_code', 'employees', ['employee_code'], unique=True)

    op.create_table(
        'attendances',
        *audit_columns(),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('origin', attendance_origin, nullable=False),
        sa.Column('current_state', attendance_state, nullable=False),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('lunch_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lunch_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lunch_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('total_working_minutes', sa.Integer(), nullable=False),
        sa.Column('total_break_minutes', sa.Integer(), nullable=False),
        sa.Column('check_in', sa.DateTime(timezone=True), nullable=True),
        sa.Column('check_out', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('marked_by', sa.Integer(), nullable=True),
        sa.Column('is_late', sa.Boolean(), nullable=True),
        sa.Column('late_minutes', sa.Integer(), nullable=True),
        sa.Column('early_departure', sa.Boolean(), nullable=True),
        sa.Column('early_minutes', sa.Integer(), nullable=True),
        sa.Column('overtime_minutes', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['marked_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'attendance_date', name='uq_attendance_employee_date'),
    )
    op.create_index('ix_attendances_id', 'attendances', ['id'])
    op.create_index('ix_attendances_attendance_date', 'attendances', ['attendance_date'])
    op.create_index('ix_attendances_status', 'attendances', ['status'])

    op.create_table(
        'attendance_work_sessions',
        *audit_columns(),
        sa.Column('attendance_id', sa.Integer(), nullable=False),
        sa.Column('check_in', sa.DateTime(timezone=True), nullable=False),
        sa.Column('check_out', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['attendance_id'], ['attendances.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attendance_work_sessions_id', 'attendance_work_sessions', ['id'])
    op.create_index('ix_attendance_work_sessions_attendance_id', 'attendance_work_sessions', ['attendance_id'])

    op.create_table(
        'attendance_personal_breaks',
        *audit_columns(),
        sa.Column('attendance_id', sa.Integer(), nullable=False),
        sa.Column('break_out', sa.DateTime(timezone=True), nullable=False),
        sa.Column('break_in', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['attendance_id'], ['attendances.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_attendance_personal_breaks_id', 'attendance_personal_breaks', ['id'])
    op.create_index('ix_attendance_personal_breaks_attendance_id', 'attendance_personal_breaks', ['attendance_id'])


def downgrade():
    op.drop_table('attendance_personal_breaks')
    op.drop_table('attendance_work_sessions')
    op.drop_table('attendances')
    op.drop_table('employees')
    op.drop_table('departments')
    op.drop_table('users')

    bind = op.get_bind()
    for enum in (attendance_status, attendance_state, attendance_origin, user_role):
        enum.drop(bind, checkfirst=True)
