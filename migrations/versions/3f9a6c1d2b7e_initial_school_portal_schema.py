"""Initial School Portal schema

Revision ID: 3f9a6c1d2b7e
Revises:
Create Date: 2026-09-14

Creates users and role links, schools, academics (classes, students,
subjects, timetable, assignments, grades), finances (fee structures,
invoices, line items), announcements and the error log.

Enum types are created once up front; term_period is shared by several
tables, so the column types use create_type=False.

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f9a6c1d2b7e'
down_revision = None
branch_labels = None
depends_on = None


user_role = postgresql.ENUM('SUPER_ADMIN', 'SCHOOL_ADMIN', 'TEACHER', 'STUDENT', 'PARENT', name='user_role', create_type=False)
term_period = postgresql.ENUM('FIRST_TERM', 'SECOND_TERM', 'THIRD_TERM', name='term_period', create_type=False)
gender = postgresql.ENUM('MALE', 'FEMALE', 'OTHER', 'PREFER_NOT_TO_SAY', name='gender', create_type=False)
day_of_week = postgresql.ENUM(
    'MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY', 'SATURDAY', 'SUNDAY',
    name='day_of_week', create_type=False,
)
payment_status = postgresql.ENUM(
    'PENDING', 'PAID', 'PARTIALLY_PAID', 'OVERDUE', 'CANCELLED', 'REFUNDED',
    name='payment_status', create_type=False,
)

ENUM_TYPES = (user_role, term_period, gender, day_of_week, payment_status)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    """Create the full schema."""
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone_number', sa.String(50), nullable=True, unique=True),
        sa.Column('profile_picture', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('role', user_role, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'super_admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'schools',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state_or_region', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('phone_number', sa.String(50), nullable=True),
        sa.Column('school_email', sa.String(255), nullable=False, unique=True),
        sa.Column('website', sa.String(500), nullable=True),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('current_academic_year', sa.String(9), nullable=True),
        sa.Column('current_term', term_period, nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='GHS'),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='Africa/Accra'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by_super_admin_id', sa.Integer(),
                  sa.ForeignKey('super_admins.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'school_admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('job_title', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'school_id', name='uq_school_admins_user_school'),
    )
    op.create_index('ix_school_admins_school_id', 'school_admins', ['school_id'])

    op.create_table(
        'teachers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_id_number', sa.String(50), nullable=True),
        sa.Column('date_of_joining', sa.Date(), nullable=True),
        sa.Column('qualifications', sa.Text(), nullable=True),
        sa.Column('specialization', sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'school_id', name='uq_teachers_user_school'),
        sa.UniqueConstraint('school_id', 'teacher_id_number', name='uq_teachers_school_id_number'),
    )

    op.create_table(
        'classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('section', sa.String(50), nullable=True),
        sa.Column('academic_year', sa.String(9), nullable=False),
        sa.Column('homeroom_teacher_id', sa.Integer(), sa.ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('school_id', 'name', 'section', 'academic_year', name='uq_classes_school_name_section_year'),
    )

    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('student_id_number', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('middle_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('gender', gender, nullable=False),
        sa.Column('enrollment_date', sa.Date(), nullable=False),
        sa.Column('profile_picture_url', sa.String(500), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state_or_region', sa.String(100), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('emergency_contact_name', sa.String(200), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(50), nullable=True),
        sa.Column('blood_group', sa.String(10), nullable=True),
        # Fernet ciphertext
        sa.Column('allergies', sa.LargeBinary(), nullable=True),
        sa.Column('medical_notes', sa.LargeBinary(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('current_class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('school_id', 'student_id_number', name='uq_students_school_id_number'),
    )
    op.create_index('ix_students_school_class', 'students', ['school_id', 'current_class_id'])

    op.create_table(
        'subjects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(20), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('school_id', 'name', name='uq_subjects_school_name'),
        sa.UniqueConstraint('school_id', 'code', name='uq_subjects_school_code'),
    )

    op.create_table(
        'timetable_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('day_of_week', day_of_week, nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('room', sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_timetable_slots_school_day', 'timetable_slots', ['school_id', 'day_of_week'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('max_marks', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'student_grades',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assignment_id', sa.Integer(), sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('academic_year', sa.String(9), nullable=False),
        sa.Column('term', term_period, nullable=False),
        sa.Column('marks_obtained', sa.Float(), nullable=True),
        sa.Column('grade_letter', sa.String(5), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'fee_structures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('academic_year', sa.String(9), nullable=False),
        sa.Column('term', term_period, nullable=True),
        sa.Column('frequency', sa.String(50), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('school_id', 'name', 'academic_year', 'term', name='uq_fee_structures_school_name_year_term'),
    )

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('invoice_number', sa.String(20), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', payment_status, nullable=False, server_default='PENDING'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('academic_year', sa.String(9), nullable=False),
        sa.Column('term', term_period, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('school_id', 'invoice_number', name='uq_invoices_school_number'),
    )
    op.create_index('ix_invoices_status_due_date', 'invoices', ['status', 'due_date'])

    op.create_table(
        'invoice_line_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('fee_structure_id', sa.Integer(), sa.ForeignKey('fee_structures.id', ondelete='SET NULL'), nullable=True),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
    )

    op.create_table(
        'school_announcements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('publish_date', sa.DateTime(), nullable=False),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('audience', sa.String(100), nullable=True, server_default='ALL'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_admin_id', sa.Integer(),
                  sa.ForeignKey('school_admins.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_school_announcements_school_publish', 'school_announcements', ['school_id', 'publish_date'])

    op.create_table(
        'error_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('error_type', sa.String(100), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('request_path', sa.String(500), nullable=True),
        sa.Column('request_method', sa.String(10), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('ip_address', sa.String(50), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('stack_trace', sa.Text(), nullable=True),
    )
    op.create_index('ix_error_logs_timestamp', 'error_logs', ['timestamp'])

    print("✅ Created School Portal schema")


def downgrade():
    """Drop everything created by upgrade()."""
    op.drop_index('ix_error_logs_timestamp', table_name='error_logs')
    op.drop_table('error_logs')
    op.drop_index('ix_school_announcements_school_publish', table_name='school_announcements')
    op.drop_table('school_announcements')
    op.drop_table('invoice_line_items')
    op.drop_index('ix_invoices_status_due_date', table_name='invoices')
    op.drop_table('invoices')
    op.drop_table('fee_structures')
    op.drop_table('student_grades')
    op.drop_table('assignments')
    op.drop_index('ix_timetable_slots_school_day', table_name='timetable_slots')
    op.drop_table('timetable_slots')
    op.drop_table('subjects')
    op.drop_index('ix_students_school_class', table_name='students')
    op.drop_table('students')
    op.drop_table('classes')
    op.drop_table('teachers')
    op.drop_index('ix_school_admins_school_id', table_name='school_admins')
    op.drop_table('school_admins')
    op.drop_table('schools')
    op.drop_table('super_admins')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
