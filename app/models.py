"""
Database models for the School Portal.

All SQLAlchemy models are defined here with proper relationships and properties.
Times are stored as UTC in the database. Delete behaviour (CASCADE, SET NULL,
RESTRICT) is declared on the foreign keys so the database enforces it; ORM
relationships use passive_deletes to let it.
"""

from datetime import datetime, timezone
import enum

from app.extensions import db
from app.utils.encryption import PIIEncryptedType
from app.utils.helpers import format_date, format_money, format_utc_iso, render_markdown


def _utc_now():
    """Helper function for timezone-aware datetime defaults in SQLAlchemy models."""
    return datetime.now(timezone.utc)


# -------------------- ENUMS --------------------

class UserRole(enum.Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    SCHOOL_ADMIN = 'SCHOOL_ADMIN'
    TEACHER = 'TEACHER'
    STUDENT = 'STUDENT'
    PARENT = 'PARENT'


class TermPeriod(enum.Enum):
    FIRST_TERM = 'FIRST_TERM'
    SECOND_TERM = 'SECOND_TERM'
    THIRD_TERM = 'THIRD_TERM'


class Gender(enum.Enum):
    MALE = 'MALE'
    FEMALE = 'FEMALE'
    OTHER = 'OTHER'
    PREFER_NOT_TO_SAY = 'PREFER_NOT_TO_SAY'


class DayOfWeek(enum.Enum):
    """Days in calendar order; the order drives timetable sorting."""
    MONDAY = 'MONDAY'
    TUESDAY = 'TUESDAY'
    WEDNESDAY = 'WEDNESDAY'
    THURSDAY = 'THURSDAY'
    FRIDAY = 'FRIDAY'
    SATURDAY = 'SATURDAY'
    SUNDAY = 'SUNDAY'

    @property
    def index(self):
        return list(DayOfWeek).index(self)


class PaymentStatus(enum.Enum):
    PENDING = 'PENDING'
    PAID = 'PAID'
    PARTIALLY_PAID = 'PARTIALLY_PAID'
    OVERDUE = 'OVERDUE'
    CANCELLED = 'CANCELLED'
    REFUNDED = 'REFUNDED'


def _enum_value(value):
    return value.value if value is not None else None


# -------------------- USERS AND ROLE LINKS --------------------

class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    phone_number = db.Column(db.String(50), unique=True, nullable=True)
    profile_picture = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    role = db.Column(db.Enum(UserRole, name='user_role'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    super_admin = db.relationship('SuperAdmin', back_populates='user', uselist=False, cascade='all, delete', passive_deletes=True)
    school_admin_links = db.relationship('SchoolAdmin', back_populates='user', cascade='all, delete', passive_deletes=True)
    teacher_profiles = db.relationship('Teacher', back_populates='user', cascade='all, delete', passive_deletes=True)

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'phoneNumber': self.phone_number,
            'profilePicture': self.profile_picture,
            'isActive': self.is_active,
            'role': self.role.value,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role.value})>'


class SuperAdmin(db.Model):
    __tablename__ = 'super_admins'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    user = db.relationship('User', back_populates='super_admin')


class School(db.Model):
    __tablename__ = 'schools'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state_or_region = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    phone_number = db.Column(db.String(50), nullable=True)
    school_email = db.Column(db.String(255), unique=True, nullable=False)
    website = db.Column(db.String(500), nullable=True)
    logo_url = db.Column(db.String(500), nullable=True)
    current_academic_year = db.Column(db.String(9), nullable=True)
    current_term = db.Column(db.Enum(TermPeriod, name='term_period'), nullable=True)
    currency = db.Column(db.String(3), default='GHS', nullable=False)
    timezone = db.Column(db.String(64), default='Africa/Accra', nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by_super_admin_id = db.Column(
        db.Integer, db.ForeignKey('super_admins.id', ondelete='SET NULL'), nullable=True
    )
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    created_by = db.relationship('SuperAdmin', backref=db.backref('schools_created', lazy='dynamic', passive_deletes=True))
    admins = db.relationship('SchoolAdmin', back_populates='school', cascade='all, delete', passive_deletes=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'city': self.city,
            'stateOrRegion': self.state_or_region,
            'country': self.country,
            'postalCode': self.postal_code,
            'phoneNumber': self.phone_number,
            'schoolEmail': self.school_email,
            'website': self.website,
            'logoUrl': self.logo_url,
            'currentAcademicYear': self.current_academic_year,
            'currentTerm': _enum_value(self.current_term),
            'currency': self.currency,
            'timezone': self.timezone,
            'isActive': self.is_active,
            'createdBySuperAdminId': self.created_by_super_admin_id,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }

    def __repr__(self):
        return f'<School {self.name}>'


class SchoolAdmin(db.Model):
    __tablename__ = 'school_admins'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    job_title = db.Column(db.String(100), default='School Administrator', nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    user = db.relationship('User', back_populates='school_admin_links')
    school = db.relationship('School', back_populates='admins')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'school_id', name='uq_school_admins_user_school'),
        db.Index('ix_school_admins_school_id', 'school_id'),
    )

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'schoolId': self.school_id,
            'jobTitle': self.job_title,
            'createdAt': format_utc_iso(self.created_at),
        }
        if include_user:
            data['user'] = self.user.to_dict()
        return data


class Teacher(db.Model):
    __tablename__ = 'teachers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    teacher_id_number = db.Column(db.String(50), nullable=True)
    date_of_joining = db.Column(db.Date, nullable=True)
    qualifications = db.Column(db.Text, nullable=True)
    specialization = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    user = db.relationship('User', back_populates='teacher_profiles')
    school = db.relationship('School', backref=db.backref('teachers', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        db.UniqueConstraint('user_id', 'school_id', name='uq_teachers_user_school'),
        db.UniqueConstraint('school_id', 'teacher_id_number', name='uq_teachers_school_id_number'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'schoolId': self.school_id,
            'teacherIdNumber': self.teacher_id_number,
            'dateOfJoining': format_date(self.date_of_joining),
            'qualifications': self.qualifications,
            'specialization': self.specialization,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
            'user': self.user.to_dict() if self.user else None,
        }


# -------------------- ACADEMICS --------------------

class SchoolClass(db.Model):
    __tablename__ = 'classes'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    section = db.Column(db.String(50), nullable=True)
    academic_year = db.Column(db.String(9), nullable=False)
    homeroom_teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('classes', lazy='dynamic', passive_deletes=True))
    homeroom_teacher = db.relationship('Teacher', backref=db.backref('homeroom_classes', passive_deletes=True))

    __table_args__ = (
        db.UniqueConstraint('school_id', 'name', 'section', 'academic_year', name='uq_classes_school_name_section_year'),
    )

    @property
    def display_name(self):
        return f"{self.name} - {self.section}" if self.section else self.name

    def to_dict(self, student_count=None):
        teacher = self.homeroom_teacher
        data = {
            'id': self.id,
            'schoolId': self.school_id,
            'name': self.name,
            'section': self.section,
            'academicYear': self.academic_year,
            'homeroomTeacherId': self.homeroom_teacher_id,
            'homeroomTeacher': {
                'id': teacher.id,
                'firstName': teacher.user.first_name,
                'lastName': teacher.user.last_name,
            } if teacher else None,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }
        if student_count is not None:
            data['studentCount'] = student_count
        return data


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), unique=True, nullable=True)
    student_id_number = db.Column(db.String(50), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    middle_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    gender = db.Column(db.Enum(Gender, name='gender'), nullable=False)
    enrollment_date = db.Column(db.Date, nullable=False)
    profile_picture_url = db.Column(db.String(500), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state_or_region = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    emergency_contact_name = db.Column(db.String(200), nullable=True)
    emergency_contact_phone = db.Column(db.String(50), nullable=True)
    blood_group = db.Column(db.String(10), nullable=True)
    # Medical details are PII and stay encrypted at rest
    allergies = db.Column(PIIEncryptedType(key_env_var='ENCRYPTION_KEY'), nullable=True)
    medical_notes = db.Column(PIIEncryptedType(key_env_var='ENCRYPTION_KEY'), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    current_class_id = db.Column(db.Integer, db.ForeignKey('classes.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('students', lazy='dynamic', passive_deletes=True))
    user = db.relationship('User', backref=db.backref('student_profile', uselist=False))
    current_class = db.relationship('SchoolClass', backref=db.backref('students', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        db.UniqueConstraint('school_id', 'student_id_number', name='uq_students_school_id_number'),
        db.Index('ix_students_school_class', 'school_id', 'current_class_id'),
    )

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.middle_name, self.last_name) if part)

    def to_dict(self):
        current_class = self.current_class
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'userId': self.user_id,
            'studentIdNumber': self.student_id_number,
            'firstName': self.first_name,
            'middleName': self.middle_name,
            'lastName': self.last_name,
            'dateOfBirth': format_date(self.date_of_birth),
            'gender': self.gender.value,
            'enrollmentDate': format_date(self.enrollment_date),
            'profilePictureUrl': self.profile_picture_url,
            'address': self.address,
            'city': self.city,
            'stateOrRegion': self.state_or_region,
            'country': self.country,
            'postalCode': self.postal_code,
            'emergencyContactName': self.emergency_contact_name,
            'emergencyContactPhone': self.emergency_contact_phone,
            'bloodGroup': self.blood_group,
            'allergies': self.allergies,
            'medicalNotes': self.medical_notes,
            'isActive': self.is_active,
            'currentClassId': self.current_class_id,
            'currentClass': {
                'id': current_class.id,
                'name': current_class.name,
                'section': current_class.section,
            } if current_class else None,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }


class Subject(db.Model):
    __tablename__ = 'subjects'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(20), nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('subjects', lazy='dynamic', passive_deletes=True))

    __table_args__ = (
        db.UniqueConstraint('school_id', 'name', name='uq_subjects_school_name'),
        db.UniqueConstraint('school_id', 'code', name='uq_subjects_school_code'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }


class TimetableSlot(db.Model):
    """
    A recurring weekly lesson: one class, one subject, one teacher.

    start_time/end_time are "HH:MM" strings; overlap checks compare them as
    minutes since midnight over the half-open interval [start, end).
    """
    __tablename__ = 'timetable_slots'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='RESTRICT'), nullable=False)
    day_of_week = db.Column(db.Enum(DayOfWeek, name='day_of_week'), nullable=False)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    room = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school_class = db.relationship('SchoolClass', backref=db.backref('timetable_slots', lazy='dynamic', passive_deletes=True))
    subject = db.relationship('Subject', backref=db.backref('timetable_slots', lazy='dynamic', passive_deletes=True))
    teacher = db.relationship('Teacher', backref=db.backref('timetable_slots', lazy='dynamic', passive_deletes='all'))

    __table_args__ = (
        db.Index('ix_timetable_slots_school_day', 'school_id', 'day_of_week'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'classId': self.class_id,
            'subjectId': self.subject_id,
            'teacherId': self.teacher_id,
            'dayOfWeek': self.day_of_week.value,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'room': self.room,
            'class': {
                'id': self.school_class.id,
                'name': self.school_class.name,
                'section': self.school_class.section,
            },
            'subject': {'id': self.subject.id, 'name': self.subject.name},
            'teacher': {
                'id': self.teacher.id,
                'firstName': self.teacher.user.first_name,
                'lastName': self.teacher.user.last_name,
            },
            'createdAt': format_utc_iso(self.created_at),
        }


class Assignment(db.Model):
    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    max_marks = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    subject = db.relationship('Subject', backref=db.backref('assignments', lazy='dynamic', passive_deletes=True))


class StudentGrade(db.Model):
    __tablename__ = 'student_grades'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id', ondelete='CASCADE'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='SET NULL'), nullable=True)
    academic_year = db.Column(db.String(9), nullable=False)
    term = db.Column(db.Enum(TermPeriod, name='term_period'), nullable=False)
    marks_obtained = db.Column(db.Float, nullable=True)
    grade_letter = db.Column(db.String(5), nullable=True)
    comments = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)

    subject = db.relationship('Subject', backref=db.backref('grades', lazy='dynamic', passive_deletes=True))
    assignment = db.relationship('Assignment', backref=db.backref('grades', lazy='dynamic', passive_deletes=True))


# -------------------- FINANCES --------------------

class FeeStructure(db.Model):
    __tablename__ = 'fee_structures'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)
    term = db.Column(db.Enum(TermPeriod, name='term_period'), nullable=True)
    frequency = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('fee_structures', lazy='dynamic', passive_deletes=True))
    # Line items keep their history when a fee structure goes away (SET NULL)
    line_items = db.relationship('InvoiceLineItem', back_populates='fee_structure', passive_deletes=True)

    __table_args__ = (
        db.UniqueConstraint('school_id', 'name', 'academic_year', 'term', name='uq_fee_structures_school_name_year_term'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'name': self.name,
            'description': self.description,
            'amount': format_money(self.amount),
            'academicYear': self.academic_year,
            'term': _enum_value(self.term),
            'frequency': self.frequency,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }


class Invoice(db.Model):
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id', ondelete='RESTRICT'), nullable=False)
    invoice_number = db.Column(db.String(20), nullable=False)
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    status = db.Column(db.Enum(PaymentStatus, name='payment_status'), default=PaymentStatus.PENDING, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    academic_year = db.Column(db.String(9), nullable=False)
    term = db.Column(db.Enum(TermPeriod, name='term_period'), nullable=False)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('invoices', lazy='dynamic', passive_deletes=True))
    student = db.relationship('Student', backref=db.backref('invoices', lazy='dynamic', passive_deletes='all'))
    line_items = db.relationship(
        'InvoiceLineItem', back_populates='invoice', cascade='all, delete-orphan',
        passive_deletes=True, order_by='InvoiceLineItem.id',
    )

    __table_args__ = (
        db.UniqueConstraint('school_id', 'invoice_number', name='uq_invoices_school_number'),
        db.Index('ix_invoices_status_due_date', 'status', 'due_date'),
    )

    @property
    def balance(self):
        return (self.total_amount or 0) - (self.paid_amount or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'studentId': self.student_id,
            'invoiceNumber': self.invoice_number,
            'issueDate': format_date(self.issue_date),
            'dueDate': format_date(self.due_date),
            'totalAmount': format_money(self.total_amount),
            'paidAmount': format_money(self.paid_amount),
            'balance': format_money(self.balance),
            'status': self.status.value,
            'notes': self.notes,
            'academicYear': self.academic_year,
            'term': self.term.value,
            'student': {
                'id': self.student.id,
                'firstName': self.student.first_name,
                'lastName': self.student.last_name,
                'studentIdNumber': self.student.student_id_number,
            },
            'lineItems': [item.to_dict() for item in self.line_items],
            'createdAt': format_utc_iso(self.created_at),
        }


class InvoiceLineItem(db.Model):
    __tablename__ = 'invoice_line_items'

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    fee_structure_id = db.Column(db.Integer, db.ForeignKey('fee_structures.id', ondelete='SET NULL'), nullable=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id', ondelete='CASCADE'), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)

    invoice = db.relationship('Invoice', back_populates='line_items')
    fee_structure = db.relationship('FeeStructure', back_populates='line_items')

    def to_dict(self):
        return {
            'id': self.id,
            'invoiceId': self.invoice_id,
            'feeStructureId': self.fee_structure_id,
            'description': self.description,
            'quantity': self.quantity,
            'unitPrice': format_money(self.unit_price),
            'amount': format_money(self.amount),
        }


# -------------------- COMMUNICATIONS --------------------

class SchoolAnnouncement(db.Model):
    __tablename__ = 'school_announcements'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    publish_date = db.Column(db.DateTime, default=_utc_now, nullable=False)
    expiry_date = db.Column(db.DateTime, nullable=True)
    audience = db.Column(db.String(100), default='ALL', nullable=True)
    is_published = db.Column(db.Boolean, default=False, nullable=False)
    created_by_admin_id = db.Column(db.Integer, db.ForeignKey('school_admins.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=_utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utc_now, onupdate=_utc_now, nullable=False)

    school = db.relationship('School', backref=db.backref('announcements', lazy='dynamic', passive_deletes=True))
    created_by = db.relationship('SchoolAdmin', backref=db.backref('announcements', passive_deletes=True))

    __table_args__ = (
        db.Index('ix_school_announcements_school_publish', 'school_id', 'publish_date'),
    )

    def to_dict(self):
        author = self.created_by.user if self.created_by else None
        return {
            'id': self.id,
            'schoolId': self.school_id,
            'title': self.title,
            'content': self.content,
            'contentHtml': render_markdown(self.content),
            'publishDate': format_utc_iso(self.publish_date),
            'expiryDate': format_utc_iso(self.expiry_date),
            'audience': self.audience,
            'isPublished': self.is_published,
            'createdByAdminId': self.created_by_admin_id,
            'createdBy': {
                'firstName': author.first_name,
                'lastName': author.last_name,
            } if author else None,
            'createdAt': format_utc_iso(self.created_at),
            'updatedAt': format_utc_iso(self.updated_at),
        }


# -------------------- ERROR LOGGING --------------------

class ErrorLog(db.Model):
    __tablename__ = 'error_logs'
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=_utc_now, nullable=False, index=True)
    error_type = db.Column(db.String(100), nullable=True)  # e.g. exception class name or "403 Forbidden"
    error_message = db.Column(db.Text, nullable=True)
    request_path = db.Column(db.String(500), nullable=True)
    request_method = db.Column(db.String(10), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    ip_address = db.Column(db.String(50), nullable=True)
    user_id = db.Column(db.Integer, nullable=True)  # From the session token when one was presented
    stack_trace = db.Column(db.Text, nullable=True)
