"""
School Admin routes for the School Portal.

Everything here is scoped to the caller's school (the tenant), resolved by
school_admin_required from the admin's SchoolAdmin link. Records that belong
to another school are refused with 403.

Sections:
- Dashboard summary
- Teachers
- Students
- Subjects
- Classes
- Announcements
- School settings
"""

from datetime import datetime, timezone
from decimal import Decimal

from flask import Blueprint, abort, current_app, g, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from app.auth import get_admin_school_link, get_owned_or_abort, role_required, school_admin_required
from app.errors import conflict_from_integrity_error, error_response, validation_error
from app.extensions import db
from app.models import (
    Gender,
    Invoice,
    PaymentStatus,
    School,
    SchoolAnnouncement,
    SchoolClass,
    Student,
    Subject,
    Teacher,
    TermPeriod,
    User,
    UserRole,
)
from app.utils.constants import NO_CHANGES_MESSAGE
from app.utils.helpers import format_money, get_json_payload, query_int, school_today
from forms import (
    TEACHER_PROFILE_FIELDS,
    TEACHER_USER_FIELDS,
    AnnouncementForm,
    ClassForm,
    SchoolSettingsForm,
    StudentForm,
    SubjectForm,
    TeacherForm,
    TeacherUpdateForm,
)

# Create blueprint
admin_bp = Blueprint('admin', __name__, url_prefix='/api/school-admin')

OUTSTANDING_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID, PaymentStatus.OVERDUE)


def _query_flag(name):
    """Parse an optional true/false query parameter."""
    value = request.args.get(name)
    if value is None:
        return None
    return value.lower() in {"1", "true", "yes"}


def _as_naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# -------------------- DASHBOARD --------------------

@admin_bp.route('/dashboard', methods=['GET'])
@school_admin_required
def dashboard():
    """Headline counts for the school admin landing page."""
    school_id = g.school_id
    outstanding = Invoice.query.filter(
        Invoice.school_id == school_id,
        Invoice.status.in_(OUTSTANDING_STATUSES),
    ).all()
    outstanding_balance = sum((invoice.balance for invoice in outstanding), Decimal('0'))

    return jsonify({
        "school": g.school_admin.school.to_dict(),
        "teacherCount": Teacher.query.filter_by(school_id=school_id).count(),
        "activeStudentCount": Student.query.filter_by(school_id=school_id, is_active=True).count(),
        "classCount": SchoolClass.query.filter_by(school_id=school_id).count(),
        "subjectCount": Subject.query.filter_by(school_id=school_id).count(),
        "publishedAnnouncementCount": SchoolAnnouncement.query.filter_by(school_id=school_id, is_published=True).count(),
        "outstandingInvoiceCount": len(outstanding),
        "outstandingBalance": format_money(outstanding_balance),
    })


# -------------------- TEACHERS --------------------

@admin_bp.route('/teachers', methods=['GET'])
@school_admin_required
def list_teachers():
    teachers = (
        Teacher.query
        .join(User, Teacher.user_id == User.id)
        .filter(Teacher.school_id == g.school_id)
        .order_by(User.last_name, User.first_name)
        .all()
    )
    return jsonify([teacher.to_dict() for teacher in teachers])


@admin_bp.route('/teachers', methods=['POST'])
@school_admin_required
def create_teacher():
    """
    Add a teacher to the school.

    An existing account with the same email is linked rather than
    duplicated; otherwise a new TEACHER user is created.
    """
    form = TeacherForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    email = form.email.data.lower()
    teacher_id_number = form.teacher_id_number.data
    if teacher_id_number and Teacher.query.filter_by(school_id=g.school_id, teacher_id_number=teacher_id_number).first():
        return error_response("A teacher with this ID number already exists in your school.", 409)

    user = User.query.filter_by(email=email).first()
    if user:
        if Teacher.query.filter_by(user_id=user.id, school_id=g.school_id).first():
            return error_response("This user is already registered as a teacher in this school.", 409)
        if user.role != UserRole.TEACHER:
            current_app.logger.warning(f"Linking user {user.id} with role {user.role.value} as a teacher")
    else:
        phone_number = form.phone_number.data
        if phone_number and User.query.filter_by(phone_number=phone_number).first():
            return error_response("This phone number is already in use.", 409)
        user = User(
            email=email,
            password_hash=generate_password_hash(form.password.data),
            first_name=form.first_name.data,
            last_name=form.last_name.data,
            phone_number=phone_number,
            profile_picture=form.profile_picture.data,
            role=UserRole.TEACHER,
            is_active=True,
        )
        db.session.add(user)

    teacher = Teacher(
        user=user,
        school_id=g.school_id,
        teacher_id_number=teacher_id_number,
        date_of_joining=form.date_of_joining.data,
        qualifications=form.qualifications.data,
        specialization=form.specialization.data,
    )
    db.session.add(teacher)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A teacher with these details already exists.")

    current_app.logger.info(f"Teacher {teacher.id} (user {user.id}) added to school {g.school_id}")
    return jsonify(teacher.to_dict()), 201


@admin_bp.route('/teachers/<int:teacher_id>', methods=['GET'])
@school_admin_required
def get_teacher(teacher_id):
    teacher = get_owned_or_abort(Teacher, teacher_id, "Teacher")
    return jsonify(teacher.to_dict())


@admin_bp.route('/teachers/<int:teacher_id>', methods=['PATCH'])
@school_admin_required
def update_teacher(teacher_id):
    """Update the teacher's account and profile together in one transaction."""
    teacher = get_owned_or_abort(Teacher, teacher_id, "Teacher")
    form = TeacherUpdateForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    user_changes = form.changes(*TEACHER_USER_FIELDS)
    profile_changes = form.changes(*TEACHER_PROFILE_FIELDS)
    if not user_changes and not profile_changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    user = teacher.user
    if 'email' in user_changes:
        user_changes['email'] = user_changes['email'].lower()
        if user_changes['email'] != user.email:
            if User.query.filter(User.email == user_changes['email'], User.id != user.id).first():
                return error_response("Email address is already in use by another account.", 409)

    phone_number = user_changes.get('phone_number')
    if phone_number and User.query.filter(User.phone_number == phone_number, User.id != user.id).first():
        return error_response("This phone number is already in use.", 409)

    new_id_number = profile_changes.get('teacher_id_number')
    if new_id_number and Teacher.query.filter(
        Teacher.school_id == g.school_id,
        Teacher.teacher_id_number == new_id_number,
        Teacher.id != teacher.id,
    ).first():
        return error_response("A teacher with this ID number already exists in your school.", 409)

    for attr, value in user_changes.items():
        setattr(user, attr, value)
    for attr, value in profile_changes.items():
        setattr(teacher, attr, value)

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "Email, phone number or teacher ID is already in use.")

    current_app.logger.info(f"Teacher {teacher.id} updated: {sorted(user_changes) + sorted(profile_changes)}")
    return jsonify(teacher.to_dict())


@admin_bp.route('/teachers/<int:teacher_id>', methods=['DELETE'])
@school_admin_required
def delete_teacher(teacher_id):
    """Remove the teacher from the school. Their user account is kept."""
    teacher = get_owned_or_abort(Teacher, teacher_id, "Teacher")
    in_use_message = "Cannot delete teacher: they are still assigned to timetable slots. Reassign or remove those slots first."
    if teacher.timetable_slots.count():
        return error_response(in_use_message, 409)

    try:
        db.session.delete(teacher)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "Teacher could not be deleted.", restrict_message=in_use_message)

    current_app.logger.info(f"Teacher {teacher_id} removed from school {g.school_id}")
    return jsonify({"message": "Teacher deleted successfully."})


# -------------------- STUDENTS --------------------

def _class_in_school(class_id):
    return SchoolClass.query.filter_by(id=class_id, school_id=g.school_id).first()


@admin_bp.route('/students', methods=['GET'])
@school_admin_required
def list_students():
    query = Student.query.filter(Student.school_id == g.school_id)
    class_id = query_int('classId')
    if class_id is not None:
        query = query.filter(Student.current_class_id == class_id)
    is_active = _query_flag('isActive')
    if is_active is not None:
        query = query.filter(Student.is_active == is_active)
    students = query.order_by(Student.last_name, Student.first_name).all()
    return jsonify([student.to_dict() for student in students])


@admin_bp.route('/students', methods=['POST'])
@school_admin_required
def create_student():
    form = StudentForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    if Student.query.filter_by(school_id=g.school_id, student_id_number=form.student_id_number.data).first():
        return error_response("A student with this ID number already exists in your school.", 409)

    class_id = form.current_class_id.data
    if class_id is not None and not _class_in_school(class_id):
        return validation_error({"currentClassId": ["Selected class does not belong to your school."]})

    fields = form.changes()
    fields.pop('is_active', None)
    fields['gender'] = Gender(fields['gender'])
    student = Student(school_id=g.school_id, **fields)
    student.enrollment_date = form.enrollment_date.data or school_today(g.school_admin.school.timezone)
    student.is_active = form.value_or('is_active', True)

    db.session.add(student)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A student with this ID number already exists in your school.")

    current_app.logger.info(f"Student {student.id} enrolled in school {g.school_id}")
    return jsonify(student.to_dict()), 201


@admin_bp.route('/students/<int:student_id>', methods=['GET'])
@school_admin_required
def get_student(student_id):
    student = get_owned_or_abort(Student, student_id, "Student")
    return jsonify(student.to_dict())


@admin_bp.route('/students/<int:student_id>', methods=['PATCH'])
@school_admin_required
def update_student(student_id):
    student = get_owned_or_abort(Student, student_id, "Student")
    form = StudentForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if changes.get('enrollment_date', True) is None:
        # Enrollment date is required; null keeps the current value
        changes.pop('enrollment_date')
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    new_id_number = changes.get('student_id_number')
    if new_id_number and new_id_number != student.student_id_number:
        if Student.query.filter(
            Student.school_id == g.school_id,
            Student.student_id_number == new_id_number,
            Student.id != student.id,
        ).first():
            return error_response("Another student with this ID number already exists in your school.", 409)

    if changes.get('current_class_id') is not None and not _class_in_school(changes['current_class_id']):
        return validation_error({"currentClassId": ["Selected class does not belong to your school."]})

    if 'gender' in changes:
        changes['gender'] = Gender(changes['gender'])

    for attr, value in changes.items():
        setattr(student, attr, value)
    if 'is_active' in changes and student.user is not None:
        student.user.is_active = changes['is_active']

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "Another student with this ID number already exists in your school.")

    current_app.logger.info(f"Student {student.id} updated: {sorted(changes)}")
    return jsonify(student.to_dict())


@admin_bp.route('/students/<int:student_id>', methods=['DELETE'])
@school_admin_required
def deactivate_student(student_id):
    """
    Soft-delete a student.

    Students are never removed outright because invoices and grades refer
    to them; the record (and any login) is deactivated instead.
    """
    student = get_owned_or_abort(Student, student_id, "Student")
    if not student.is_active:
        return jsonify({"message": "Student is already inactive.", "student": student.to_dict()})

    student.is_active = False
    if student.user is not None:
        student.user.is_active = False
    db.session.commit()

    current_app.logger.info(f"Student {student.id} deactivated in school {g.school_id}")
    return jsonify({"message": "Student deactivated successfully.", "student": student.to_dict()})


# -------------------- SUBJECTS --------------------

def _subject_conflict(name=None, code=None, exclude_id=None):
    """Return a 409 response if the name or code is taken in this school."""
    for attr, value, label in (('name', name, 'name'), ('code', code, 'code')):
        if not value:
            continue
        query = Subject.query.filter(Subject.school_id == g.school_id, getattr(Subject, attr) == value)
        if exclude_id is not None:
            query = query.filter(Subject.id != exclude_id)
        if query.first():
            return error_response(f"A subject with this {label} already exists in your school.", 409)
    return None


@admin_bp.route('/subjects', methods=['GET'])
@school_admin_required
def list_subjects():
    subjects = Subject.query.filter_by(school_id=g.school_id).order_by(Subject.name).all()
    return jsonify([subject.to_dict() for subject in subjects])


@admin_bp.route('/subjects', methods=['POST'])
@school_admin_required
def create_subject():
    form = SubjectForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    conflict = _subject_conflict(name=form.name.data, code=form.code.data)
    if conflict:
        return conflict

    subject = Subject(school_id=g.school_id, **form.changes())
    db.session.add(subject)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A subject with this name or code already exists in your school.")

    current_app.logger.info(f"Subject {subject.id} ({subject.name}) created in school {g.school_id}")
    return jsonify(subject.to_dict()), 201


@admin_bp.route('/subjects/<int:subject_id>', methods=['GET'])
@school_admin_required
def get_subject(subject_id):
    subject = get_owned_or_abort(Subject, subject_id, "Subject")
    return jsonify(subject.to_dict())


@admin_bp.route('/subjects/<int:subject_id>', methods=['PATCH'])
@school_admin_required
def update_subject(subject_id):
    subject = get_owned_or_abort(Subject, subject_id, "Subject")
    form = SubjectForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    conflict = _subject_conflict(name=changes.get('name'), code=changes.get('code'), exclude_id=subject.id)
    if conflict:
        return conflict

    for attr, value in changes.items():
        setattr(subject, attr, value)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A subject with this name or code already exists in your school.")

    return jsonify(subject.to_dict())


@admin_bp.route('/subjects/<int:subject_id>', methods=['DELETE'])
@school_admin_required
def delete_subject(subject_id):
    """Delete a subject; its timetable slots, assignments and grades go with it."""
    subject = get_owned_or_abort(Subject, subject_id, "Subject")
    db.session.delete(subject)
    db.session.commit()
    current_app.logger.info(f"Subject {subject_id} deleted from school {g.school_id}")
    return jsonify({"message": "Subject deleted successfully."})


# -------------------- CLASSES --------------------

def _resolve_class_list_school():
    """School whose classes are listed: a super admin picks it with ?schoolId=."""
    if g.current_user.role == UserRole.SUPER_ADMIN:
        school_id = query_int('schoolId')
        if school_id is None:
            abort(400, description="schoolId query parameter is required.")
        if db.session.get(School, school_id) is None:
            abort(404, description="School not found.")
        return school_id

    link = get_admin_school_link(g.current_user.id)
    if not link:
        abort(400, description="Admin not associated with any school.")
    g.school_admin = link
    return link.school_id


def _homeroom_teacher_error(teacher_id):
    if teacher_id is None:
        return None
    if not Teacher.query.filter_by(id=teacher_id, school_id=g.school_id).first():
        return validation_error({"homeroomTeacherId": ["Homeroom teacher does not belong to your school."]})
    return None


def _class_exists(name, section, academic_year, exclude_id=None):
    query = SchoolClass.query.filter_by(
        school_id=g.school_id, name=name, section=section, academic_year=academic_year,
    )
    if exclude_id is not None:
        query = query.filter(SchoolClass.id != exclude_id)
    return query.first() is not None


@admin_bp.route('/classes', methods=['GET'])
@role_required('SCHOOL_ADMIN', 'SUPER_ADMIN')
def list_classes():
    """
    List the school's classes.

    ``?simple=true`` returns only id, name and section for dropdowns.
    """
    school_id = _resolve_class_list_school()
    classes = (
        SchoolClass.query
        .filter_by(school_id=school_id)
        .order_by(SchoolClass.academic_year.desc(), SchoolClass.name, SchoolClass.section)
        .all()
    )
    if _query_flag('simple'):
        return jsonify([{"id": c.id, "name": c.name, "section": c.section} for c in classes])

    counts = dict(
        db.session.query(Student.current_class_id, func.count(Student.id))
        .filter(Student.school_id == school_id, Student.current_class_id.isnot(None))
        .group_by(Student.current_class_id)
        .all()
    )
    return jsonify([c.to_dict(student_count=counts.get(c.id, 0)) for c in classes])


@admin_bp.route('/classes', methods=['POST'])
@school_admin_required
def create_class():
    form = ClassForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    invalid_teacher = _homeroom_teacher_error(form.homeroom_teacher_id.data)
    if invalid_teacher:
        return invalid_teacher

    if _class_exists(form.name.data, form.section.data, form.academic_year.data):
        return error_response("A class with this name, section and academic year already exists.", 409)

    school_class = SchoolClass(school_id=g.school_id, **form.changes())
    db.session.add(school_class)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A class with this name, section and academic year already exists.")

    current_app.logger.info(f"Class {school_class.id} ({school_class.display_name}) created in school {g.school_id}")
    return jsonify(school_class.to_dict(student_count=0)), 201


@admin_bp.route('/classes/<int:class_id>', methods=['GET'])
@school_admin_required
def get_class(class_id):
    school_class = get_owned_or_abort(SchoolClass, class_id, "Class")
    return jsonify(school_class.to_dict(student_count=school_class.students.count()))


@admin_bp.route('/classes/<int:class_id>', methods=['PATCH'])
@school_admin_required
def update_class(class_id):
    school_class = get_owned_or_abort(SchoolClass, class_id, "Class")
    form = ClassForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    if 'homeroom_teacher_id' in changes:
        invalid_teacher = _homeroom_teacher_error(changes['homeroom_teacher_id'])
        if invalid_teacher:
            return invalid_teacher

    name = changes.get('name', school_class.name)
    section = changes['section'] if 'section' in changes else school_class.section
    academic_year = changes.get('academic_year', school_class.academic_year)
    if _class_exists(name, section, academic_year, exclude_id=school_class.id):
        return error_response("A class with this name, section and academic year already exists.", 409)

    for attr, value in changes.items():
        setattr(school_class, attr, value)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A class with this name, section and academic year already exists.")

    return jsonify(school_class.to_dict(student_count=school_class.students.count()))


@admin_bp.route('/classes/<int:class_id>', methods=['DELETE'])
@school_admin_required
def delete_class(class_id):
    """Delete a class. Its timetable slots go with it; students become unassigned."""
    school_class = get_owned_or_abort(SchoolClass, class_id, "Class")
    db.session.delete(school_class)
    db.session.commit()
    current_app.logger.info(f"Class {class_id} deleted from school {g.school_id}")
    return jsonify({"message": "Class deleted successfully."})


# -------------------- ANNOUNCEMENTS --------------------

@admin_bp.route('/communications/announcements', methods=['GET'])
@school_admin_required
def list_announcements():
    announcements = (
        SchoolAnnouncement.query
        .filter_by(school_id=g.school_id)
        .order_by(SchoolAnnouncement.publish_date.desc(), SchoolAnnouncement.created_at.desc())
        .all()
    )
    return jsonify([announcement.to_dict() for announcement in announcements])


@admin_bp.route('/communications/announcements', methods=['POST'])
@school_admin_required
def create_announcement():
    form = AnnouncementForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    publish_date = form.publish_date.data or _as_naive_utc(datetime.now(timezone.utc))
    expiry_date = form.expiry_date.data
    if expiry_date and expiry_date < publish_date:
        return validation_error({"expiryDate": ["Expiry date cannot be before the publish date."]})

    announcement = SchoolAnnouncement(
        school_id=g.school_id,
        title=form.title.data,
        content=form.content.data,
        publish_date=publish_date,
        expiry_date=expiry_date,
        audience=form.audience.data or 'ALL',
        is_published=form.value_or('is_published', True),
        created_by_admin_id=g.school_admin.id,
    )
    db.session.add(announcement)
    db.session.commit()

    current_app.logger.info(f"Announcement {announcement.id} created in school {g.school_id}")
    return jsonify(announcement.to_dict()), 201


@admin_bp.route('/communications/announcements/<int:announcement_id>', methods=['GET'])
@school_admin_required
def get_announcement(announcement_id):
    announcement = get_owned_or_abort(SchoolAnnouncement, announcement_id, "Announcement")
    return jsonify(announcement.to_dict())


@admin_bp.route('/communications/announcements/<int:announcement_id>', methods=['PATCH'])
@school_admin_required
def update_announcement(announcement_id):
    announcement = get_owned_or_abort(SchoolAnnouncement, announcement_id, "Announcement")
    form = AnnouncementForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if changes.get('publish_date', True) is None:
        # publishDate is required; null keeps the current value
        changes.pop('publish_date')
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    publish_date = changes.get('publish_date', _as_naive_utc(announcement.publish_date))
    expiry_date = changes['expiry_date'] if 'expiry_date' in changes else _as_naive_utc(announcement.expiry_date)
    if expiry_date and publish_date and expiry_date < publish_date:
        return validation_error({"expiryDate": ["Expiry date cannot be before the publish date."]})

    if 'audience' in changes and not changes['audience']:
        changes['audience'] = 'ALL'
    for attr, value in changes.items():
        setattr(announcement, attr, value)
    db.session.commit()

    return jsonify(announcement.to_dict())


@admin_bp.route('/communications/announcements/<int:announcement_id>', methods=['DELETE'])
@school_admin_required
def delete_announcement(announcement_id):
    announcement = get_owned_or_abort(SchoolAnnouncement, announcement_id, "Announcement")
    db.session.delete(announcement)
    db.session.commit()
    current_app.logger.info(f"Announcement {announcement_id} deleted from school {g.school_id}")
    return jsonify({"message": "Announcement deleted successfully."})


# -------------------- SCHOOL SETTINGS --------------------

@admin_bp.route('/settings', methods=['GET'])
@school_admin_required
def get_settings():
    return jsonify(g.school_admin.school.to_dict())


@admin_bp.route('/settings', methods=['PATCH'])
@school_admin_required
def update_settings():
    school = g.school_admin.school
    form = SchoolSettingsForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    if 'current_term' in changes:
        changes['current_term'] = TermPeriod(changes['current_term']) if changes['current_term'] else None
    for attr, value in changes.items():
        setattr(school, attr, value)
    db.session.commit()

    current_app.logger.info(f"Settings for school {school.id} updated: {sorted(changes)}")
    return jsonify(school.to_dict())
