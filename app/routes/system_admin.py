"""
Super Admin routes for the School Portal.

Cross-tenant administration: provisioning schools, editing and
(de)activating them, and assigning school administrators.
"""

from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import NotFound
from werkzeug.security import generate_password_hash

from app.auth import super_admin_required
from app.errors import conflict_from_integrity_error, error_response, validation_error
from app.extensions import db
from app.models import School, SchoolAdmin, TermPeriod, User, UserRole
from app.utils.constants import NO_CHANGES_MESSAGE
from app.utils.helpers import get_json_payload
from forms import SchoolAdminAssignForm, SchoolForm

# Create blueprint
sysadmin_bp = Blueprint('sysadmin', __name__, url_prefix='/api/schools')

# Users with these roles may be linked to a school as administrators
ADMIN_ASSIGNABLE_ROLES = {UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN}


def _get_school_or_404(school_id):
    school = db.session.get(School, school_id)
    if school is None:
        raise NotFound("School not found.")
    return school


def _apply_school_changes(school, changes):
    for attr, value in changes.items():
        if attr == 'current_term':
            value = TermPeriod(value) if value else None
        elif attr in ('currency', 'timezone') and not value:
            # Not nullable: blank restores the column default
            value = School.__table__.c[attr].default.arg
        elif attr == 'school_email':
            value = value.lower()
        setattr(school, attr, value)


# -------------------- SCHOOLS --------------------

@sysadmin_bp.route('', methods=['GET'])
@super_admin_required
def list_schools():
    """List every school, newest first, with its administrator count."""
    admin_counts = dict(
        db.session.query(SchoolAdmin.school_id, func.count(SchoolAdmin.id))
        .group_by(SchoolAdmin.school_id)
        .all()
    )
    schools = School.query.order_by(School.created_at.desc(), School.id.desc()).all()
    data = []
    for school in schools:
        item = school.to_dict()
        item['adminCount'] = admin_counts.get(school.id, 0)
        data.append(item)
    return jsonify(data)


@sysadmin_bp.route('', methods=['POST'])
@super_admin_required
def create_school():
    form = SchoolForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    school_email = form.school_email.data.lower()
    if School.query.filter_by(school_email=school_email).first():
        return error_response("A school with this email already exists.", 409)

    school = School(created_by_super_admin_id=g.super_admin.id if g.super_admin else None)
    _apply_school_changes(school, form.changes())
    school.school_email = school_email
    school.is_active = form.value_or('is_active', True)

    try:
        db.session.add(school)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "A school with this email already exists.")

    current_app.logger.info(f"Super admin {g.current_user.id} created school {school.id} ({school.name})")
    return jsonify(school.to_dict()), 201


@sysadmin_bp.route('/<int:school_id>', methods=['GET'])
@super_admin_required
def get_school(school_id):
    school = _get_school_or_404(school_id)
    data = school.to_dict()
    data['admins'] = [link.to_dict(include_user=True) for link in school.admins]
    return jsonify(data)


@sysadmin_bp.route('/<int:school_id>', methods=['PATCH'])
@super_admin_required
def update_school(school_id):
    """Partially update a school; also used to activate or deactivate it."""
    school = _get_school_or_404(school_id)
    form = SchoolForm(get_json_payload(), partial=True)
    if not form.validate():
        return validation_error(form.json_errors)

    changes = form.changes()
    if not changes:
        return error_response(NO_CHANGES_MESSAGE, 400)

    new_email = changes.get('school_email')
    if new_email and new_email.lower() != school.school_email:
        clash = School.query.filter(School.school_email == new_email.lower(), School.id != school.id).first()
        if clash:
            return error_response("Another school already uses this email.", 409)

    _apply_school_changes(school, changes)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "Another school already uses this email.")

    current_app.logger.info(f"School {school.id} updated: {sorted(changes)}")
    return jsonify(school.to_dict())


@sysadmin_bp.route('/<int:school_id>', methods=['DELETE'])
@super_admin_required
def delete_school(school_id):
    """Permanently delete a school and (through the database) its records."""
    school = _get_school_or_404(school_id)
    try:
        db.session.delete(school)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(
            exc,
            "School could not be deleted.",
            restrict_message="School still has records (such as invoices) that prevent deletion. Deactivate it instead.",
        )
    current_app.logger.info(f"Super admin {g.current_user.id} deleted school {school_id}")
    return jsonify({"message": "School deleted successfully."})


# -------------------- SCHOOL ADMINISTRATORS --------------------

@sysadmin_bp.route('/<int:school_id>/admins', methods=['GET'])
@super_admin_required
def list_school_admins(school_id):
    school = _get_school_or_404(school_id)
    links = SchoolAdmin.query.filter_by(school_id=school.id).order_by(SchoolAdmin.created_at).all()
    return jsonify([link.to_dict(include_user=True) for link in links])


@sysadmin_bp.route('/<int:school_id>/admins', methods=['POST'])
@super_admin_required
def assign_school_admin(school_id):
    """
    Assign a school administrator.

    Reuses an existing account with the given email when there is one;
    otherwise creates a new SCHOOL_ADMIN user with the supplied password.
    """
    school = _get_school_or_404(school_id)
    form = SchoolAdminAssignForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    email = form.email.data.lower()
    user = User.query.filter_by(email=email).first()
    if user:
        if user.role not in ADMIN_ASSIGNABLE_ROLES:
            return error_response(
                f"User {email} already exists with role {user.role.value} and cannot be made a school administrator.",
                409,
            )
        if SchoolAdmin.query.filter_by(user_id=user.id, school_id=school.id).first():
            return error_response("This user is already an administrator for this school.", 409)
    else:
        user = User(
            email=email,
            password_hash=generate_password_hash(form.password.data),
            first_name=form.first_name.data,
            last_name=form.last_name.data,
            role=UserRole.SCHOOL_ADMIN,
            is_active=True,
        )
        db.session.add(user)

    link = SchoolAdmin(user=user, school=school)
    db.session.add(link)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        return conflict_from_integrity_error(exc, "This user is already an administrator for this school.")

    current_app.logger.info(f"User {user.id} assigned as administrator of school {school.id}")
    return jsonify({
        "message": "School administrator assigned successfully.",
        "schoolAdmin": link.to_dict(),
        "user": user.to_dict(),
    }), 201


@sysadmin_bp.route('/<int:school_id>/admins/<int:admin_id>', methods=['DELETE'])
@super_admin_required
def remove_school_admin(school_id, admin_id):
    """Unlink an administrator from a school. The user account is kept."""
    link = db.session.get(SchoolAdmin, admin_id)
    if link is None or link.school_id != school_id:
        raise NotFound("School administrator not found.")
    db.session.delete(link)
    db.session.commit()
    current_app.logger.info(f"School admin link {admin_id} removed from school {school_id}")
    return jsonify({"message": "School administrator removed."})
