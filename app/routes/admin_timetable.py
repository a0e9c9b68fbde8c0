"""
Timetable routes for school admins.

A slot books one class, subject and teacher for a weekly time range. New
slots are rejected when they overlap an existing slot that shares the
teacher, the class, or the room on the same day.
"""

from flask import Blueprint, abort, current_app, g, jsonify, request

from app.auth import get_owned_or_abort, school_admin_required
from app.errors import error_response, validation_error
from app.extensions import db
from app.models import DayOfWeek, SchoolClass, Subject, Teacher, TimetableSlot
from app.utils.helpers import get_json_payload, query_int
from app.utils.scheduling import clash_message, find_clash
from forms import TimetableSlotForm

timetable_bp = Blueprint('timetable', __name__, url_prefix='/api/school-admin/timetable')


def _parse_day(value):
    try:
        return DayOfWeek(value.upper())
    except ValueError:
        abort(400, description=f"Invalid day of the week: {value}.")


@timetable_bp.route('', methods=['GET'])
@school_admin_required
def list_slots():
    """List the school's slots in weekly order, optionally filtered."""
    query = TimetableSlot.query.filter(TimetableSlot.school_id == g.school_id)

    class_id = query_int('classId')
    if class_id is not None:
        query = query.filter(TimetableSlot.class_id == class_id)
    teacher_id = query_int('teacherId')
    if teacher_id is not None:
        query = query.filter(TimetableSlot.teacher_id == teacher_id)
    day = request.args.get('dayOfWeek')
    if day:
        query = query.filter(TimetableSlot.day_of_week == _parse_day(day))

    slots = sorted(query.all(), key=lambda slot: (slot.day_of_week.index, slot.start_time))
    return jsonify([slot.to_dict() for slot in slots])


@timetable_bp.route('', methods=['POST'])
@school_admin_required
def create_slot():
    form = TimetableSlotForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    # Each referenced record must belong to the caller's school
    for model, field, label in (
        (SchoolClass, form.class_id, "Class"),
        (Subject, form.subject_id, "Subject"),
        (Teacher, form.teacher_id, "Teacher"),
    ):
        if not model.query.filter_by(id=field.data, school_id=g.school_id).first():
            return validation_error({field.name: [f"{label} does not belong to your school."]})

    day_of_week = DayOfWeek(form.day_of_week.data)
    room = form.room.data
    kind, existing = find_clash(
        g.school_id,
        day_of_week,
        form.start_time.data,
        form.end_time.data,
        teacher_id=form.teacher_id.data,
        class_id=form.class_id.data,
        room=room,
    )
    if kind:
        current_app.logger.info(
            f"Timetable clash ({kind}) with slot {existing.id} in school {g.school_id}"
        )
        return error_response(clash_message(kind, day_of_week, room), 409)

    slot = TimetableSlot(
        school_id=g.school_id,
        class_id=form.class_id.data,
        subject_id=form.subject_id.data,
        teacher_id=form.teacher_id.data,
        day_of_week=day_of_week,
        start_time=form.start_time.data,
        end_time=form.end_time.data,
        room=room,
    )
    db.session.add(slot)
    db.session.commit()

    current_app.logger.info(f"Timetable slot {slot.id} created in school {g.school_id}")
    return jsonify(slot.to_dict()), 201


@timetable_bp.route('/<int:slot_id>', methods=['GET'])
@school_admin_required
def get_slot(slot_id):
    slot = get_owned_or_abort(TimetableSlot, slot_id, "Timetable slot")
    return jsonify(slot.to_dict())


@timetable_bp.route('/<int:slot_id>', methods=['DELETE'])
@school_admin_required
def delete_slot(slot_id):
    slot = get_owned_or_abort(TimetableSlot, slot_id, "Timetable slot")
    db.session.delete(slot)
    db.session.commit()
    current_app.logger.info(f"Timetable slot {slot_id} deleted from school {g.school_id}")
    return jsonify({"message": "Timetable slot deleted successfully."})
