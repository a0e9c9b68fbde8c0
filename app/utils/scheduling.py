"""
Timetable scheduling helpers.

Slots are stored with "HH:MM" start and end times. Two slots clash when they
fall on the same day of the same school, share a teacher, class or room, and
their half-open intervals [start, end) overlap. Back-to-back slots (one ends
at 09:00, the next starts at 09:00) do not clash.
"""

from sqlalchemy import or_

from app.models import TimetableSlot

CLASH_TEACHER = 'teacher'
CLASH_CLASS = 'class'
CLASH_ROOM = 'room'


def time_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Return True when [start_a, end_a) and [start_b, end_b) share any minute."""
    return start_a < end_b and end_a > start_b


def clash_message(kind, day_of_week, room=None):
    """Human readable message for a clash of the given kind."""
    day = day_of_week.value if hasattr(day_of_week, 'value') else day_of_week
    if kind == CLASH_TEACHER:
        return f"Teacher is already assigned to another class at this time on {day}."
    if kind == CLASH_CLASS:
        return f"This class is already scheduled for another subject/teacher at this time on {day}."
    return f'Room "{room}" is already booked at this time on {day}.'


def find_clash(school_id, day_of_week, start_time, end_time, teacher_id, class_id, room=None, exclude_slot_id=None):
    """
    Look for an existing slot that clashes with the proposed one.

    Teacher clashes are reported before class clashes, and class clashes
    before room clashes. Room is only compared when one is given.

    Returns:
        tuple: (kind, slot) for the first clash found, or (None, None).
    """
    criteria = [
        TimetableSlot.teacher_id == teacher_id,
        TimetableSlot.class_id == class_id,
    ]
    if room:
        criteria.append(TimetableSlot.room == room)

    query = TimetableSlot.query.filter(
        TimetableSlot.school_id == school_id,
        TimetableSlot.day_of_week == day_of_week,
        or_(*criteria),
    )
    if exclude_slot_id is not None:
        query = query.filter(TimetableSlot.id != exclude_slot_id)

    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    overlapping = [
        slot for slot in query.all()
        if intervals_overlap(start, end, time_to_minutes(slot.start_time), time_to_minutes(slot.end_time))
    ]

    for kind, matches in (
        (CLASH_TEACHER, lambda s: s.teacher_id == teacher_id),
        (CLASH_CLASS, lambda s: s.class_id == class_id),
        (CLASH_ROOM, lambda s: bool(room) and s.room == room),
    ):
        for slot in overlapping:
            if matches(slot):
                return kind, slot
    return None, None
