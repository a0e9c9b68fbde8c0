import pytest

from app import db
from app.models import DayOfWeek, SchoolClass, Student, TimetableSlot
from conftest import create_class, create_student, create_subject, create_teacher


@pytest.mark.parametrize("academic_year, accepted", [
    ("2024-2025", True),
    ("2024-2026", False),
    ("2025-2024", False),
    ("2024/2025", False),
    ("24-25", False),
])
def test_class_academic_year_rule(client, admin_headers, academic_year, accepted):
    resp = client.post(
        '/api/school-admin/classes',
        json={"name": "JHS 1", "section": "Gold", "academicYear": academic_year},
        headers=admin_headers,
    )
    if accepted:
        assert resp.status_code == 201
        assert resp.get_json()["academicYear"] == academic_year
    else:
        assert resp.status_code == 400
        assert "academicYear" in resp.get_json()["errors"]


def test_create_class_with_homeroom_teacher(client, admin_headers, school):
    teacher = create_teacher(school, "kofi@greenfield.edu")
    resp = client.post(
        '/api/school-admin/classes',
        json={"name": "Grade 3", "academicYear": "2024-2025", "homeroomTeacherId": teacher.id},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["homeroomTeacher"]["firstName"] == "Kofi"
    assert data["studentCount"] == 0
    assert data["section"] is None


def test_create_class_with_foreign_homeroom_teacher(client, admin_headers, other_school):
    foreign = create_teacher(other_school, "theirs@riverside.edu")
    resp = client.post(
        '/api/school-admin/classes',
        json={"name": "Grade 3", "academicYear": "2024-2025", "homeroomTeacherId": foreign.id},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "homeroomTeacherId" in resp.get_json()["errors"]


def test_duplicate_class_conflicts(client, admin_headers, school):
    create_class(school, name="Grade 1", section="A", academic_year="2024-2025")
    resp = client.post(
        '/api/school-admin/classes',
        json={"name": "Grade 1", "section": "A", "academicYear": "2024-2025"},
        headers=admin_headers,
    )
    assert resp.status_code == 409


def test_same_class_name_in_new_academic_year(client, admin_headers, school):
    create_class(school, name="Grade 1", section="A", academic_year="2024-2025")
    resp = client.post(
        '/api/school-admin/classes',
        json={"name": "Grade 1", "section": "A", "academicYear": "2025-2026"},
        headers=admin_headers,
    )
    assert resp.status_code == 201


def test_list_classes_ordering_and_counts(client, admin_headers, school):
    older = create_class(school, name="Grade 2", section="A", academic_year="2023-2024")
    newer_b = create_class(school, name="Grade 1", section="B", academic_year="2024-2025")
    newer_a = create_class(school, name="Grade 1", section="A", academic_year="2024-2025")
    create_student(school, "S1", current_class_id=newer_a.id)
    create_student(school, "S2", current_class_id=newer_a.id)

    resp = client.get('/api/school-admin/classes', headers=admin_headers)
    assert resp.status_code == 200
    data = resp.get_json()
    assert [c["id"] for c in data] == [newer_a.id, newer_b.id, older.id]
    assert [c["studentCount"] for c in data] == [2, 0, 0]


def test_list_classes_simple(client, admin_headers, school):
    school_class = create_class(school)
    resp = client.get('/api/school-admin/classes?simple=true', headers=admin_headers)
    assert resp.get_json() == [{"id": school_class.id, "name": "Grade 1", "section": "A"}]


def test_super_admin_lists_classes_for_school(client, super_headers, school):
    create_class(school)
    resp = client.get(f'/api/school-admin/classes?schoolId={school.id}', headers=super_headers)
    assert resp.status_code == 200
    assert len(resp.get_json()) == 1

    resp = client.get('/api/school-admin/classes', headers=super_headers)
    assert resp.status_code == 400


def test_super_admin_cannot_create_classes(client, super_headers):
    resp = client.post(
        '/api/school-admin/classes', json={"name": "Grade 1", "academicYear": "2024-2025"}, headers=super_headers
    )
    assert resp.status_code == 403


def test_update_class(client, admin_headers, school):
    school_class = create_class(school)
    resp = client.patch(f'/api/school-admin/classes/{school_class.id}', json={"section": "Blue"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["section"] == "Blue"
    assert resp.get_json()["name"] == "Grade 1"


def test_update_class_into_duplicate(client, admin_headers, school):
    create_class(school, section="A")
    school_class = create_class(school, section="B")
    resp = client.patch(f'/api/school-admin/classes/{school_class.id}', json={"section": "A"}, headers=admin_headers)
    assert resp.status_code == 409


def test_update_class_invalid_year(client, admin_headers, school):
    school_class = create_class(school)
    resp = client.patch(
        f'/api/school-admin/classes/{school_class.id}', json={"academicYear": "2024-2026"}, headers=admin_headers
    )
    assert resp.status_code == 400


def test_get_class_of_other_school_forbidden(client, admin_headers, other_school):
    school_class = create_class(other_school)
    resp = client.get(f'/api/school-admin/classes/{school_class.id}', headers=admin_headers)
    assert resp.status_code == 403


def test_delete_class_unassigns_students_and_drops_slots(client, admin_headers, school):
    school_class = create_class(school)
    student = create_student(school, current_class_id=school_class.id)
    teacher = create_teacher(school, "kofi@greenfield.edu")
    subject = create_subject(school)
    db.session.add(TimetableSlot(
        school_id=school.id, class_id=school_class.id, subject_id=subject.id, teacher_id=teacher.id,
        day_of_week=DayOfWeek.MONDAY, start_time="08:00", end_time="09:00",
    ))
    db.session.commit()

    resp = client.delete(f'/api/school-admin/classes/{school_class.id}', headers=admin_headers)

    assert resp.status_code == 200
    assert SchoolClass.query.count() == 0
    assert TimetableSlot.query.count() == 0
    assert db.session.get(Student, student.id).current_class_id is None
