from app import db
from app.models import (
    Assignment,
    DayOfWeek,
    SchoolClass,
    Student,
    StudentGrade,
    Subject,
    Teacher,
    TermPeriod,
    TimetableSlot,
)
from conftest import (
    auth_headers,
    create_class,
    create_school,
    create_school_admin,
    create_student,
    create_subject,
    create_teacher,
)


def test_create_subject(client, admin_headers, school):
    resp = client.post(
        '/api/school-admin/subjects',
        json={"name": "Integrated Science", "code": "SCI", "description": "Core science"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["name"] == "Integrated Science"
    assert data["schoolId"] == school.id


def test_create_subject_requires_name(client, admin_headers):
    resp = client.post('/api/school-admin/subjects', json={"code": "SCI"}, headers=admin_headers)
    assert resp.status_code == 400
    assert "name" in resp.get_json()["errors"]


def test_duplicate_subject_name_and_code(client, admin_headers, school):
    create_subject(school, name="Mathematics", code="MATH")

    resp = client.post('/api/school-admin/subjects', json={"name": "Mathematics"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "A subject with this name already exists in your school."

    resp = client.post('/api/school-admin/subjects', json={"name": "Maths", "code": "MATH"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["message"] == "A subject with this code already exists in your school."


def test_list_subjects_sorted_and_scoped(client, admin_headers, school, other_school):
    create_subject(school, name="Social Studies", code="SOC")
    create_subject(school, name="English", code="ENG")
    create_subject(other_school, name="French", code="FRE")

    resp = client.get('/api/school-admin/subjects', headers=admin_headers)
    assert [s["name"] for s in resp.get_json()] == ["English", "Social Studies"]


def test_update_subject(client, admin_headers, school):
    subject = create_subject(school)
    resp = client.patch(f'/api/school-admin/subjects/{subject.id}', json={"description": "Numbers"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["description"] == "Numbers"
    assert resp.get_json()["code"] == "MATH"


def test_update_subject_to_existing_name(client, admin_headers, school):
    create_subject(school, name="English", code="ENG")
    subject = create_subject(school)
    resp = client.patch(f'/api/school-admin/subjects/{subject.id}', json={"name": "English"}, headers=admin_headers)
    assert resp.status_code == 409


def test_delete_subject_of_other_school_forbidden(client, admin_headers, other_school):
    subject = create_subject(other_school)
    resp = client.delete(f'/api/school-admin/subjects/{subject.id}', headers=admin_headers)
    assert resp.status_code == 403
    assert db.session.get(Subject, subject.id) is not None


def test_delete_subject_cascades_to_dependents(client_with_fk):
    school = create_school()
    headers = auth_headers(create_school_admin(school, "ama.mensah@greenfield.edu"))
    subject = create_subject(school)
    school_class = create_class(school)
    teacher = create_teacher(school, "kofi@greenfield.edu")
    student = create_student(school)

    assignment = Assignment(
        school_id=school.id, subject_id=subject.id, class_id=school_class.id,
        teacher_id=teacher.id, title="Fractions worksheet",
    )
    db.session.add(assignment)
    db.session.add(TimetableSlot(
        school_id=school.id, class_id=school_class.id, subject_id=subject.id, teacher_id=teacher.id,
        day_of_week=DayOfWeek.TUESDAY, start_time="10:00", end_time="11:00",
    ))
    db.session.flush()
    db.session.add(StudentGrade(
        school_id=school.id, student_id=student.id, subject_id=subject.id, assignment_id=assignment.id,
        teacher_id=teacher.id, academic_year="2024-2025", term=TermPeriod.FIRST_TERM, marks_obtained=18,
    ))
    db.session.commit()

    resp = client_with_fk.delete(f'/api/school-admin/subjects/{subject.id}', headers=headers)

    assert resp.status_code == 200
    assert Subject.query.count() == 0
    assert TimetableSlot.query.count() == 0
    assert Assignment.query.count() == 0
    assert StudentGrade.query.count() == 0
    # The class, teacher and student themselves are untouched
    assert SchoolClass.query.count() == 1
    assert Teacher.query.count() == 1
    assert Student.query.count() == 1
