from sqlalchemy import text

from app import db
from app.models import Student, UserRole
from app.utils.helpers import school_today
from conftest import create_class, create_student, create_user


def _student_payload(**overrides):
    payload = {
        "firstName": "Akua",
        "lastName": "Ofori",
        "studentIdNumber": "STU-2024-01",
        "dateOfBirth": "2014-06-21",
        "gender": "FEMALE",
        "allergies": "Peanuts",
    }
    payload.update(overrides)
    return payload


def test_create_student_defaults(client, admin_headers, school):
    resp = client.post('/api/school-admin/students', json=_student_payload(), headers=admin_headers)

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["isActive"] is True
    assert data["gender"] == "FEMALE"
    assert data["dateOfBirth"] == "2014-06-21"
    assert data["enrollmentDate"] == school_today(school.timezone).isoformat()
    assert data["allergies"] == "Peanuts"


def test_medical_details_encrypted_at_rest(client, admin_headers):
    resp = client.post('/api/school-admin/students', json=_student_payload(), headers=admin_headers)
    student_id = resp.get_json()["id"]

    raw = db.session.execute(
        text("SELECT allergies FROM students WHERE id = :id"), {"id": student_id}
    ).scalar()
    assert raw is not None
    assert b"Peanuts" not in raw


def test_create_student_requires_fields(client, admin_headers):
    resp = client.post('/api/school-admin/students', json={"firstName": "Akua"}, headers=admin_headers)
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert {"lastName", "studentIdNumber", "dateOfBirth", "gender"} <= set(errors)


def test_create_student_invalid_date(client, admin_headers):
    resp = client.post(
        '/api/school-admin/students', json=_student_payload(dateOfBirth="21/06/2014"), headers=admin_headers
    )
    assert resp.status_code == 400
    assert "dateOfBirth" in resp.get_json()["errors"]


def test_create_student_duplicate_id_number(client, admin_headers, school):
    create_student(school, student_id_number="STU-2024-01")
    resp = client.post('/api/school-admin/students', json=_student_payload(), headers=admin_headers)
    assert resp.status_code == 409


def test_same_id_number_allowed_in_another_school(client, admin_headers, other_school):
    create_student(other_school, student_id_number="STU-2024-01")
    resp = client.post('/api/school-admin/students', json=_student_payload(), headers=admin_headers)
    assert resp.status_code == 201


def test_create_student_with_foreign_class(client, admin_headers, other_school):
    foreign_class = create_class(other_school)
    resp = client.post(
        '/api/school-admin/students', json=_student_payload(currentClassId=foreign_class.id), headers=admin_headers
    )
    assert resp.status_code == 400
    assert "currentClassId" in resp.get_json()["errors"]


def test_list_students_filters(client, admin_headers, school):
    grade_one = create_class(school)
    create_student(school, "S1", first_name="Abena", current_class_id=grade_one.id)
    create_student(school, "S2", first_name="Kojo")
    create_student(school, "S3", first_name="Efua", is_active=False)

    resp = client.get(f'/api/school-admin/students?classId={grade_one.id}', headers=admin_headers)
    assert [s["firstName"] for s in resp.get_json()] == ["Abena"]

    resp = client.get('/api/school-admin/students?isActive=false', headers=admin_headers)
    assert [s["firstName"] for s in resp.get_json()] == ["Efua"]


def test_update_student_partial(client, admin_headers, school):
    student = create_student(school)
    grade_one = create_class(school)
    resp = client.patch(
        f'/api/school-admin/students/{student.id}',
        json={"middleName": "Ama", "currentClassId": grade_one.id},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["middleName"] == "Ama"
    assert data["currentClass"]["name"] == "Grade 1"
    assert data["firstName"] == "Esi"


def test_update_student_clear_class(client, admin_headers, school):
    grade_one = create_class(school)
    student = create_student(school, current_class_id=grade_one.id)
    resp = client.patch(f'/api/school-admin/students/{student.id}', json={"currentClassId": None}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["currentClassId"] is None


def test_update_student_duplicate_id_number(client, admin_headers, school):
    create_student(school, "S1")
    student = create_student(school, "S2")
    resp = client.patch(f'/api/school-admin/students/{student.id}', json={"studentIdNumber": "S1"}, headers=admin_headers)
    assert resp.status_code == 409


def test_update_student_other_school_forbidden(client, admin_headers, other_school):
    foreign = create_student(other_school)
    resp = client.patch(f'/api/school-admin/students/{foreign.id}', json={"firstName": "X"}, headers=admin_headers)
    assert resp.status_code == 403


def test_delete_student_is_soft(client, admin_headers, school):
    user = create_user("esi@greenfield.edu", UserRole.STUDENT)
    student = create_student(school, user_id=user.id)

    resp = client.delete(f'/api/school-admin/students/{student.id}', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Student deactivated successfully."

    stored = db.session.get(Student, student.id)
    assert stored is not None
    assert stored.is_active is False
    assert stored.user.is_active is False

    resp = client.delete(f'/api/school-admin/students/{student.id}', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Student is already inactive."


def test_get_student(client, admin_headers, school):
    student = create_student(school)
    resp = client.get(f'/api/school-admin/students/{student.id}', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["studentIdNumber"] == "STU-001"


def test_update_student_null_enrollment_date_is_no_change(client, admin_headers, school):
    student = create_student(school)
    resp = client.patch(f'/api/school-admin/students/{student.id}', json={"enrollmentDate": None}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No changes provided to update."
    assert db.session.get(Student, student.id).enrollment_date.isoformat() == "2024-09-02"


def test_update_student_null_active_flag_keeps_student_active(client, admin_headers, school):
    user = create_user("esi.owusu@greenfield.edu", UserRole.STUDENT)
    student = create_student(school, user_id=user.id)

    resp = client.patch(f'/api/school-admin/students/{student.id}', json={"isActive": None}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.patch(
        f'/api/school-admin/students/{student.id}', json={"isActive": None, "firstName": "Efua"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["isActive"] is True
    assert resp.get_json()["firstName"] == "Efua"
    assert db.session.get(Student, student.id).user.is_active is True


def test_create_student_null_active_flag_defaults_to_active(client, admin_headers):
    resp = client.post('/api/school-admin/students', json=_student_payload(isActive=None), headers=admin_headers)
    assert resp.status_code == 201
    assert resp.get_json()["isActive"] is True


def test_list_students_rejects_non_integer_class_filter(client, admin_headers):
    resp = client.get('/api/school-admin/students?classId=abc', headers=admin_headers)
    assert resp.status_code == 400
