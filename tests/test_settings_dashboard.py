from datetime import date
from decimal import Decimal

from app import db
from app.models import Invoice, PaymentStatus, SchoolAnnouncement, TermPeriod
from conftest import create_class, create_student, create_subject, create_teacher


def test_get_settings(client, admin_headers, school):
    resp = client.get('/api/school-admin/settings', headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["id"] == school.id
    assert resp.get_json()["schoolEmail"] == "office@greenfield.edu"


def test_update_settings(client, admin_headers):
    resp = client.patch(
        '/api/school-admin/settings',
        json={"currentAcademicYear": "2025-2026", "currentTerm": "SECOND_TERM", "website": "https://greenfield.edu"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["currentAcademicYear"] == "2025-2026"
    assert data["currentTerm"] == "SECOND_TERM"
    assert data["website"] == "https://greenfield.edu"


def test_update_settings_rejects_bad_values(client, admin_headers):
    resp = client.patch(
        '/api/school-admin/settings',
        json={"currentAcademicYear": "2025-2027", "logoUrl": "logo.png", "currentTerm": "FOURTH_TERM"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert set(resp.get_json()["errors"]) == {"currentAcademicYear", "logoUrl", "currentTerm"}


def test_update_settings_cannot_touch_other_fields(client, admin_headers):
    resp = client.patch('/api/school-admin/settings', json={"name": "Renamed"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No changes provided to update."


def test_dashboard_counts(client, admin_headers, school, admin_user, other_school):
    create_teacher(school, "kofi@greenfield.edu")
    create_class(school)
    create_subject(school)
    active = create_student(school, "S1")
    create_student(school, "S2", is_active=False)
    create_student(other_school, "S1")
    db.session.add(SchoolAnnouncement(school_id=school.id, title="Hello", content="Welcome back all", is_published=True))
    db.session.add(SchoolAnnouncement(school_id=school.id, title="Draft", content="Not yet ready", is_published=False))
    for number, status, paid in (
        ("INV-202409-0001", PaymentStatus.PENDING, Decimal("0.00")),
        ("INV-202409-0002", PaymentStatus.PARTIALLY_PAID, Decimal("40.00")),
        ("INV-202409-0003", PaymentStatus.PAID, Decimal("100.00")),
    ):
        db.session.add(Invoice(
            school_id=school.id, student_id=active.id, invoice_number=number,
            issue_date=date(2024, 9, 1), due_date=date(2024, 9, 30),
            total_amount=Decimal("100.00"), paid_amount=paid, status=status,
            academic_year="2024-2025", term=TermPeriod.FIRST_TERM,
        ))
    db.session.commit()

    resp = client.get('/api/school-admin/dashboard', headers=admin_headers)

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["teacherCount"] == 1
    assert data["activeStudentCount"] == 1
    assert data["classCount"] == 1
    assert data["subjectCount"] == 1
    assert data["publishedAnnouncementCount"] == 1
    assert data["outstandingInvoiceCount"] == 2
    assert data["outstandingBalance"] == "160.00"
    assert data["school"]["name"] == "Greenfield Academy"
