from datetime import date
from decimal import Decimal

from werkzeug.security import check_password_hash

from app import db
from app.models import Invoice, PaymentStatus, SuperAdmin, TermPeriod, User, UserRole
from conftest import create_student, create_user


def test_seed_superadmin_creates_account(app, client):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'seed-superadmin', '--email', 'Root@Portal.edu', '--password', 'super-secret-1',
    ])

    assert result.exit_code == 0, result.output
    assert "Super admin root@portal.edu created." in result.output
    user = User.query.filter_by(email='root@portal.edu').one()
    assert user.role == UserRole.SUPER_ADMIN
    assert check_password_hash(user.password_hash, 'super-secret-1')
    assert SuperAdmin.query.filter_by(user_id=user.id).count() == 1


def test_seed_superadmin_is_idempotent(app, client):
    runner = app.test_cli_runner()
    args = ['seed-superadmin', '--email', 'root@portal.edu', '--password', 'super-secret-1']
    runner.invoke(args=args)
    result = runner.invoke(args=args)

    assert result.exit_code == 0
    assert "already exists" in result.output
    assert User.query.count() == 1
    assert SuperAdmin.query.count() == 1


def test_seed_superadmin_restores_missing_record(app, client):
    create_user('root@portal.edu', UserRole.SUPER_ADMIN)
    result = app.test_cli_runner().invoke(args=[
        'seed-superadmin', '--email', 'root@portal.edu', '--password', 'super-secret-1',
    ])
    assert "Added missing super admin record" in result.output
    assert SuperAdmin.query.count() == 1


def test_seed_superadmin_refuses_other_roles(app, client):
    create_user('kofi@greenfield.edu', UserRole.TEACHER)
    result = app.test_cli_runner().invoke(args=[
        'seed-superadmin', '--email', 'kofi@greenfield.edu', '--password', 'super-secret-1',
    ])
    assert result.exit_code != 0
    assert SuperAdmin.query.count() == 0


def test_seed_superadmin_rejects_short_password(app, client):
    result = app.test_cli_runner().invoke(args=[
        'seed-superadmin', '--email', 'root@portal.edu', '--password', 'short',
    ])
    assert result.exit_code != 0
    assert User.query.count() == 0


def test_mark_overdue_invoices_command(app, client, school):
    student = create_student(school)
    db.session.add(Invoice(
        school_id=school.id, student_id=student.id, invoice_number="INV-200001-0001",
        issue_date=date(2000, 1, 1), due_date=date(2000, 1, 31),
        total_amount=Decimal("50.00"), paid_amount=Decimal("0.00"), status=PaymentStatus.PENDING,
        academic_year="1999-2000", term=TermPeriod.SECOND_TERM,
    ))
    db.session.commit()

    result = app.test_cli_runner().invoke(args=['mark-overdue-invoices'])

    assert result.exit_code == 0
    assert "Marked 1 invoice overdue." in result.output
    assert Invoice.query.one().status == PaymentStatus.OVERDUE
