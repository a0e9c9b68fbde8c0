import os
import sys
from datetime import date

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Override env vars for testing
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["FLASK_ENV"] = "testing"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")

# Use a valid Fernet key (32 url-safe base64-encoded bytes)
os.environ.setdefault("ENCRYPTION_KEY", "jhe53bcYZI4_MZS4Kb8hu8-xnQHHvwqSX8LN4sDtzbw=")


sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from werkzeug.security import generate_password_hash

from app import app as flask_app, db
from app.auth import create_session_token
from app.models import (
    Gender,
    School,
    SchoolAdmin,
    SchoolClass,
    Student,
    Subject,
    SuperAdmin,
    Teacher,
    User,
    UserRole,
)

ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def app():
    """Provide the Flask app instance for tests."""
    flask_app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        ENV="testing",
        SESSION_COOKIE_SECURE=False,
    )
    yield flask_app


@pytest.fixture
def client(app):
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    client = flask_app.test_client()
    yield client
    db.session.remove()
    db.drop_all()
    ctx.pop()


# SQLite pragma event listener for foreign key constraints
# Registered at module level and persists across all tests
from sqlalchemy import event
from sqlalchemy.engine import Engine

def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Register event listener once at module load time
# Only applies to SQLite connections, so won't affect other databases
event.listen(Engine, "connect", _enable_sqlite_foreign_keys)


@pytest.fixture
def client_with_fk():
    """
    Test client with foreign key constraints enabled.
    Use this fixture for tests that need to verify CASCADE / SET NULL behavior.
    """
    flask_app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        ENV="testing",
        SESSION_COOKIE_SECURE=False,
    )
    ctx = flask_app.app_context()
    ctx.push()

    db.create_all()

    # Foreign key constraints are enabled by the event listener.

    client = flask_app.test_client()
    yield client

    db.session.remove()
    db.drop_all()
    ctx.pop()


# -------------------- DATA HELPERS --------------------

def create_user(email, role, password=ADMIN_PASSWORD, is_active=True, first_name="Test", last_name="User"):
    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=is_active,
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_school(name="Greenfield Academy", email="office@greenfield.edu", **kwargs):
    school = School(name=name, school_email=email, **kwargs)
    db.session.add(school)
    db.session.commit()
    return school


def create_school_admin(school, email):
    user = create_user(email, UserRole.SCHOOL_ADMIN, first_name="Ama", last_name="Mensah")
    link = SchoolAdmin(user_id=user.id, school_id=school.id)
    db.session.add(link)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_session_token(user)}"}


def create_teacher(school, email, first_name="Kofi", last_name="Boateng", **kwargs):
    user = create_user(email, UserRole.TEACHER, first_name=first_name, last_name=last_name)
    teacher = Teacher(user_id=user.id, school_id=school.id, **kwargs)
    db.session.add(teacher)
    db.session.commit()
    return teacher


def create_class(school, name="Grade 1", section="A", academic_year="2024-2025"):
    school_class = SchoolClass(school_id=school.id, name=name, section=section, academic_year=academic_year)
    db.session.add(school_class)
    db.session.commit()
    return school_class


def create_subject(school, name="Mathematics", code="MATH"):
    subject = Subject(school_id=school.id, name=name, code=code)
    db.session.add(subject)
    db.session.commit()
    return subject


def create_student(school, student_id_number="STU-001", first_name="Esi", last_name="Owusu", **kwargs):
    student = Student(
        school_id=school.id,
        student_id_number=student_id_number,
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date(2015, 3, 14),
        gender=Gender.FEMALE,
        enrollment_date=date(2024, 9, 2),
        **kwargs,
    )
    db.session.add(student)
    db.session.commit()
    return student


# -------------------- FIXTURES --------------------

@pytest.fixture
def school(client):
    return create_school()


@pytest.fixture
def other_school(client):
    return create_school(name="Riverside College", email="admin@riverside.edu")


@pytest.fixture
def admin_user(school):
    return create_school_admin(school, "ama.mensah@greenfield.edu")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def other_admin_headers(other_school):
    return auth_headers(create_school_admin(other_school, "head@riverside.edu"))


@pytest.fixture
def super_admin_user(client):
    user = create_user("root@portal.edu", UserRole.SUPER_ADMIN, first_name="System", last_name="Administrator")
    db.session.add(SuperAdmin(user_id=user.id))
    db.session.commit()
    return user


@pytest.fixture
def super_headers(super_admin_user):
    return auth_headers(super_admin_user)
