import pytest
from sqlalchemy.exc import SQLAlchemyError
from app import db

from conftest import auth_headers, create_user
from app.models import UserRole


def test_health_ok(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.data == b'ok'


def test_health_db_error(monkeypatch, client):
    def raise_error(*args, **kwargs):
        raise SQLAlchemyError("fail")
    monkeypatch.setattr(db.session, 'execute', raise_error)
    resp = client.get('/health')
    assert resp.status_code == 500
    assert resp.is_json
    assert resp.json['error'] == 'Database error'


def test_home_redirects_anonymous_to_login(client):
    resp = client.get('/')
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/login?callbackUrl=/')


@pytest.mark.parametrize("role, dashboard", [
    (UserRole.SUPER_ADMIN, '/super-admin/dashboard'),
    (UserRole.SCHOOL_ADMIN, '/school-admin/dashboard'),
    (UserRole.TEACHER, '/teacher/dashboard'),
    (UserRole.PARENT, '/parent/dashboard'),
])
def test_home_redirects_to_role_dashboard(client, role, dashboard):
    user = create_user(f"{role.value.lower()}@greenfield.edu", role)
    resp = client.get('/', headers=auth_headers(user))
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith(dashboard)


def test_security_headers_present(client):
    resp = client.get('/health')
    assert resp.headers['X-Frame-Options'] == 'DENY'
    assert resp.headers['X-Content-Type-Options'] == 'nosniff'
    assert 'max-age=31536000' in resp.headers['Strict-Transport-Security']
    assert resp.headers['Referrer-Policy'] == 'strict-origin-when-cross-origin'


def test_api_responses_are_not_cached(client):
    resp = client.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.headers['Cache-Control'] == 'no-store'


def test_unknown_route_returns_json_404(client):
    resp = client.get('/api/does-not-exist')
    assert resp.status_code == 404
    assert resp.json == {"message": "Not found."}
