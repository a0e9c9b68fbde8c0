"""
Authentication and authorization utilities for the School Portal.

Contains session token helpers, authentication decorators, and tenant
(school) resolution for school administrators.

Sessions are signed JWTs. Browsers receive the token as an HttpOnly cookie;
API clients may send it as ``Authorization: Bearer <token>`` instead.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import abort, current_app, g, request

from app.utils.constants import DASHBOARD_PATHS, LOGIN_PATH


# -------------------- SESSION TOKENS --------------------

JWT_ALGORITHM = "HS256"


def create_session_token(user):
    """Issue a signed session token carrying the user's id, role and name."""
    now = datetime.now(timezone.utc)
    hours = current_app.config.get("JWT_EXPIRATION_HOURS", 24)
    payload = {
        "uid": user.id,
        "role": user.role.value,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm=JWT_ALGORITHM)


def decode_session_token(token):
    """Return the token's claims, or None when it is expired or invalid."""
    try:
        return jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Rejected expired session token")
        return None
    except jwt.InvalidTokenError:
        current_app.logger.warning("Rejected invalid session token")
        return None


def get_bearer_token():
    """Return the token from an ``Authorization: Bearer`` header, if any."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def get_session_token():
    return get_bearer_token() or request.cookies.get(current_app.config["SESSION_TOKEN_COOKIE"])


def get_session_claims():
    """Decode and return the caller's session claims, or None."""
    token = get_session_token()
    return decode_session_token(token) if token else None


def get_current_user():
    """Return the active User behind the session token, or None."""
    from app.extensions import db
    from app.models import User

    claims = get_session_claims()
    if not claims:
        return None
    user = db.session.get(User, claims.get("uid"))
    if not user or not user.is_active:
        return None
    return user


def dashboard_path_for(role):
    """Landing page for a role name (e.g. "SCHOOL_ADMIN")."""
    return DASHBOARD_PATHS.get(role, LOGIN_PATH)


# -------------------- CSRF FOR COOKIE SESSIONS --------------------

def protect_cookie_sessions():
    """
    Enforce CSRF tokens on mutating requests authenticated by cookie.

    Bearer-token clients are not exposed to CSRF and the login endpoint
    has no session yet, so both are skipped.
    """
    from app.extensions import csrf

    if not current_app.config.get("WTF_CSRF_ENABLED", True):
        return None
    if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
        return None
    if request.endpoint in {"api.login", "main.health_check"}:
        return None
    if get_bearer_token():
        return None
    csrf.protect()
    return None


# -------------------- AUTHENTICATION DECORATORS --------------------

def login_required(f):
    """
    Decorator to require a valid session for a route.

    Responds 401 when the token is missing, expired, invalid, or belongs to
    a user that no longer exists or has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            abort(401, description="Unauthorized")
        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """
    Decorator factory restricting a route to the given role names.

    Implies login_required. Responds 403 for authenticated users whose
    role is not listed.
    """
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if g.current_user.role.value not in roles:
                current_app.logger.warning(
                    f"Role {g.current_user.role.value} denied access to {request.path}"
                )
                abort(403, description="Forbidden")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def super_admin_required(f):
    """Decorator to require a SUPER_ADMIN session. Sets g.super_admin."""
    @wraps(f)
    @role_required("SUPER_ADMIN")
    def decorated_function(*args, **kwargs):
        g.super_admin = g.current_user.super_admin
        return f(*args, **kwargs)
    return decorated_function


def school_admin_required(f):
    """
    Decorator to require a SCHOOL_ADMIN session linked to a school.

    Resolves the tenant for the request: sets g.school_admin and
    g.school_id from the admin's school link. Admins without a link get 400.
    """
    @wraps(f)
    @role_required("SCHOOL_ADMIN")
    def decorated_function(*args, **kwargs):
        link = get_admin_school_link(g.current_user.id)
        if not link:
            current_app.logger.warning(f"School admin user {g.current_user.id} has no school link")
            abort(400, description="Admin not associated with any school.")
        g.school_admin = link
        g.school_id = link.school_id
        return f(*args, **kwargs)
    return decorated_function


# -------------------- HELPER FUNCTIONS --------------------

def get_admin_school_link(user_id):
    """Return the SchoolAdmin link for a user (oldest first), or None."""
    from app.models import SchoolAdmin
    return (
        SchoolAdmin.query
        .filter_by(user_id=user_id)
        .order_by(SchoolAdmin.id)
        .first()
    )


def get_owned_or_abort(model, object_id, label):
    """
    Load a school-scoped record for the current school admin.

    Responds 404 when it does not exist and 403 when it belongs to another
    school.
    """
    from app.extensions import db

    obj = db.session.get(model, object_id)
    if obj is None:
        abort(404, description=f"{label} not found.")
    if obj.school_id != g.school_id:
        current_app.logger.warning(
            f"School {g.school_id} admin attempted to access {label.lower()} {object_id} of school {obj.school_id}"
        )
        abort(403, description=f"Forbidden: {label.lower()} does not belong to your school.")
    return obj
