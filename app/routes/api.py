"""
Authentication API routes for the School Portal.

Handles credential login, logout, session inspection and CSRF token
issuance. Sessions are JWTs delivered as an HttpOnly cookie.
"""

from flask import Blueprint, current_app, jsonify
from flask_wtf.csrf import generate_csrf
from werkzeug.security import check_password_hash

from app.auth import create_session_token, dashboard_path_for, get_current_user, get_session_claims
from app.errors import error_response, validation_error
from app.extensions import limiter
from app.models import User
from app.utils.helpers import get_json_payload, is_safe_url
from forms import LoginForm

api_bp = Blueprint('api', __name__, url_prefix='/api/auth')

INVALID_CREDENTIALS = "Invalid email or password."


def _set_session_cookie(response, token):
    response.set_cookie(
        current_app.config["SESSION_TOKEN_COOKIE"],
        token,
        max_age=current_app.config["JWT_EXPIRATION_HOURS"] * 3600,
        httponly=True,
        secure=current_app.config["SESSION_COOKIE_SECURE"],
        samesite="Lax",
    )
    return response


# -------------------- LOGIN / LOGOUT --------------------

@api_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Verify email and password, then issue a session token."""
    form = LoginForm(get_json_payload())
    if not form.validate():
        return validation_error(form.json_errors)

    email = form.email.data.lower()
    user = User.query.filter(User.email == email).first()
    if not user or not check_password_hash(user.password_hash, form.password.data):
        current_app.logger.warning(f"Failed login attempt for {email}")
        return error_response(INVALID_CREDENTIALS, 401)
    if not user.is_active:
        current_app.logger.warning(f"Login attempt for deactivated account {email}")
        return error_response(INVALID_CREDENTIALS, 401)

    token = create_session_token(user)
    callback_url = form.callback_url.data
    redirect_to = callback_url if callback_url and is_safe_url(callback_url) else dashboard_path_for(user.role.value)

    current_app.logger.info(f"User {user.id} ({user.role.value}) logged in")
    response = jsonify({
        "user": {
            "id": user.id,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "role": user.role.value,
        },
        "token": token,
        "redirect": redirect_to,
    })
    return _set_session_cookie(response, token)


@api_bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({"message": "Logged out."})
    response.delete_cookie(current_app.config["SESSION_TOKEN_COOKIE"], samesite="Lax")
    return response


# -------------------- SESSION --------------------

@api_bp.route('/session', methods=['GET'])
def session_info():
    """Return the caller's session claims and dashboard, or 401."""
    user = get_current_user()
    if not user:
        return error_response("Unauthorized", 401)
    claims = get_session_claims()
    return jsonify({
        "user": {
            "id": user.id,
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "role": user.role.value,
        },
        "expiresAt": claims.get("exp"),
        "dashboard": dashboard_path_for(user.role.value),
    })


@api_bp.route('/csrf', methods=['GET'])
def csrf_token():
    """Issue a CSRF token for cookie-authenticated browser clients."""
    return jsonify({"csrfToken": generate_csrf()})
