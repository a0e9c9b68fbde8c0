"""
JSON error handling for the School Portal API.

Every error leaves the application as ``{"message": ..., "errors"?: ...}``.
Authorization failures and unexpected server errors are also recorded in the
ErrorLog table so that administrators can review them later.
"""

import traceback
from datetime import datetime, timezone

from flask import current_app, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import NotFound

from app.extensions import db


# -------------------- RESPONSE HELPERS --------------------

def error_response(message, status, errors=None):
    body = {"message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def validation_error(errors):
    """400 response for a failed form, with messages keyed by JSON field name."""
    return error_response("Invalid input", 400, errors)


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    """True when the database rejected a write because of a foreign key."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode:
        return pgcode == "23503"
    return "FOREIGN KEY" in str(exc.orig).upper()


def conflict_from_integrity_error(exc: IntegrityError, unique_message, restrict_message=None):
    """
    Translate an IntegrityError raised on commit into a 409 response.

    The session must already have been rolled back by the caller.
    """
    if restrict_message and is_foreign_key_violation(exc):
        current_app.logger.warning(f"Delete blocked by foreign key: {exc.orig}")
        return error_response(restrict_message, 409)
    current_app.logger.warning(f"Unique constraint violation: {exc.orig}")
    return error_response(unique_message, 409)


# -------------------- ERROR LOGGING --------------------

def log_error_to_db(error_type=None, error_message=None, stack_trace=None):
    """
    Save error information to the database for later review.
    This function should not raise exceptions to avoid recursive error loops.
    """
    from app.auth import get_session_claims
    from app.models import ErrorLog

    try:
        claims = get_session_claims() or {}
        error_log = ErrorLog(
            timestamp=datetime.now(timezone.utc),
            error_type=error_type,
            error_message=error_message,
            request_path=request.path,
            request_method=request.method,
            user_agent=request.headers.get('User-Agent'),
            ip_address=request.remote_addr,
            user_id=claims.get("uid"),
            stack_trace=stack_trace,
        )
        db.session.add(error_log)
        db.session.commit()
        return error_log.id
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to log error to database: {str(e)}")
        return None


# -------------------- ERROR HANDLERS --------------------

def register_error_handlers(app):
    """Attach JSON error handlers to the application."""

    @app.errorhandler(400)
    def bad_request_error(error):
        message = getattr(error, "description", None) or "Bad request."
        app.logger.warning(f"400 Bad Request: {request.url} - {message}")
        return error_response(message, 400)

    @app.errorhandler(401)
    def unauthorized_error(error):
        app.logger.warning(f"401 Unauthorized: {request.url}")
        log_error_to_db(
            error_type='401 Unauthorized',
            error_message=f"Authentication required: {request.path}",
        )
        return error_response(error.description or "Unauthorized", 401)

    @app.errorhandler(403)
    def forbidden_error(error):
        app.logger.warning(f"403 Forbidden: {request.url}")
        # Cross-tenant attempts could indicate a security issue
        log_error_to_db(
            error_type='403 Forbidden',
            error_message=f"{error.description}: {request.path}",
        )
        return error_response(error.description or "Forbidden", 403)

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.info(f"404 Not Found: {request.url}")
        message = error.description
        if not message or message == NotFound.description:
            message = "Not found."
        return error_response(message, 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return error_response("Method not allowed.", 405)

    @app.errorhandler(409)
    def conflict_error(error):
        return error_response(error.description, 409)

    @app.errorhandler(429)
    def rate_limited_error(error):
        app.logger.warning(f"429 Too Many Requests: {request.url}")
        return error_response("Too many requests. Please try again later.", 429)

    @app.errorhandler(IntegrityError)
    def integrity_error(error):
        db.session.rollback()
        app.logger.warning(f"Unhandled integrity error on {request.path}: {error.orig}")
        return error_response("A record with these details already exists or is still in use.", 409)

    @app.errorhandler(500)
    def internal_error(error):
        """Log the failure (including to the database) and return a generic message."""
        original = getattr(error, "original_exception", None) or error
        app.logger.exception("500 Internal Server Error occurred")
        db.session.rollback()
        log_error_to_db(
            error_type=type(original).__name__,
            error_message=str(original),
            stack_trace=traceback.format_exc(),
        )
        return error_response("An unexpected error occurred. Please try again.", 500)

    @app.errorhandler(503)
    def service_unavailable_error(error):
        app.logger.warning(f"503 Service Unavailable: {request.url}")
        return error_response("Service temporarily unavailable.", 503)
