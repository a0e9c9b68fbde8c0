"""
Application factory for the School Portal.

This module provides create_app() which initializes Flask, extensions,
logging, error handlers, and registers blueprints.
"""

import os
import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, request
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# Validate required environment variables
required_env_vars = ["SECRET_KEY", "DATABASE_URL", "FLASK_ENV", "ENCRYPTION_KEY"]
missing_vars = [var for var in required_env_vars if not os.getenv(var)]
if missing_vars:
    raise RuntimeError(
        "Missing required environment variables: " + ", ".join(missing_vars)
    )


def _env_flag(name, default):
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


# -------------------- APPLICATION FACTORY --------------------

def create_app():
    """
    Application factory function.

    Creates and configures the Flask application, initializes extensions,
    sets up logging, registers error handlers and blueprints.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # -------------------- CONFIGURATION --------------------
    env = os.environ["FLASK_ENV"]
    app.config.from_mapping(
        DEBUG=False,
        ENV=env,
        SECRET_KEY=os.environ["SECRET_KEY"],
        SQLALCHEMY_DATABASE_URI=os.environ["DATABASE_URL"],
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SESSION_COOKIE_SECURE=env == "production",
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_TOKEN_COOKIE=os.getenv("SESSION_TOKEN_COOKIE", "session_token"),
        JWT_EXPIRATION_HOURS=int(os.getenv("JWT_EXPIRATION_HOURS", "24")),
        # CSRF is enforced selectively for cookie-authenticated requests (see auth.protect_cookie_sessions)
        WTF_CSRF_CHECK_DEFAULT=False,
        WTF_CSRF_HEADERS=["X-CSRFToken", "X-CSRF-Token"],
        RATELIMIT_ENABLED=_env_flag("RATELIMIT_ENABLED", "true"),
        OVERDUE_CHECK_INTERVAL_HOURS=int(os.getenv("OVERDUE_CHECK_INTERVAL_HOURS", "6")),
    )

    # -------------------- EXTENSIONS --------------------
    from app.extensions import db, migrate, csrf, limiter

    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    # -------------------- LOGGING --------------------
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    log_format = os.getenv(
        "LOG_FORMAT",
        "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(logging.Formatter(log_format))

    app.logger.setLevel(log_level)
    # Prevent duplicate log entries by clearing handlers first
    app.logger.handlers.clear()
    app.logger.addHandler(stream_handler)

    if env == "production":
        log_file = os.getenv("LOG_FILE", "app.log")
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        app.logger.addHandler(file_handler)

    # -------------------- REQUEST HOOKS --------------------
    from app.auth import protect_cookie_sessions

    app.before_request(protect_cookie_sessions)

    # -------------------- ERROR HANDLERS --------------------
    from app.errors import register_error_handlers

    register_error_handlers(app)

    # -------------------- REGISTER BLUEPRINTS --------------------
    from app.routes.main import main_bp
    from app.routes.api import api_bp
    from app.routes.system_admin import sysadmin_bp
    from app.routes.admin import admin_bp
    from app.routes.admin_timetable import timetable_bp
    from app.routes.admin_finances import finances_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(sysadmin_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(timetable_bp)
    app.register_blueprint(finances_bp)

    # -------------------- SECURITY HEADERS --------------------
    @app.after_request
    def set_security_headers(response):
        """
        Add security headers to all HTTP responses.

        - HSTS: Force HTTPS connections
        - X-Frame-Options: Prevent clickjacking
        - X-Content-Type-Options: Prevent MIME sniffing attacks
        - Referrer-Policy: Control referrer information leakage

        See: https://owasp.org/www-project-secure-headers/
        """
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        if request.path.startswith('/api/'):
            response.headers['Cache-Control'] = 'no-store'
        return response

    # -------------------- CLI COMMANDS --------------------
    from app import cli_commands
    cli_commands.init_app(app)

    # -------------------- SCHEDULED TASKS --------------------
    if not app.config.get("TESTING") and app.config.get("ENV") != "testing":
        from app.scheduled_tasks import init_scheduled_tasks
        init_scheduled_tasks(app)

    return app


# Create a default application instance for WSGI servers and tests
app = create_app()

# Re-export commonly used objects for convenience
from app.extensions import db  # noqa: E402

__all__ = [
    "app",
    "create_app",
    "db",
]
