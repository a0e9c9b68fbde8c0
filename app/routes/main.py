"""
Main routes for the School Portal.

Contains public-facing utility routes: the role-aware home redirect and
the health check used for uptime monitoring.
"""

from flask import Blueprint, redirect, jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.auth import dashboard_path_for, get_current_user
from app.extensions import db
from app.utils.constants import LOGIN_PATH

# Create blueprint
main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def home():
    """Send signed-in users to their role's dashboard, everyone else to login."""
    user = get_current_user()
    if not user:
        return redirect(f"{LOGIN_PATH}?callbackUrl=/")
    return redirect(dashboard_path_for(user.role.value))


@main_bp.route('/health')
def health_check():
    """Simple health check endpoint for uptime monitoring."""
    try:
        db.session.execute(text('SELECT 1'))
        return 'ok', 200
    except SQLAlchemyError:
        current_app.logger.exception('Health check failed')
        return jsonify(error='Database error'), 500
