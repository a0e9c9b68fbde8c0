"""
Flask extension instances shared across the School Portal.

They are created unbound here and attached to the app in create_app(), so
models, routes and jobs can import them without importing the app itself.
"""

import os

from apscheduler.schedulers.background import BackgroundScheduler
from flask import has_request_context, request
from flask_limiter import Limiter
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()
scheduler = BackgroundScheduler()


def client_ip():
    """Rate limit key: first X-Forwarded-For hop when behind a proxy."""
    if not has_request_context():
        return '127.0.0.1'
    forwarded_for = request.headers.get('X-Forwarded-For', '')
    first_hop = forwarded_for.split(',')[0].strip()
    return first_hop or request.remote_addr or '127.0.0.1'


def _limiter_storage_uri():
    # RATELIMIT_STORAGE_URI wins; CI runs have no Redis available
    explicit = os.environ.get('RATELIMIT_STORAGE_URI')
    if explicit:
        return explicit
    if os.environ.get('CI') or os.environ.get('GITHUB_ACTIONS'):
        return 'memory://'
    return os.environ.get('REDIS_URL', 'redis://localhost:6379')


limiter = Limiter(
    key_func=client_ip,
    default_limits=["1000 per day", "300 per hour"],
    storage_uri=_limiter_storage_uri(),
    strategy="fixed-window",
)
