"""
Common utility functions for the School Portal application.

This module provides reusable helper functions for:
- Date/time formatting (ISO-8601 with UTC)
- School-local dates using the school's configured timezone
- URL safety validation for redirects
- Markdown to HTML conversion with sanitization
"""

from datetime import datetime, timezone
from urllib.parse import urlparse, urljoin

from flask import abort, request, current_app
import markdown
import bleach
import pytz

DEFAULT_TIMEZONE = 'Africa/Accra'


def format_utc_iso(dt):
    """Return a UTC ISO-8601 string (with trailing Z) for a datetime or None."""
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def format_date(value):
    """Return YYYY-MM-DD for a date, or None."""
    return value.isoformat() if value else None


def format_money(value):
    """Serialize a Decimal amount as a two-place string, the way it is stored."""
    if value is None:
        return None
    return f"{value:.2f}"


def is_valid_timezone(name):
    """Return True when ``name`` is a timezone pytz knows about."""
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return False
    return True


def school_today(tz_name=None):
    """
    Return today's date in the given school's timezone.

    Falls back to the default timezone when the name is missing or unknown.
    """
    try:
        tz = pytz.timezone(tz_name or DEFAULT_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        current_app.logger.warning(f"Invalid timezone '{tz_name}', defaulting to {DEFAULT_TIMEZONE}.")
        tz = pytz.timezone(DEFAULT_TIMEZONE)
    return datetime.now(pytz.utc).astimezone(tz).date()


def is_safe_url(target):
    """
    Ensure a redirect URL is safe by checking if it's on the same domain.
    """
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ('http', 'https') and ref_url.netloc == test_url.netloc


def render_markdown(text):
    """
    Convert Markdown text to sanitized HTML.

    Used for announcement bodies so that admins can format notices with
    headers, lists, links and tables without opening an XSS hole.

    Args:
        text: Markdown formatted text string

    Returns:
        str: sanitized HTML
    """
    if not text:
        return ''

    md = markdown.Markdown(extensions=[
        'extra',          # Tables, fenced code blocks, footnotes, abbreviations
        'nl2br',          # Convert newlines to <br> tags
        'sane_lists',
    ])
    html = md.convert(text)

    allowed_tags = [
        'p', 'br', 'span', 'div',
        'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'strong', 'em', 'u', 's', 'del', 'code', 'pre',
        'ul', 'ol', 'li',
        'a',
        'table', 'thead', 'tbody', 'tr', 'th', 'td',
        'blockquote',
        'hr',
    ]

    allowed_attributes = {
        'a': ['href', 'title', 'rel'],
        'th': ['align'],
        'td': ['align'],
    }

    cleaner = bleach.Cleaner(
        tags=allowed_tags,
        attributes=allowed_attributes,
        protocols=['http', 'https', 'mailto'],
        strip=True,
        strip_comments=True,
    )
    return cleaner.clean(html)


def get_json_payload():
    """Return the request's JSON object body, or an empty dict."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def query_int(name):
    """Return an optional integer query parameter, aborting with 400 when malformed."""
    value = request.args.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except ValueError:
        abort(400, description=f"Query parameter '{name}' must be an integer.")
