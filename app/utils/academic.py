"""
Academic calendar helpers.
"""

import re

from app.utils.constants import ACADEMIC_YEAR_PATTERN

_ACADEMIC_YEAR_RE = re.compile(ACADEMIC_YEAR_PATTERN)


def is_valid_academic_year(value) -> bool:
    """
    Return True for strings like "2024-2025".

    The second year must be exactly one greater than the first, so
    "2024-2026" and "2025-2024" are rejected.
    """
    if not isinstance(value, str) or not _ACADEMIC_YEAR_RE.match(value):
        return False
    start, end = (int(part) for part in value.split('-'))
    return end == start + 1
