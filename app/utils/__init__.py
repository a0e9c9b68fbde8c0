"""
Utility modules for the School Portal application.

This package contains reusable helpers, constants, and custom types:
- encryption: PIIEncryptedType for secure PII field storage
- helpers: Common utility functions (date formatting, URL safety checks, markdown)
- constants: Application-wide patterns and lookup tables
- academic: Academic year validation
- scheduling: Timetable time parsing and clash detection
- invoicing: Invoice numbering and totals
"""

from app.utils.encryption import PIIEncryptedType
from app.utils.helpers import format_utc_iso, is_safe_url
from app.utils.academic import is_valid_academic_year

__all__ = [
    'PIIEncryptedType',
    'format_utc_iso',
    'is_safe_url',
    'is_valid_academic_year',
]
