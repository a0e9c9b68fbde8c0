"""
Application-wide constants for the School Portal.

This module contains patterns and lookup tables shared by forms, routes and
background jobs.
"""

# Academic years are written as two consecutive years, e.g. "2024-2025"
ACADEMIC_YEAR_PATTERN = r'^\d{4}-\d{4}$'

# 24-hour wall clock time, e.g. "08:30"
TIME_PATTERN = r'^([01]\d|2[0-3]):([0-5]\d)$'

INVOICE_NUMBER_PREFIX = 'INV'

# Where each role lands after signing in (or when visiting "/")
DASHBOARD_PATHS = {
    'SUPER_ADMIN': '/super-admin/dashboard',
    'SCHOOL_ADMIN': '/school-admin/dashboard',
    'TEACHER': '/teacher/dashboard',
    'STUDENT': '/student/dashboard',
    'PARENT': '/parent/dashboard',
}
LOGIN_PATH = '/login'

NO_CHANGES_MESSAGE = "No changes provided to update."
