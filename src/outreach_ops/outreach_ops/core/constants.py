"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
Most of them can be overridden from the settings module (see config/).
"""

DEFAULT_SESSION_DAYS = 7
DEFAULT_HOURLY_RATE = "25.00"
DEFAULT_TEMPLATE_COLOR = "#64748B"
DEFAULT_AUDIT_LIMIT = 100
MAX_AUDIT_LIMIT = 1000

MIN_PASSWORD_LENGTH = 8
ONBOARDING_TOKEN_DAYS = 7

OVERTIME_WEEKLY_HOURS = 40
OVERTIME_DAILY_HOURS = None
WORKWEEK_START_DAY = 0  # Monday

DOCUMENT_EXPIRY_WARNING_DAYS = 30
AUTO_CLOCK_OUT_HOURS = 14
