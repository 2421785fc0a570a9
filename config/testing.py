import os

SECRET_KEY = "test-secret"
FIELD_ENCRYPTION_KEY = "test-field-encryption-key"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "outreach_ops_test"),
    "pool_size": 2,
}

OVERTIME_WEEKLY_HOURS = 40
OVERTIME_DAILY_HOURS = None
WORKWEEK_START_DAY = 0

ATTACHMENT_EXEMPT_JOBS = ("Training",)
AUTO_CLOCK_OUT_HOURS = 14

DOCUMENT_EXPIRY_WARNING_DAYS = 30

ONBOARDING_TOKEN_DAYS = 7
ONBOARDING_BASE_URL = "http://testserver"

LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
