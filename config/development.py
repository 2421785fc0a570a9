import os

from config import env_float, env_list

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
FIELD_ENCRYPTION_KEY = os.getenv("FIELD_ENCRYPTION_KEY", "dev-field-encryption-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "outreach_ops"),
    "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
}

# Payroll
OVERTIME_WEEKLY_HOURS = env_float("OVERTIME_WEEKLY_HOURS", "40")
OVERTIME_DAILY_HOURS = env_float("OVERTIME_DAILY_HOURS")
WORKWEEK_START_DAY = int(os.getenv("WORKWEEK_START_DAY", "0"))

# Time clock
ATTACHMENT_EXEMPT_JOBS = env_list("ATTACHMENT_EXEMPT_JOBS", "Training,Admin")
AUTO_CLOCK_OUT_HOURS = float(os.getenv("AUTO_CLOCK_OUT_HOURS", "14"))

DOCUMENT_EXPIRY_WARNING_DAYS = int(os.getenv("DOCUMENT_EXPIRY_WARNING_DAYS", "30"))

ONBOARDING_TOKEN_DAYS = int(os.getenv("ONBOARDING_TOKEN_DAYS", "7"))
ONBOARDING_BASE_URL = os.getenv("ONBOARDING_BASE_URL", "http://localhost:5000")

SESSION_DAYS = int(os.getenv("SESSION_DAYS", "7"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
