import os

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "care_portal")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry settings
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Care Portal Enrollments API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]

# Service deactivation: labels offered to admins, stored verbatim as the reason
DEACTIVATION_REASONS = [
    label.strip()
    for label in os.getenv(
        "DEACTIVATION_REASONS",
        "Service Completed,Goals Achieved,Parent Request,Schedule Change,"
        "Financial Reasons,Child Transferred",
    ).split(",")
    if label.strip()
]
DEACTIVATION_CONFIRMATION_TOKEN = os.getenv("DEACTIVATION_CONFIRMATION_TOKEN", "disable")

# Rate limiting (slowapi)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")

# Per-child enrollment list cache
ENROLLMENT_CACHE_BACKEND = os.getenv("ENROLLMENT_CACHE_BACKEND", "memory").lower()
ENROLLMENT_CACHE_TTL = int(os.getenv("ENROLLMENT_CACHE_TTL", "300"))
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")


def validate_config():
    """Validate critical settings at startup"""
    errors = []

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if not DEACTIVATION_CONFIRMATION_TOKEN.strip():
        errors.append("DEACTIVATION_CONFIRMATION_TOKEN cannot be empty")

    if ENROLLMENT_CACHE_BACKEND not in ("memory", "redis"):
        errors.append("ENROLLMENT_CACHE_BACKEND must be 'memory' or 'redis'")

    if ENROLLMENT_CACHE_BACKEND == "redis" and not REDIS_URL:
        errors.append("REDIS_URL is required for the redis cache backend")

    if ENROLLMENT_CACHE_TTL < 0:
        errors.append("ENROLLMENT_CACHE_TTL must be >= 0")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")


# Validate on import (optional)
if os.getenv("VALIDATE_CONFIG_ON_IMPORT", "true").lower() == "true":
    try:
        validate_config()
    except ValueError as e:
        print(f"⚠️  Configuration warning: {e}")
