import os

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "gym")
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
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Gym Booking API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# JWT (tokens are issued by the identity service, we only verify them)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ADMIN_ROLES = ("admin", "super_admin")

# Payment gateway (Khalti-style ePayment API)
PAYMENT_GATEWAY_SECRET_KEY = os.getenv("PAYMENT_GATEWAY_SECRET_KEY")
PAYMENT_GATEWAY_API_BASE = os.getenv(
    "PAYMENT_GATEWAY_API_BASE",
    "https://khalti.com/api/v2" if not DEBUG else "https://dev.khalti.com/api/v2",
)
PAYMENT_GATEWAY_TIMEOUT_SECONDS = float(
    os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "10.0")
)
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")
PAYMENT_DIRECT_CONFIRM_ENABLED = (
    os.getenv("PAYMENT_DIRECT_CONFIRM_ENABLED", "true" if DEBUG else "false").lower()
    == "true"
)
FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", FRONTEND_BASE_URL).split(",")
    if origin.strip()
]

# Requests slower than this are logged as warnings
SLOW_REQUEST_THRESHOLD_SECONDS = float(
    os.getenv("SLOW_REQUEST_THRESHOLD_SECONDS", "5.0")
)

# Operator notifications
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
NOTIFY_CHAT_ID = os.getenv("NOTIFY_CHAT_ID")


def validate_config():
    """Validate critical settings at startup"""
    errors = []

    if not JWT_SECRET_KEY:
        errors.append("JWT_SECRET_KEY is required")

    if not DATABASE_URL:
        errors.append("DATABASE_URL or POSTGRES_HOST is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if PAYMENT_GATEWAY_TIMEOUT_SECONDS <= 0:
        errors.append("PAYMENT_GATEWAY_TIMEOUT_SECONDS must be > 0")

    if not DEBUG and not PAYMENT_GATEWAY_SECRET_KEY:
        errors.append("PAYMENT_GATEWAY_SECRET_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")


if os.getenv("VALIDATE_CONFIG_ON_IMPORT", "true").lower() == "true":
    try:
        validate_config()
    except ValueError as e:
        print(f"⚠️  Configuration warning: {e}")
