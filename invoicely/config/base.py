import os


class ConfigurationError(Exception):
    """
    Raised when an invalid or unsupported configuration is requested.
    """
    pass


def _csv(value):
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class BaseConfig:
    """
    Base configuration shared by all environments.
    Every secret is read from the environment.
    """

    ENVIRONMENT = "base"

    # Flask
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")

    # Security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Application
    APP_NAME = "Invoicely"
    APP_URL = os.getenv("APP_URL", "http://localhost:3000")

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///invoicely.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Tokens are issued by the hosted auth provider; we only verify them
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ALGORITHM = "HS256"
    JWT_DECODE_AUDIENCE = os.getenv("JWT_DECODE_AUDIENCE") or None

    # Payment gateway
    PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY")
    PAYSTACK_PUBLIC_KEY = os.getenv("PAYSTACK_PUBLIC_KEY")
    PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
    PAYSTACK_TIMEOUT = int(os.getenv("PAYSTACK_TIMEOUT", "10"))
    BILLING_CURRENCY = os.getenv("BILLING_CURRENCY", "NGN")

    # Scheduled jobs authenticate with a shared bearer secret
    CRON_SECRET = os.getenv("CRON_SECRET")

    # CORS
    CORS_ORIGINS = _csv(os.getenv("CORS_ORIGINS", "http://localhost:3000"))

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    BILLING_RATE_LIMIT = os.getenv("BILLING_RATE_LIMIT", "20 per minute")

    # Logging / monitoring
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_REQUESTS = os.getenv("LOG_REQUESTS", "false").lower() == "true"
    SENTRY_DSN = os.getenv("SENTRY_DSN")
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
