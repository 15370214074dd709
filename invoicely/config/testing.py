from .base import BaseConfig


class TestingConfig(BaseConfig):
    """
    Testing configuration. In-memory database, fixed secrets, no rate limits.
    """

    ENVIRONMENT = "testing"

    TESTING = True
    DEBUG = False

    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}

    PAYSTACK_SECRET_KEY = "sk_test_webhook_secret"
    PAYSTACK_PUBLIC_KEY = "pk_test_public"
    PAYSTACK_BASE_URL = "https://api.paystack.test"
    APP_URL = "http://testserver"

    CRON_SECRET = "cron-test-secret"

    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"
    SENTRY_DSN = None
