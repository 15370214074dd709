from .base import BaseConfig


class ProductionConfig(BaseConfig):
    """
    Production configuration.
    """

    ENVIRONMENT = "production"

    DEBUG = False

    # MUST be set via environment variables in real production

    SESSION_COOKIE_SECURE = True
