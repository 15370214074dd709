import os

from .base import BaseConfig


class DevelopmentConfig(BaseConfig):
    """
    Development configuration.
    """

    ENVIRONMENT = "development"

    DEBUG = True

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret")

    SESSION_COOKIE_SECURE = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
