"""
Configuration Validation Module
Checks the settings the billing core cannot run without.
Production fails fast; other environments only log.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from .base import ConfigurationError

logger = logging.getLogger(__name__)

INSECURE_DEFAULTS = {"dev-secret-key", "dev-jwt-secret", "change-me"}


@dataclass
class ValidationResult:
    """Result of validation"""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


def _check_secrets(config, result: ValidationResult) -> None:
    for name in ("SECRET_KEY", "JWT_SECRET_KEY"):
        value = config.get(name)
        if not value or value in INSECURE_DEFAULTS:
            result.error(f"{name} must be set to a secure value")


def _check_paystack(config, result: ValidationResult) -> None:
    secret = config.get("PAYSTACK_SECRET_KEY")
    if not secret:
        result.error("PAYSTACK_SECRET_KEY is required for webhook verification and payment links")
    elif not secret.startswith(("sk_test_", "sk_live_")):
        result.warn("PAYSTACK_SECRET_KEY does not look like a Paystack secret key")

    if not config.get("PAYSTACK_PUBLIC_KEY"):
        result.warn("PAYSTACK_PUBLIC_KEY is not set")


def _check_database(config, result: ValidationResult, production: bool) -> None:
    uri = config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri:
        result.error("DATABASE_URL must be set")
    elif production and uri.startswith("sqlite"):
        result.error("SQLite is not suitable for production")


def validate_configuration(app) -> ValidationResult:
    """
    Validate the app configuration.

    Raises:
        ConfigurationError: in production when any critical check fails
    """
    config = app.config
    production = config.get("ENVIRONMENT") == "production"
    result = ValidationResult()

    _check_secrets(config, result)
    _check_paystack(config, result)
    _check_database(config, result, production)

    if not config.get("CRON_SECRET"):
        result.warn("CRON_SECRET is not set, the cron endpoint will reject every call")

    for message in result.warnings:
        logger.warning(message)

    if not result.is_valid:
        for message in result.errors:
            logger.error(message)
        if production:
            raise ConfigurationError("; ".join(result.errors))

    return result
