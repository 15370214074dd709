"""
Flask application factory.
Fails fast on configuration errors in production.
"""

import logging

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration

from invoicely.billing.paystack import is_test_key
from invoicely.config import get_config
from invoicely.config.validator import validate_configuration
from invoicely.error_handlers import register_error_handlers
from invoicely.extensions import init_extensions
from invoicely.logging_config import setup_logging
from invoicely.middleware.request_id import init_request_id_middleware

logger = logging.getLogger(__name__)


def setup_sentry(app: Flask) -> None:
    """Initialize Sentry error tracking"""
    sentry_dsn = app.config.get("SENTRY_DSN")
    if not sentry_dsn:
        return

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
        environment=app.config.get("ENVIRONMENT"),
        release=app.config.get("APP_VERSION"),
        send_default_pii=False,
    )
    logger.info("Sentry error tracking initialized")


def register_blueprints(app: Flask) -> None:
    from invoicely.billing.webhook import bp as webhook_bp
    from invoicely.observability.metrics import bp as metrics_bp
    from invoicely.routes.billing import billing_bp
    from invoicely.routes.cron import cron_bp
    from invoicely.routes.health import health_bp
    from invoicely.routes.resources import resources_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(metrics_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(resources_bp)


def create_app(config_name=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    setup_logging(app)
    init_request_id_middleware(app)

    validate_configuration(app)
    setup_sentry(app)

    init_extensions(app)
    register_error_handlers(app)
    register_blueprints(app)

    from invoicely.cli import register_commands
    register_commands(app)

    mode = "test" if is_test_key(app.config.get("PAYSTACK_SECRET_KEY")) else "live"
    logger.info(
        f"Application started in {app.config.get('ENVIRONMENT')} mode",
        extra={"paystack_mode": mode},
    )
    return app
