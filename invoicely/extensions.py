# invoicely/extensions.py
"""
Flask extensions initialization module.
Extensions are created unbound here and attached to the app in init_extensions.
"""

import logging

from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)

logger = logging.getLogger(__name__)


def init_extensions(app):
    """Initialize all Flask extensions for the given app."""

    db.init_app(app)
    logger.info("SQLAlchemy initialized")

    migrate.init_app(app, db)

    jwt.init_app(app)
    configure_jwt_callbacks()
    logger.info("JWT Manager initialized")

    init_cors(app)

    app.config.setdefault("RATELIMIT_STORAGE_URI", "memory://")
    limiter.init_app(app)
    if app.config["RATELIMIT_STORAGE_URI"].startswith("memory://"):
        logger.warning("Using in-memory rate limiting storage")

    return app


def init_cors(app):
    """Restrict CORS to the API routes and the configured frontend origins."""
    origins = app.config.get("CORS_ORIGINS") or []
    if not origins:
        logger.warning("CORS_ORIGINS not set, cross-origin requests will be rejected")

    cors.init_app(
        app,
        resources={
            r"/api/*": {
                "origins": origins,
                "supports_credentials": True,
                "allow_headers": [
                    "Content-Type",
                    "Authorization",
                    "X-Request-ID",
                    "X-Business-ID",
                ],
                "expose_headers": ["X-Request-ID"],
                "max_age": 600,
            }
        },
    )


def configure_jwt_callbacks():
    """Return the application's JSON error envelope for token failures."""
    from flask import jsonify, request

    def _unauthorized(message):
        return jsonify({
            "error": "Unauthorized",
            "message": message,
            "path": request.path,
        }), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _unauthorized("Authentication is required.")

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _unauthorized("The access token is invalid.")

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _unauthorized("The access token has expired.")
