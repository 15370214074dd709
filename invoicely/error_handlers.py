# invoicely/error_handlers.py
import logging
import traceback

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from invoicely.billing.paystack import GatewayError
from invoicely.errors import DomainError

logger = logging.getLogger(__name__)


def _envelope(error, message, status_code, **extra):
    body = {
        "error": error,
        "message": message,
        "path": request.path,
    }
    body.update(extra)
    return jsonify(body), status_code


def register_error_handlers(app):
    """Register all error handlers for the application"""

    @app.errorhandler(DomainError)
    def handle_domain_error(error):
        level = logging.INFO if error.status_code == 404 else logging.WARNING
        logger.log(level, f"{error.__class__.__name__}: {error.message} - Path: {request.path}")
        return _envelope(
            error.__class__.__name__,
            error.message,
            error.status_code,
            **(error.payload or {}),
        )

    @app.errorhandler(GatewayError)
    def handle_gateway_error(error):
        logger.error(f"Payment gateway error: {error.message} - Path: {request.path}")
        return _envelope(
            "Bad Gateway",
            "The payment provider could not process the request. Please try again later.",
            502,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """
        Handles known HTTP errors (404, 401, 403, etc.)
        """
        if e.code >= 500:
            logger.error(f"HTTP {e.code}: {e.description} - Path: {request.path}")
        else:
            logger.warning(f"HTTP {e.code}: {e.description} - Path: {request.path}")
        return _envelope(e.name, e.description, e.code)

    @app.errorhandler(Exception)
    def handle_exception(e):
        """
        Handles all unexpected server errors.
        Never leaks a stack trace to the client.
        """
        logger.error(f"Unhandled exception on {request.path}: {e}")
        logger.error(traceback.format_exc())
        return _envelope(
            "Internal Server Error",
            "Something went wrong. Please try again later.",
            500,
        )
