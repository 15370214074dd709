# invoicely/logging_config.py
import logging
import logging.config
from datetime import datetime

from flask import g, has_app_context, request
from pythonjsonlogger import jsonlogger


class RequestIdFilter(logging.Filter):
    """
    Inject request_id into every log record if present.
    """

    def filter(self, record):
        record.request_id = g.get("request_id") if has_app_context() else None
        return True


def setup_logging(app):
    """Configure structured JSON logging for the application"""
    log_level = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {
                "()": RequestIdFilter,
            },
        },
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": (
                    "%(asctime)s "
                    "%(levelname)s "
                    "%(name)s "
                    "%(message)s "
                    "%(request_id)s "
                    "%(module)s "
                    "%(funcName)s "
                    "%(lineno)d"
                ),
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["request_id"],
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["default"],
        },
        "loggers": {
            "werkzeug": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
            "urllib3": {"level": "WARNING"},
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger("invoicely.requests")

    @app.before_request
    def log_request():
        if app.config.get("LOG_REQUESTS") or app.config.get("DEBUG"):
            g.start_time = datetime.now()
            logger.info(
                f"Request: {request.method} {request.path}",
                extra={"ip": request.remote_addr},
            )

    @app.after_request
    def log_response(response):
        if (app.config.get("LOG_REQUESTS") or app.config.get("DEBUG")) and "start_time" in g:
            duration = (datetime.now() - g.start_time).total_seconds() * 1000
            logger.info(
                f"Response: {request.method} {request.path} - {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round(duration, 2),
                    "method": request.method,
                    "path": request.path,
                },
            )
        return response

    return app
