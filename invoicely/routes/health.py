import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from invoicely.billing.paystack import is_test_key
from invoicely.extensions import db, limiter

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


def check_database():
    """
    Check database connection status.

    Returns:
        Dict containing status and message
    """
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "ok", "message": "Database connection successful"}
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Health check database failure: {e}")
        return {"status": "error", "message": "Database connection failed"}


@health_bp.route("/health", methods=["GET"])
@limiter.exempt
def health():
    database = check_database()
    secret_key = current_app.config.get("PAYSTACK_SECRET_KEY")
    body = {
        "status": "ok" if database["status"] == "ok" else "degraded",
        "api": "ok",
        "database": database,
        "paystack_mode": "test" if is_test_key(secret_key) else "live",
        "version": current_app.config.get("APP_VERSION"),
    }
    return jsonify(body), 200 if database["status"] == "ok" else 503
