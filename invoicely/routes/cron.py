import hmac
import logging

from flask import Blueprint, abort, current_app, jsonify, request

from invoicely.billing.state_machine import SubscriptionStateMachine
from invoicely.extensions import limiter

logger = logging.getLogger(__name__)

cron_bp = Blueprint("cron", __name__, url_prefix="/api/webhooks")


def _authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET")
    header = request.headers.get("Authorization", "")
    if not secret or not header.startswith("Bearer "):
        return False
    return hmac.compare_digest(header[len("Bearer "):], secret)


@cron_bp.route("/cron", methods=["POST"])
@limiter.exempt
def run_subscription_sweep():
    """Scheduler entry point: lapse expired subscriptions back to the Free plan."""
    if not _authorized():
        logger.warning("Rejected cron call with missing or invalid secret")
        abort(401, "Invalid cron secret")

    processed = SubscriptionStateMachine.lapse_expired_subscriptions()
    return jsonify({"success": True, "processed": processed})
