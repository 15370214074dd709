import json
import logging
from dataclasses import dataclass, field

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from invoicely.billing.paystack_security import verify_paystack_signature
from invoicely.billing.state_machine import InvalidStateTransition, SubscriptionStateMachine
from invoicely.domain.subscriptions import PaymentConfirmation, PaymentSource, parse_metadata
from invoicely.extensions import db, limiter
from invoicely.models.subscription import Subscription
from invoicely.observability.metrics import PAYMENT_CONFIRMATIONS, WEBHOOK_EVENTS

logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"


@dataclass(frozen=True)
class WebhookResponse:
    status_code: int
    body: dict = field(default_factory=dict)


class PaystackWebhookProcessor:
    """
    Authenticates and applies Paystack webhook deliveries.

    Paystack retries on any non-2xx answer, so only failures a retry could
    fix (database errors) produce a 500.
    """

    def __init__(self, secret_key):
        self.secret_key = secret_key

    def handle(self, raw_body: bytes, signature) -> WebhookResponse:
        if not verify_paystack_signature(raw_body, signature, self.secret_key):
            logger.warning("Rejected Paystack webhook with invalid signature")
            WEBHOOK_EVENTS.labels(event="unknown", outcome="rejected").inc()
            return WebhookResponse(401, {"error": "Invalid signature"})

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.warning("Rejected malformed Paystack webhook body")
            WEBHOOK_EVENTS.labels(event="unknown", outcome="malformed").inc()
            return WebhookResponse(400, {"error": "Malformed payload"})

        if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
            WEBHOOK_EVENTS.labels(event="unknown", outcome="malformed").inc()
            return WebhookResponse(400, {"error": "Malformed payload"})

        event_type = event.get("event") or "unknown"
        logger.info("Paystack webhook received", extra={"event": event_type})

        if event_type != CHARGE_SUCCESS:
            WEBHOOK_EVENTS.labels(event=event_type, outcome="ignored").inc()
            return WebhookResponse(200, {"received": True})

        return self._handle_charge_success(event["data"])

    def _handle_charge_success(self, data: dict) -> WebhookResponse:
        reference = data.get("reference")
        metadata = parse_metadata(data.get("metadata"))
        subscription_id = metadata.get("subscription_id")

        if data.get("status") != "success" or not reference or not subscription_id:
            logger.info(
                "charge.success without a subscription payment, ignoring",
                extra={"reference": reference},
            )
            WEBHOOK_EVENTS.labels(event=CHARGE_SUCCESS, outcome="ignored").inc()
            return WebhookResponse(200, {"received": True})

        subscription = db.session.get(Subscription, str(subscription_id))
        owner = metadata.get("user_id")
        if subscription is None or (owner and str(owner) != subscription.user_id):
            logger.error(
                "Webhook references an unknown subscription",
                extra={"reference": reference, "subscription_id": subscription_id},
            )
            WEBHOOK_EVENTS.labels(event=CHARGE_SUCCESS, outcome="unknown_subscription").inc()
            return WebhookResponse(200, {"received": True})

        try:
            confirmation = PaymentConfirmation.from_transaction(
                data, subscription.id, PaymentSource.WEBHOOK
            )
        except ValueError as e:
            logger.warning(f"Malformed charge.success payload: {e}", extra={"reference": reference})
            WEBHOOK_EVENTS.labels(event=CHARGE_SUCCESS, outcome="malformed").inc()
            return WebhookResponse(400, {"error": "Malformed payload"})

        try:
            result = SubscriptionStateMachine.confirm_payment(confirmation)
        except (SQLAlchemyError, InvalidStateTransition):
            logger.exception("Error processing Paystack webhook", extra={"reference": reference})
            WEBHOOK_EVENTS.labels(event=CHARGE_SUCCESS, outcome="error").inc()
            PAYMENT_CONFIRMATIONS.labels(source="webhook", outcome="error").inc()
            return WebhookResponse(500, {"error": "Webhook processing failed"})

        if result.mismatch:
            outcome = "mismatch"
        elif result.duplicate:
            outcome = "duplicate"
        else:
            outcome = "applied"
        WEBHOOK_EVENTS.labels(event=CHARGE_SUCCESS, outcome=outcome).inc()
        PAYMENT_CONFIRMATIONS.labels(source="webhook", outcome=outcome).inc()
        return WebhookResponse(200, {"received": True, "status": outcome})


bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@bp.route("/paystack", methods=["POST"])
@limiter.exempt
def paystack_webhook():
    processor = PaystackWebhookProcessor(current_app.config.get("PAYSTACK_SECRET_KEY"))
    response = processor.handle(
        request.get_data(cache=False),
        request.headers.get("x-paystack-signature"),
    )
    return jsonify(response.body), response.status_code
