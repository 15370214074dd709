import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from invoicely.billing.paystack import GatewayError, PaystackClient
from invoicely.billing.state_machine import InvalidStateTransition, SubscriptionStateMachine
from invoicely.domain.subscriptions import PaymentConfirmation, PaymentSource, parse_metadata
from invoicely.extensions import db
from invoicely.models.subscription import Subscription
from invoicely.observability.metrics import PAYMENT_CONFIRMATIONS

logger = logging.getLogger(__name__)

SUPPORT_MESSAGE = "Payment verification failed. Please try again or contact support."
MISMATCH_MESSAGE = "Payment does not match the selected plan. Please contact support."


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    message: str
    subscription: Optional[Subscription] = None
    status_code: int = 200

    def to_dict(self):
        payload = {"success": self.success, "message": self.message}
        if self.subscription is not None:
            payload["subscription"] = self.subscription.to_dict()
        return payload


def _failure(message, outcome="failed", status_code=400):
    PAYMENT_CONFIRMATIONS.labels(source="verification", outcome=outcome).inc()
    return VerificationResult(success=False, message=message, status_code=status_code)


def verify_and_apply(reference, subscription_id, tenant_id, client=None) -> VerificationResult:
    """
    Re-check a payment with the gateway after the browser returns from
    checkout and apply it if it succeeded.

    Covers delayed or lost webhooks; racing the webhook for the same
    reference is expected and converges through confirm_payment. Never
    raises: every outcome is a VerificationResult.
    """
    if not reference or not subscription_id:
        return _failure("Missing payment reference or subscription id", outcome="invalid")

    try:
        return _verify(str(reference), str(subscription_id), tenant_id, client)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error during payment verification", extra={"reference": reference})
        return _failure(SUPPORT_MESSAGE, outcome="error", status_code=500)


def _verify(reference, subscription_id, tenant_id, client) -> VerificationResult:
    subscription = SubscriptionStateMachine.get_subscription(tenant_id)
    if subscription is None or subscription.id != subscription_id:
        logger.warning(
            "Verification requested for a subscription the tenant does not own",
            extra={"tenant_id": tenant_id, "subscription_id": subscription_id, "reference": reference},
        )
        return _failure("Subscription not found", outcome="forbidden", status_code=404)

    try:
        client = client or PaystackClient.from_app()
        transaction = client.verify_transaction(reference)
    except (GatewayError, ValueError) as e:
        logger.error(f"Payment verification failed for {reference}: {e}")
        return _failure(SUPPORT_MESSAGE, outcome="gateway_error", status_code=502)

    if not isinstance(transaction, dict):
        logger.error("Gateway returned no transaction data", extra={"reference": reference})
        return _failure(SUPPORT_MESSAGE, outcome="gateway_error", status_code=502)

    if transaction.get("status") != "success":
        logger.info(
            "Transaction not successful",
            extra={"reference": reference, "gateway_status": transaction.get("status")},
        )
        return _failure("Payment was not successful")

    metadata = parse_metadata(transaction.get("metadata"))
    paid_for = metadata.get("subscription_id")
    if paid_for and str(paid_for) != subscription.id:
        logger.warning(
            "Transaction belongs to a different subscription",
            extra={"reference": reference, "subscription_id": subscription.id},
        )
        return _failure("Payment does not match this subscription", outcome="forbidden")

    data = dict(transaction)
    data.setdefault("reference", reference)
    try:
        confirmation = PaymentConfirmation.from_transaction(
            data, subscription.id, PaymentSource.VERIFICATION
        )
    except ValueError as e:
        logger.error(f"Malformed transaction from gateway for {reference}: {e}")
        return _failure(SUPPORT_MESSAGE, outcome="gateway_error", status_code=502)

    try:
        result = SubscriptionStateMachine.confirm_payment(confirmation)
    except (SQLAlchemyError, InvalidStateTransition):
        logger.exception("Error applying verified payment", extra={"reference": reference})
        return _failure(SUPPORT_MESSAGE, outcome="error", status_code=500)

    if result.mismatch:
        return _failure(MISMATCH_MESSAGE, outcome="mismatch", status_code=409)

    outcome = "duplicate" if result.duplicate else "applied"
    PAYMENT_CONFIRMATIONS.labels(source="verification", outcome=outcome).inc()
    return VerificationResult(
        success=True,
        message="Payment verified and subscription activated",
        subscription=result.subscription,
    )
