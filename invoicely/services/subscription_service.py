import logging
from urllib.parse import urlencode

from flask import current_app

from invoicely.billing.paystack import PaystackClient
from invoicely.billing.state_machine import SubscriptionStateMachine
from invoicely.errors import NotFoundError, ValidationError
from invoicely.models import Plan

logger = logging.getLogger(__name__)


def list_plans():
    return Plan.query.order_by(Plan.price.asc(), Plan.name.asc()).all()


def subscription_summary(tenant_id) -> dict:
    subscription = SubscriptionStateMachine.get_subscription(tenant_id)
    if subscription is None:
        raise NotFoundError("Subscription not found")
    payload = subscription.to_dict()
    payload["payments"] = [entry.to_dict() for entry in subscription.invoices.limit(12).all()]
    return payload


def verification_callback_url(subscription_id) -> str:
    base = current_app.config.get("APP_URL", "").rstrip("/")
    return f"{base}/billing/verify?{urlencode({'subscription_id': subscription_id})}"


def start_checkout(tenant_id, email, plan_id, interval="monthly", client=None) -> dict:
    """
    Move the tenant onto ``plan_id``.

    Free plans are applied at once. Paid plans leave the subscription
    pending and return a hosted checkout link; the webhook or the
    verification flow activates it once Paystack confirms the payment.
    """
    if not plan_id:
        raise ValidationError("plan_id is required")

    upgrade = SubscriptionStateMachine.initiate_upgrade(tenant_id, plan_id, interval)
    subscription = upgrade.subscription

    if not upgrade.requires_payment:
        return {"activated": True, "subscription": subscription.to_dict()}

    if not email:
        raise ValidationError("A billing email is required to start a payment")

    client = client or PaystackClient.from_app()
    try:
        link = client.initialize_transaction(
            email=email,
            amount=upgrade.amount,
            callback_url=verification_callback_url(subscription.id),
            metadata={
                "subscription_id": subscription.id,
                "user_id": tenant_id,
                "plan_id": upgrade.plan.id,
                "plan_name": upgrade.plan.name,
                "interval": subscription.interval,
            },
        )
    except ValueError as e:
        raise ValidationError(str(e)) from None
    logger.info(
        "Checkout started",
        extra={"subscription_id": subscription.id, "reference": link.get("reference")},
    )
    return {
        "activated": False,
        "payment_url": link.get("authorization_url"),
        "reference": link.get("reference"),
        "subscription_id": subscription.id,
        "amount": float(upgrade.amount),
        "currency": upgrade.plan.currency,
    }
