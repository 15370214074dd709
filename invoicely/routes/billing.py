from flask import Blueprint, current_app, jsonify, request

from invoicely.billing.state_machine import SubscriptionStateMachine
from invoicely.billing.verification import verify_and_apply
from invoicely.extensions import limiter
from invoicely.routes import json_object
from invoicely.security.auth import current_tenant_email, current_tenant_id, tenant_required
from invoicely.services import subscription_service
from invoicely.services.plan_limits import get_usage

billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


def billing_rate_limit():
    return current_app.config.get("BILLING_RATE_LIMIT", "20 per minute")


@billing_bp.route("/plans", methods=["GET"])
def plans():
    return jsonify({"plans": [plan.to_dict() for plan in subscription_service.list_plans()]})


@billing_bp.route("/subscription", methods=["GET"])
@tenant_required
def subscription():
    return jsonify(subscription_service.subscription_summary(current_tenant_id()))


@billing_bp.route("/usage", methods=["GET"])
@tenant_required
def usage():
    return jsonify(get_usage(current_tenant_id()))


@billing_bp.route("/subscribe", methods=["POST"])
@limiter.limit(billing_rate_limit)
@tenant_required
def subscribe():
    """
    Start a plan change.

    Body: {"plan_id": ..., "interval": "monthly" | "yearly"}. Paid plans
    answer with the Paystack checkout link, free plans are applied at once.
    """
    data = json_object()
    result = subscription_service.start_checkout(
        current_tenant_id(),
        current_tenant_email(),
        data.get("plan_id"),
        data.get("interval") or "monthly",
    )
    return jsonify(result), 200 if result["activated"] else 201


@billing_bp.route("/cancel", methods=["POST"])
@tenant_required
def cancel():
    subscription = SubscriptionStateMachine.cancel_subscription(current_tenant_id())
    return jsonify({
        "message": "Your subscription will not renew at the end of the current period",
        "subscription": subscription.to_dict(),
    })


@billing_bp.route("/verify", methods=["GET", "POST"])
@limiter.limit(billing_rate_limit)
@tenant_required
def verify():
    """Return target of the hosted checkout: reconcile the payment with Paystack."""
    params = dict(request.args)
    if request.method == "POST":
        params.update(json_object())

    reference = params.get("reference") or params.get("trxref")
    result = verify_and_apply(reference, params.get("subscription_id"), current_tenant_id())

    payload = result.to_dict()
    if result.success:
        payload["redirect"] = "/billing"
    return jsonify(payload), result.status_code
