"""
Observability metrics module.

Billing counters live on a private registry so that building several apps
in one process (tests, CLI) never registers a metric twice.
"""

from flask import Blueprint, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

REGISTRY = CollectorRegistry(auto_describe=True)

WEBHOOK_EVENTS = Counter(
    "paystack_webhook_events_total",
    "Paystack webhook deliveries by event type and outcome",
    ["event", "outcome"],
    registry=REGISTRY,
)

PAYMENT_CONFIRMATIONS = Counter(
    "payment_confirmations_total",
    "Payment confirmations by source and outcome",
    ["source", "outcome"],
    registry=REGISTRY,
)

PLAN_LIMIT_DENIALS = Counter(
    "plan_limit_denials_total",
    "Resource creations refused by plan limits",
    ["resource"],
    registry=REGISTRY,
)

SUBSCRIPTIONS_LAPSED = Counter(
    "subscriptions_lapsed_total",
    "Expired subscriptions moved back to the free plan",
    registry=REGISTRY,
)

bp = Blueprint("metrics", __name__)


@bp.route("/metrics", methods=["GET"])
def metrics():
    return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)
