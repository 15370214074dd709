"""
Plan limit evaluation.

Only an active subscription grants its plan's limits. Pending, inactive
or missing subscriptions fall back to the Free plan so that a broken
billing state can never unlock unlimited creation.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func

from invoicely.domain.plans import FREE_PLAN_LIMITS, FREE_PLAN_NAME, ResourceKind
from invoicely.extensions import db
from invoicely.models import Business, Client, Estimate, Expense, Invoice, Plan, Receipt, Subscription
from invoicely.observability.metrics import PLAN_LIMIT_DENIALS

logger = logging.getLogger(__name__)

RESOURCE_MODELS = {
    ResourceKind.BUSINESSES: Business,
    ResourceKind.CLIENTS: Client,
    ResourceKind.INVOICES: Invoice,
    ResourceKind.ESTIMATES: Estimate,
    ResourceKind.RECEIPTS: Receipt,
    ResourceKind.EXPENSES: Expense,
}

PENDING_NOTICE = "Your new plan will apply once payment is confirmed."


@dataclass(frozen=True)
class LimitCheckResult:
    allowed: bool
    limit: Optional[int]
    current: int
    message: Optional[str] = None

    @property
    def unbounded(self) -> bool:
        return self.limit is None

    def to_dict(self):
        return {
            "allowed": self.allowed,
            "message": self.message,
            "limit": self.limit,
            "current": self.current,
        }


class EffectiveLimits:
    """The limits a tenant is held to right now, and why."""

    def __init__(self, plan_name, limits, pending=False):
        self.plan_name = plan_name
        self.limits = limits
        self.pending = pending

    def limit_for(self, kind: ResourceKind) -> Optional[int]:
        return self.limits.get(kind)


def _free_limits(pending=False) -> EffectiveLimits:
    free_plan = Plan.query.filter_by(name=FREE_PLAN_NAME).first()
    if free_plan is None:
        logger.warning("Free plan not seeded, using built-in free limits")
        return EffectiveLimits(FREE_PLAN_NAME, dict(FREE_PLAN_LIMITS), pending=pending)
    return EffectiveLimits(
        free_plan.name,
        {kind: free_plan.limit_for(kind) for kind in ResourceKind},
        pending=pending,
    )


def lock_tenant_quota(tenant_id) -> None:
    """
    Take a row lock on the tenant's subscription for the rest of the
    transaction, so concurrent gated creates for one tenant count and
    insert one at a time. A no-op on backends without row locks (SQLite).
    """
    db.session.query(Subscription.id).filter(Subscription.user_id == tenant_id).with_for_update().first()


def resolve_limits(tenant_id) -> EffectiveLimits:
    subscription = Subscription.query.filter_by(user_id=tenant_id).first()
    if subscription is None:
        return _free_limits()
    if not subscription.is_active or subscription.plan is None:
        return _free_limits(pending=subscription.is_pending)

    plan = subscription.plan
    return EffectiveLimits(plan.name, {kind: plan.limit_for(kind) for kind in ResourceKind})


def count_resources(tenant_id, kind: ResourceKind) -> int:
    model = RESOURCE_MODELS[ResourceKind(kind)]
    return (
        db.session.query(func.count(model.id))
        .filter(model.user_id == tenant_id)
        .scalar()
    ) or 0


def limit_message(kind: ResourceKind, limit: int, pending=False) -> str:
    message = (
        f"You have reached your plan's limit of {limit} {ResourceKind(kind).value}. "
        "Upgrade your plan to add more."
    )
    if pending:
        message = f"{message} {PENDING_NOTICE}"
    return message


def check_plan_limit(tenant_id, kind, current_count) -> LimitCheckResult:
    """
    Decide whether one more ``kind`` resource may be created.

    Args:
        tenant_id: the tenant creating the resource
        kind: a ResourceKind or its string value
        current_count: how many the tenant already owns

    Returns:
        LimitCheckResult; allowed iff the limit is unbounded or
        current_count < limit
    """
    kind = ResourceKind(kind)
    if current_count < 0:
        raise ValueError("current_count must be non-negative")

    effective = resolve_limits(tenant_id)
    limit = effective.limit_for(kind)

    if limit is None or current_count < limit:
        return LimitCheckResult(allowed=True, limit=limit, current=current_count)

    PLAN_LIMIT_DENIALS.labels(resource=kind.value).inc()
    logger.info(
        "Plan limit reached",
        extra={"tenant_id": tenant_id, "resource": kind.value, "limit": limit, "plan": effective.plan_name},
    )
    return LimitCheckResult(
        allowed=False,
        limit=limit,
        current=current_count,
        message=limit_message(kind, limit, pending=effective.pending),
    )


def get_usage(tenant_id) -> dict:
    """Per resource kind usage against the tenant's effective plan."""
    effective = resolve_limits(tenant_id)
    resources = {}
    for kind in ResourceKind:
        used = count_resources(tenant_id, kind)
        limit = effective.limit_for(kind)
        resources[kind.value] = {
            "used": used,
            "limit": limit,
            "unbounded": limit is None,
            "remaining": None if limit is None else max(limit - used, 0),
        }
    return {"plan": effective.plan_name, "pending": effective.pending, "resources": resources}
