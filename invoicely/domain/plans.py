from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Optional


class ResourceKind(str, Enum):
    """Tenant-owned resources whose creation is gated by plan limits."""

    BUSINESSES = "businesses"
    CLIENTS = "clients"
    INVOICES = "invoices"
    ESTIMATES = "estimates"
    RECEIPTS = "receipts"
    EXPENSES = "expenses"

    @property
    def limit_field(self) -> str:
        return f"max_{self.value}"


# None is the "unbounded" limit value
UNBOUNDED = None

FREE_PLAN_NAME = "Free"

YEARLY_DISCOUNT = Decimal("0.9")


@dataclass(frozen=True)
class PlanDefinition:
    name: str
    price: Decimal
    limits: Dict[ResourceKind, Optional[int]] = field(default_factory=dict)
    currency: str = "NGN"
    interval: str = "monthly"
    description: str = ""

    def limit_for(self, kind: ResourceKind) -> Optional[int]:
        return self.limits.get(kind, UNBOUNDED)


FREE_PLAN_LIMITS: Dict[ResourceKind, Optional[int]] = {kind: 5 for kind in ResourceKind}

DEFAULT_PLANS = (
    PlanDefinition(
        name=FREE_PLAN_NAME,
        price=Decimal("0"),
        limits=dict(FREE_PLAN_LIMITS),
        description="Get started with the essentials",
    ),
    PlanDefinition(
        name="Basic",
        price=Decimal("5000"),
        limits={
            ResourceKind.BUSINESSES: 3,
            ResourceKind.CLIENTS: 50,
            ResourceKind.INVOICES: 100,
            ResourceKind.ESTIMATES: 100,
            ResourceKind.RECEIPTS: 100,
            ResourceKind.EXPENSES: 100,
        },
        description="For growing businesses",
    ),
    PlanDefinition(
        name="Pro",
        price=Decimal("15000"),
        limits={kind: UNBOUNDED for kind in ResourceKind},
        description="Unlimited everything",
    ),
)


def get_plan_definition(name: str) -> PlanDefinition:
    for plan in DEFAULT_PLANS:
        if plan.name.lower() == (name or "").lower():
            return plan
    return DEFAULT_PLANS[0]


def price_for_interval(monthly_price, interval: str) -> Decimal:
    """Yearly billing is twelve months with a 10% discount, rounded to whole units."""
    price = Decimal(str(monthly_price))
    if interval == "yearly":
        return (price * 12 * YEARLY_DISCOUNT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return price
