import calendar
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class BillingInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value) -> "BillingInterval":
        if isinstance(value, cls):
            return value
        if value is not None and not isinstance(value, str):
            raise ValueError(f"Unsupported billing interval: {value!r}")
        try:
            return cls((value or cls.MONTHLY.value).lower())
        except ValueError:
            raise ValueError(f"Unsupported billing interval: {value}") from None


class PaymentSource(str, Enum):
    WEBHOOK = "webhook"
    VERIFICATION = "verification"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def add_interval(start: datetime, interval) -> datetime:
    """End of a billing period that begins at ``start``."""
    if BillingInterval.parse(interval) is BillingInterval.YEARLY:
        return add_months(start, 12)
    return add_months(start, 1)


def parse_gateway_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 gateway timestamp into naive UTC; None when absent or malformed."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_metadata(raw) -> dict:
    """Gateway metadata arrives either as an object or as a JSON encoded string."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def from_minor_units(amount) -> Decimal:
    """
    Gateway amounts are in the minor unit (kobo); the ledger stores major units.

    Raises:
        ValueError: the amount is not a finite, non-negative number
    """
    if isinstance(amount, bool):
        raise ValueError(f"Invalid gateway amount: {amount!r}")
    try:
        value = Decimal(str(amount or 0))
    except InvalidOperation:
        raise ValueError(f"Invalid gateway amount: {amount!r}") from None
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid gateway amount: {amount!r}")
    return (value / 100).quantize(Decimal("0.01"))


def _optional_object(data: dict, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Gateway field {key} must be an object")
    return value


def _optional_text(value) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValueError(f"Unexpected gateway value: {value!r}")
    return str(value)


@dataclass(frozen=True)
class PaymentConfirmation:
    """
    A gateway-confirmed payment, whichever path reported it.

    ``plan_id`` and ``interval`` are what the checkout charged for, taken
    from the transaction metadata. They are None for transactions started
    without them, in which case the subscription's own plan applies.
    """

    reference: str
    subscription_id: str
    paid_at: datetime
    amount: Decimal
    currency: str = "NGN"
    authorization_code: Optional[str] = None
    customer_code: Optional[str] = None
    source: PaymentSource = PaymentSource.WEBHOOK
    plan_id: Optional[str] = None
    interval: Optional[str] = None

    @classmethod
    def from_transaction(cls, data: dict, subscription_id: str, source: PaymentSource) -> "PaymentConfirmation":
        """
        Build a confirmation from a Paystack transaction object.

        Raises:
            ValueError: the transaction is missing its reference or carries
                malformed fields
        """
        if not isinstance(data, dict):
            raise ValueError("Gateway transaction must be an object")
        reference = data.get("reference")
        if not reference or not isinstance(reference, str):
            raise ValueError("Gateway transaction has no reference")

        authorization = _optional_object(data, "authorization")
        customer = _optional_object(data, "customer")
        metadata = parse_metadata(data.get("metadata"))
        paid_at = (
            parse_gateway_timestamp(data.get("paid_at"))
            or parse_gateway_timestamp(data.get("paidAt"))
            or parse_gateway_timestamp(data.get("created_at"))
            or parse_gateway_timestamp(data.get("createdAt"))
            or utcnow()
        )
        return cls(
            reference=reference,
            subscription_id=subscription_id,
            paid_at=paid_at,
            amount=from_minor_units(data.get("amount")),
            currency=(_optional_text(data.get("currency")) or "NGN").upper(),
            authorization_code=_optional_text(authorization.get("authorization_code")),
            customer_code=_optional_text(customer.get("customer_code")),
            source=source,
            plan_id=_optional_text(metadata.get("plan_id")),
            interval=_optional_text(metadata.get("interval")),
        )
