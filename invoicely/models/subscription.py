# subscription.py
from invoicely.domain.subscriptions import SubscriptionStatus, utcnow
from invoicely.extensions import db
from invoicely.models.base import TimestampMixin, isoformat, new_id


class Subscription(TimestampMixin, db.Model):
    """
    A tenant's single authoritative billing relationship.

    Status moves pending -> active on a confirmed payment; cancellation only
    raises cancel_at_period_end and leaves the status alone.
    """

    __tablename__ = "subscriptions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # One row per tenant; the unique index is what makes bootstrap race safe
    user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)

    plan_id = db.Column(db.String(36), db.ForeignKey("subscription_plans.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value, index=True)
    interval = db.Column("billing_interval", db.String(20), nullable=False, default="monthly")

    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True, index=True)

    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)
    canceled_at = db.Column(db.DateTime, nullable=True)

    paystack_authorization_code = db.Column(db.String(255), nullable=True)
    paystack_customer_code = db.Column(db.String(255), nullable=True)

    plan = db.relationship("Plan", lazy="joined")
    invoices = db.relationship(
        "SubscriptionInvoice",
        backref="subscription",
        lazy="dynamic",
        order_by="desc(SubscriptionInvoice.paid_at)",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'active', 'inactive')",
            name="valid_subscription_status",
        ),
        db.CheckConstraint(
            "billing_interval IN ('monthly', 'yearly')",
            name="valid_subscription_interval",
        ),
        db.CheckConstraint(
            "current_period_end IS NULL OR current_period_start IS NULL "
            "OR current_period_end > current_period_start",
            name="valid_period_range",
        ),
        db.Index("idx_subscription_status_period_end", "status", "current_period_end"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    @property
    def is_pending(self) -> bool:
        return self.status == SubscriptionStatus.PENDING.value

    def is_expired(self, now=None) -> bool:
        if not self.current_period_end:
            return False
        return (now or utcnow()) > self.current_period_end

    def days_until_renewal(self, now=None):
        if not self.current_period_end:
            return None
        delta = self.current_period_end - (now or utcnow())
        return max(delta.days, 0)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "interval": self.interval,
            "plan": self.plan.to_dict() if self.plan else None,
            "current_period_start": isoformat(self.current_period_start),
            "current_period_end": isoformat(self.current_period_end),
            "cancel_at_period_end": self.cancel_at_period_end,
            "canceled_at": isoformat(self.canceled_at),
            "has_payment_method": bool(self.paystack_authorization_code),
            "days_until_renewal": self.days_until_renewal(),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Subscription {self.id} user={self.user_id} status={self.status}>"


class SubscriptionInvoice(db.Model):
    """
    Append-only ledger entry, one per confirmed gateway payment.
    The unique gateway reference is the idempotency key for confirmations.
    """

    __tablename__ = "subscription_invoices"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    subscription_id = db.Column(
        db.String(36),
        db.ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    paystack_invoice_code = db.Column(db.String(120), unique=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="NGN")
    status = db.Column(db.String(20), nullable=False, default="paid")
    source = db.Column(db.String(20), nullable=False)
    paid_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "reference": self.paystack_invoice_code,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status,
            "source": self.source,
            "paid_at": isoformat(self.paid_at),
        }
