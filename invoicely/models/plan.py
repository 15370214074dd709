from invoicely.domain.plans import ResourceKind, price_for_interval
from invoicely.extensions import db
from invoicely.models.base import TimestampMixin, new_id


class Plan(TimestampMixin, db.Model):
    """
    Subscription tier reference data. Seeded out-of-band, never mutated by
    the billing core. A NULL limit column means the resource is unbounded.
    """

    __tablename__ = "subscription_plans"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="NGN")
    interval = db.Column("billing_interval", db.String(20), nullable=False, default="monthly")

    max_businesses = db.Column(db.Integer, nullable=True)
    max_clients = db.Column(db.Integer, nullable=True)
    max_invoices = db.Column(db.Integer, nullable=True)
    max_estimates = db.Column(db.Integer, nullable=True)
    max_receipts = db.Column(db.Integer, nullable=True)
    max_expenses = db.Column(db.Integer, nullable=True)

    __table_args__ = (
        db.CheckConstraint("billing_interval IN ('monthly', 'yearly')", name="valid_plan_interval"),
        db.CheckConstraint("price >= 0", name="non_negative_plan_price"),
    )

    @property
    def is_free(self) -> bool:
        return not self.price

    def limit_for(self, kind: ResourceKind):
        return getattr(self, kind.limit_field)

    def limits(self) -> dict:
        return {kind.value: self.limit_for(kind) for kind in ResourceKind}

    def price_for(self, interval: str):
        return price_for_interval(self.price, interval)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price or 0),
            "yearly_price": float(self.price_for("yearly")),
            "currency": self.currency,
            "interval": self.interval,
            "limits": self.limits(),
        }

    def __repr__(self):
        return f"<Plan {self.name}>"
