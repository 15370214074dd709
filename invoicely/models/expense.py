from invoicely.extensions import db
from invoicely.models.base import TenantOwnedMixin, isoformat


class Expense(TenantOwnedMixin, db.Model):
    __tablename__ = "expenses"

    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=True)
    description = db.Column(db.String(500), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    date = db.Column(db.Date, nullable=False)
    receipt_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "category": self.category,
            "description": self.description,
            "amount": float(self.amount),
            "date": isoformat(self.date),
            "receipt_url": self.receipt_url,
            "created_at": isoformat(self.created_at),
        }
