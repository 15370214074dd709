from invoicely.extensions import db
from invoicely.models.base import TenantOwnedMixin, isoformat


class Estimate(TenantOwnedMixin, db.Model):
    __tablename__ = "estimates"

    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id"), nullable=False, index=True)
    estimate_number = db.Column(db.String(50), nullable=False)
    issue_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft")
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "estimate_number", name="uq_estimate_number_per_tenant"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "client_id": self.client_id,
            "estimate_number": self.estimate_number,
            "issue_date": isoformat(self.issue_date),
            "expiry_date": isoformat(self.expiry_date),
            "status": self.status,
            "total_amount": float(self.total_amount or 0),
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }
