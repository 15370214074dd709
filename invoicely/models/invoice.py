from enum import Enum

from invoicely.extensions import db
from invoicely.models.base import TenantOwnedMixin, isoformat


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


class Invoice(TenantOwnedMixin, db.Model):
    __tablename__ = "invoices"

    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(50), nullable=False)
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=InvoiceStatus.DRAFT.value)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'sent', 'paid', 'overdue')",
            name="valid_invoice_status",
        ),
        db.UniqueConstraint("user_id", "invoice_number", name="uq_invoice_number_per_tenant"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "client_id": self.client_id,
            "invoice_number": self.invoice_number,
            "issue_date": isoformat(self.issue_date),
            "due_date": isoformat(self.due_date),
            "status": self.status,
            "total_amount": float(self.total_amount or 0),
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }
