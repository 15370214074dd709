from invoicely.extensions import db
from invoicely.models.base import TenantOwnedMixin, isoformat

# Sentinel the receipt form sends when the payment is not tied to an invoice
NO_INVOICE = "no-invoice"


class Receipt(TenantOwnedMixin, db.Model):
    __tablename__ = "receipts"

    business_id = db.Column(db.String(36), db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id"), nullable=False, index=True)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=True, index=True)
    receipt_number = db.Column(db.String(50), nullable=False)
    date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "receipt_number", name="uq_receipt_number_per_tenant"),
        db.CheckConstraint("amount > 0", name="positive_receipt_amount"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "business_id": self.business_id,
            "client_id": self.client_id,
            "invoice_id": self.invoice_id,
            "receipt_number": self.receipt_number,
            "date": isoformat(self.date),
            "amount": float(self.amount),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": isoformat(self.created_at),
        }
