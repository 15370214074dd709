from invoicely.extensions import db
from invoicely.models.base import TenantOwnedMixin, isoformat


class Business(TenantOwnedMixin, db.Model):
    __tablename__ = "businesses"

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.Text, nullable=True)
    tax_number = db.Column(db.String(100), nullable=True)
    logo_url = db.Column(db.String(500), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="NGN")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "tax_number": self.tax_number,
            "logo_url": self.logo_url,
            "currency": self.currency,
            "created_at": isoformat(self.created_at),
        }
