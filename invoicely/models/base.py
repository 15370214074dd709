import uuid

from invoicely.domain.subscriptions import utcnow
from invoicely.extensions import db


def new_id() -> str:
    return str(uuid.uuid4())


def isoformat(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TenantOwnedMixin(TimestampMixin):
    """Rows exclusively owned by the tenant that created them."""

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    @classmethod
    def for_tenant(cls, tenant_id):
        return cls.query.filter(cls.user_id == tenant_id)

    @classmethod
    def get_owned(cls, tenant_id, record_id):
        if not record_id:
            return None
        return cls.for_tenant(tenant_id).filter(cls.id == str(record_id)).first()
