import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from invoicely.domain.plans import ResourceKind
from invoicely.errors import ConflictError, NotFoundError, ValidationError
from invoicely.extensions import db
from invoicely.middleware.business_context import active_business_id
from invoicely.models import Business, Client, Estimate, Expense, Invoice, InvoiceStatus
from invoicely.services.plan_limits import (
    RESOURCE_MODELS,
    LimitCheckResult,
    check_plan_limit,
    count_resources,
    lock_tenant_quota,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateOutcome:
    """Result of a gated creation: the new record, or the limit that refused it."""

    record: Optional[object] = None
    limit: Optional[LimitCheckResult] = None

    @property
    def created(self) -> bool:
        return self.record is not None


# ---- input helpers ----

def require_fields(data, *fields):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [name for name in fields if data.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"fields": missing})


def text_field(data, name) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string", {"fields": [name]})
    return value.strip()


def optional_text(data, name) -> Optional[str]:
    value = data.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", {"fields": [name]})
    return value.strip()


def parse_date(value, field_name) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD)") from None


def parse_amount(value, field_name, allow_zero=False) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number") from None
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field_name} must be greater than zero")
    return amount


def resolve_business(tenant_id, data) -> Business:
    """The business named in the payload, else the request's active business."""
    business_id = data.get("business_id") or active_business_id(tenant_id)
    if not business_id:
        raise ValidationError("business_id is required")
    business = Business.get_owned(tenant_id, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    return business


def resolve_client(tenant_id, client_id) -> Client:
    if not client_id:
        raise ValidationError("client_id is required")
    client = Client.get_owned(tenant_id, client_id)
    if client is None:
        raise NotFoundError("Client not found")
    return client


# ---- generic gated create ----

def create_gated(tenant_id, kind: ResourceKind, build) -> CreateOutcome:
    """
    Run the plan limit check, then build and insert the record.

    ``build`` validates input and returns an unsaved model instance. It is
    only called once the limit allows creation, and nothing is written when
    the limit refuses it.
    """
    lock_tenant_quota(tenant_id)
    limit = check_plan_limit(tenant_id, kind, count_resources(tenant_id, kind))
    if not limit.allowed:
        db.session.rollback()
        return CreateOutcome(limit=limit)

    record = build()
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"A matching {kind.value[:-1]} already exists") from None
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(f"Failed to create {kind.value}", extra={"tenant_id": tenant_id})
        raise

    logger.info(f"Created {kind.value[:-1]}", extra={"tenant_id": tenant_id, "id": record.id})
    return CreateOutcome(record=record, limit=limit)


def create_business(tenant_id, data) -> CreateOutcome:
    def build():
        require_fields(data, "name")
        return Business(
            user_id=tenant_id,
            name=text_field(data, "name"),
            email=optional_text(data, "email"),
            phone=optional_text(data, "phone"),
            address=optional_text(data, "address"),
            tax_number=optional_text(data, "tax_number"),
            logo_url=optional_text(data, "logo_url"),
            currency=(optional_text(data, "currency") or "NGN").upper(),
        )

    return create_gated(tenant_id, ResourceKind.BUSINESSES, build)


def create_client(tenant_id, data) -> CreateOutcome:
    def build():
        require_fields(data, "name")
        business = resolve_business(tenant_id, data)
        return Client(
            user_id=tenant_id,
            business_id=business.id,
            name=text_field(data, "name"),
            email=optional_text(data, "email"),
            phone=optional_text(data, "phone"),
            address=optional_text(data, "address"),
        )

    return create_gated(tenant_id, ResourceKind.CLIENTS, build)


def create_invoice(tenant_id, data) -> CreateOutcome:
    def build():
        require_fields(data, "invoice_number", "issue_date", "due_date")
        business = resolve_business(tenant_id, data)
        client = resolve_client(tenant_id, data.get("client_id"))
        issue_date = parse_date(data["issue_date"], "issue_date")
        due_date = parse_date(data["due_date"], "due_date")
        if due_date < issue_date:
            raise ValidationError("due_date cannot be before issue_date")
        return Invoice(
            user_id=tenant_id,
            business_id=business.id,
            client_id=client.id,
            invoice_number=str(data["invoice_number"]).strip(),
            issue_date=issue_date,
            due_date=due_date,
            status=parse_invoice_status(data.get("status") or InvoiceStatus.DRAFT.value).value,
            total_amount=parse_amount(data.get("total_amount", 0), "total_amount", allow_zero=True),
            notes=optional_text(data, "notes"),
        )

    return create_gated(tenant_id, ResourceKind.INVOICES, build)


def create_estimate(tenant_id, data) -> CreateOutcome:
    def build():
        require_fields(data, "estimate_number", "issue_date", "expiry_date")
        business = resolve_business(tenant_id, data)
        client = resolve_client(tenant_id, data.get("client_id"))
        return Estimate(
            user_id=tenant_id,
            business_id=business.id,
            client_id=client.id,
            estimate_number=str(data["estimate_number"]).strip(),
            issue_date=parse_date(data["issue_date"], "issue_date"),
            expiry_date=parse_date(data["expiry_date"], "expiry_date"),
            total_amount=parse_amount(data.get("total_amount", 0), "total_amount", allow_zero=True),
            notes=optional_text(data, "notes"),
        )

    return create_gated(tenant_id, ResourceKind.ESTIMATES, build)


def create_expense(tenant_id, data) -> CreateOutcome:
    def build():
        require_fields(data, "description", "amount", "date")
        business = resolve_business(tenant_id, data)
        return Expense(
            user_id=tenant_id,
            business_id=business.id,
            category=optional_text(data, "category"),
            description=text_field(data, "description"),
            amount=parse_amount(data["amount"], "amount"),
            date=parse_date(data["date"], "date"),
            receipt_url=optional_text(data, "receipt_url"),
        )

    return create_gated(tenant_id, ResourceKind.EXPENSES, build)


# ---- reads ----

def list_resources(tenant_id, kind, business_id=None):
    model = RESOURCE_MODELS[ResourceKind(kind)]
    query = model.for_tenant(tenant_id)
    if business_id and hasattr(model, "business_id"):
        query = query.filter(model.business_id == business_id)
    return query.order_by(model.created_at.desc()).all()


def get_resource(tenant_id, kind, record_id):
    model = RESOURCE_MODELS[ResourceKind(kind)]
    record = model.get_owned(tenant_id, record_id)
    if record is None:
        raise NotFoundError(f"{model.__name__} not found")
    return record


# ---- invoices ----

def parse_invoice_status(value) -> InvoiceStatus:
    try:
        return InvoiceStatus(str(value).lower())
    except ValueError:
        allowed = ", ".join(status.value for status in InvoiceStatus)
        raise ValidationError(f"Invalid invoice status. Expected one of: {allowed}") from None


def update_invoice_status(tenant_id, invoice_id, status) -> Invoice:
    new_status = parse_invoice_status(status)
    invoice = get_resource(tenant_id, ResourceKind.INVOICES, invoice_id)
    invoice.status = new_status.value
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    logger.info("Invoice status updated", extra={"invoice_id": invoice.id, "status": new_status.value})
    return invoice
