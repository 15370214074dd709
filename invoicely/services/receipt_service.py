import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from invoicely.domain.plans import ResourceKind
from invoicely.errors import ConflictError, NotFoundError
from invoicely.extensions import db
from invoicely.models import NO_INVOICE, Invoice, InvoiceStatus, Receipt
from invoicely.services.plan_limits import check_plan_limit, count_resources, lock_tenant_quota
from invoicely.services.resource_service import (
    CreateOutcome,
    optional_text,
    parse_amount,
    parse_date,
    require_fields,
    resolve_business,
    resolve_client,
    text_field,
)

logger = logging.getLogger(__name__)


def linked_invoice(tenant_id, invoice_id):
    """None for the "no-invoice" sentinel or an empty id, else the tenant's invoice."""
    if not invoice_id or invoice_id == NO_INVOICE:
        return None
    invoice = Invoice.get_owned(tenant_id, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def create_receipt(tenant_id, data) -> CreateOutcome:
    """
    Record a payment receipt, the single way receipts are created.

    When the receipt settles an invoice, the invoice is marked paid in the
    same transaction as the insert, so a failed insert leaves the invoice
    untouched.
    """
    lock_tenant_quota(tenant_id)
    limit = check_plan_limit(tenant_id, ResourceKind.RECEIPTS, count_resources(tenant_id, ResourceKind.RECEIPTS))
    if not limit.allowed:
        db.session.rollback()
        return CreateOutcome(limit=limit)

    require_fields(data, "receipt_number", "amount", "date", "payment_method")
    business = resolve_business(tenant_id, data)
    client = resolve_client(tenant_id, data.get("client_id"))
    invoice = linked_invoice(tenant_id, data.get("invoice_id"))

    receipt = Receipt(
        user_id=tenant_id,
        business_id=business.id,
        client_id=client.id,
        invoice_id=invoice.id if invoice else None,
        receipt_number=str(data["receipt_number"]).strip(),
        date=parse_date(data["date"], "date"),
        amount=parse_amount(data["amount"], "amount"),
        payment_method=text_field(data, "payment_method"),
        notes=optional_text(data, "notes"),
    )

    try:
        db.session.add(receipt)
        db.session.flush()
        if invoice is not None:
            invoice.status = InvoiceStatus.PAID.value
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A receipt with this number already exists") from None
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to create receipt", extra={"tenant_id": tenant_id})
        raise

    logger.info(
        "Created receipt",
        extra={"tenant_id": tenant_id, "id": receipt.id, "invoice_id": receipt.invoice_id},
    )
    return CreateOutcome(record=receipt, limit=limit)
