import logging

from flask import has_request_context, request

from invoicely.errors import NotFoundError
from invoicely.models.business import Business

logger = logging.getLogger(__name__)

BUSINESS_HEADER = "X-Business-ID"


def get_active_business(tenant_id):
    """
    Resolve the business the request is acting on.

    The selection arrives per request in the X-Business-ID header and is
    only trusted once it is confirmed to belong to the tenant. Returns None
    when no business is selected.
    """
    if not has_request_context():
        return None

    business_id = (request.headers.get(BUSINESS_HEADER) or "").strip()
    business = None
    if business_id:
        business = Business.get_owned(tenant_id, business_id)
        if business is None:
            logger.warning(
                "Rejected business context not owned by tenant",
                extra={"tenant_id": tenant_id, "business_id": business_id},
            )
            raise NotFoundError("Business not found")

    return business


def active_business_id(tenant_id):
    business = get_active_business(tenant_id)
    return business.id if business else None
