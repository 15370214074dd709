from flask import Blueprint, jsonify, request

from invoicely.domain.plans import ResourceKind
from invoicely.middleware.business_context import active_business_id
from invoicely.routes import json_object
from invoicely.security.auth import current_tenant_id, tenant_required
from invoicely.services import resource_service
from invoicely.services.receipt_service import create_receipt

resources_bp = Blueprint("resources", __name__, url_prefix="/api")

CREATORS = {
    ResourceKind.BUSINESSES: resource_service.create_business,
    ResourceKind.CLIENTS: resource_service.create_client,
    ResourceKind.INVOICES: resource_service.create_invoice,
    ResourceKind.ESTIMATES: resource_service.create_estimate,
    ResourceKind.RECEIPTS: create_receipt,
    ResourceKind.EXPENSES: resource_service.create_expense,
}

KIND_PATTERN = "<any({}):kind>".format(", ".join(kind.value for kind in ResourceKind))


@resources_bp.route(f"/{KIND_PATTERN}", methods=["GET"])
@tenant_required
def list_resources(kind):
    tenant_id = current_tenant_id()
    business_id = request.args.get("business_id") or active_business_id(tenant_id)
    records = resource_service.list_resources(tenant_id, kind, business_id=business_id)
    return jsonify({kind: [record.to_dict() for record in records]})


@resources_bp.route(f"/{KIND_PATTERN}", methods=["POST"])
@tenant_required
def create_resource(kind):
    data = json_object()
    outcome = CREATORS[ResourceKind(kind)](current_tenant_id(), data)
    if not outcome.created:
        # Limit reached is an expected answer, not an error
        return jsonify({
            "error": outcome.limit.message,
            "limit": outcome.limit.limit,
            "current": outcome.limit.current,
        }), 403
    return jsonify(outcome.record.to_dict()), 201


@resources_bp.route(f"/{KIND_PATTERN}/<record_id>", methods=["GET"])
@tenant_required
def get_resource(kind, record_id):
    record = resource_service.get_resource(current_tenant_id(), kind, record_id)
    return jsonify(record.to_dict())


@resources_bp.route("/invoices/<invoice_id>/status", methods=["PATCH"])
@tenant_required
def update_invoice_status(invoice_id):
    data = json_object()
    invoice = resource_service.update_invoice_status(current_tenant_id(), invoice_id, data.get("status"))
    return jsonify(invoice.to_dict())
