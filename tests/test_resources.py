from unittest.mock import patch

import pytest
from faker import Faker

from invoicely.models import Business, Client, Subscription

fake = Faker()


@pytest.fixture()
def business(plans, tenant_id, business_factory):
    return business_factory(tenant_id)


def test_first_protected_request_bootstraps_subscription(client, plans, tenant_id, auth_headers):
    """Test that the first authenticated call creates exactly one Free subscription"""
    response = client.get("/api/businesses", headers=auth_headers)

    subscriptions = Subscription.query.filter_by(user_id=tenant_id).all()
    assert response.status_code == 200
    assert len(subscriptions) == 1
    assert subscriptions[0].status == "active"
    assert subscriptions[0].plan.name == "Free"


def test_requests_without_token_rejected(client, plans):
    response = client.get("/api/clients")

    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_create_business(client, plans, tenant_id, auth_headers):
    response = client.post("/api/businesses", json={"name": "Acme Ltd"}, headers=auth_headers)

    assert response.status_code == 201
    assert response.get_json()["name"] == "Acme Ltd"
    assert Business.query.filter_by(user_id=tenant_id).count() == 1


def test_sixth_client_denied_on_free_plan(client, tenant_id, business, client_factory, auth_headers):
    """Test that the limit check refuses creation with a 403 and writes nothing"""
    for _ in range(5):
        client_factory(tenant_id, business)

    response = client.post(
        "/api/clients",
        json={"name": fake.name(), "business_id": business.id},
        headers=auth_headers,
    )

    assert response.status_code == 403
    assert "5" in response.get_json()["error"]
    assert Client.query.filter_by(user_id=tenant_id).count() == 5


def test_fifth_client_allowed(client, tenant_id, business, client_factory, auth_headers):
    for _ in range(4):
        client_factory(tenant_id, business)

    response = client.post(
        "/api/clients",
        json={"name": fake.name(), "business_id": business.id},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert Client.query.filter_by(user_id=tenant_id).count() == 5


def test_limits_count_only_own_resources(client, tenant_id, business, business_factory, client_factory, auth_headers):
    other = business_factory("other-tenant")
    for _ in range(5):
        client_factory("other-tenant", other)

    response = client.post(
        "/api/clients",
        json={"name": fake.name(), "business_id": business.id},
        headers=auth_headers,
    )

    assert response.status_code == 201


def test_missing_required_field(client, business, auth_headers):
    response = client.post("/api/clients", json={"business_id": business.id}, headers=auth_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_active_business_header_sets_default_business(client, tenant_id, business, auth_headers):
    headers = dict(auth_headers, **{"X-Business-ID": business.id})

    response = client.post("/api/clients", json={"name": "Jane Doe"}, headers=headers)

    assert response.status_code == 201
    assert response.get_json()["business_id"] == business.id


def test_foreign_business_header_rejected(client, plans, business_factory, auth_headers):
    foreign = business_factory("other-tenant")
    headers = dict(auth_headers, **{"X-Business-ID": foreign.id})

    response = client.get("/api/clients", headers=headers)

    assert response.status_code == 404


def test_list_filtered_by_active_business(client, tenant_id, business, business_factory, client_factory, auth_headers):
    second = business_factory(tenant_id)
    client_factory(tenant_id, business)
    client_factory(tenant_id, second)

    response = client.get("/api/clients", headers=dict(auth_headers, **{"X-Business-ID": second.id}))

    clients = response.get_json()["clients"]
    assert len(clients) == 1
    assert clients[0]["business_id"] == second.id


def test_cannot_read_other_tenants_records(client, plans, business_factory, auth_headers):
    foreign = business_factory("other-tenant")

    response = client.get(f"/api/businesses/{foreign.id}", headers=auth_headers)

    assert response.status_code == 404


def test_create_invoice_and_update_status(client, tenant_id, business, client_factory, auth_headers):
    customer = client_factory(tenant_id, business)
    response = client.post(
        "/api/invoices",
        json={
            "business_id": business.id,
            "client_id": customer.id,
            "invoice_number": "INV-0001",
            "issue_date": "2026-03-01",
            "due_date": "2026-03-15",
            "total_amount": 1500,
        },
        headers=auth_headers,
    )
    invoice_id = response.get_json()["id"]

    update = client.patch(f"/api/invoices/{invoice_id}/status", json={"status": "sent"}, headers=auth_headers)
    invalid = client.patch(f"/api/invoices/{invoice_id}/status", json={"status": "void"}, headers=auth_headers)

    assert response.status_code == 201
    assert response.get_json()["status"] == "draft"
    assert update.get_json()["status"] == "sent"
    assert invalid.status_code == 400


def test_duplicate_invoice_number_conflicts(client, tenant_id, business, client_factory, auth_headers):
    customer = client_factory(tenant_id, business)
    payload = {
        "business_id": business.id,
        "client_id": customer.id,
        "invoice_number": "INV-0001",
        "issue_date": "2026-03-01",
        "due_date": "2026-03-15",
    }

    client.post("/api/invoices", json=payload, headers=auth_headers)
    response = client.post("/api/invoices", json=payload, headers=auth_headers)

    assert response.status_code == 409


def test_create_estimate_and_expense(client, tenant_id, business, client_factory, auth_headers):
    customer = client_factory(tenant_id, business)

    estimate = client.post(
        "/api/estimates",
        json={
            "business_id": business.id,
            "client_id": customer.id,
            "estimate_number": "EST-001",
            "issue_date": "2026-03-01",
            "expiry_date": "2026-03-31",
            "total_amount": 900,
        },
        headers=auth_headers,
    )
    expense = client.post(
        "/api/expenses",
        json={"business_id": business.id, "description": "Printer ink", "amount": 4500, "date": "2026-03-03"},
        headers=auth_headers,
    )

    assert estimate.status_code == 201
    assert expense.status_code == 201
    assert expense.get_json()["amount"] == 4500.0


def test_receipt_route_uses_consolidated_service(client, tenant_id, business, client_factory, invoice_factory, auth_headers):
    customer = client_factory(tenant_id, business)
    invoice = invoice_factory(tenant_id, business, customer)

    response = client.post(
        "/api/receipts",
        json={
            "business_id": business.id,
            "client_id": customer.id,
            "invoice_id": invoice.id,
            "receipt_number": "RCP-100",
            "date": "2026-03-05",
            "amount": 25000,
            "payment_method": "card",
        },
        headers=auth_headers,
    )

    invoice_response = client.get(f"/api/invoices/{invoice.id}", headers=auth_headers)
    assert response.status_code == 201
    assert invoice_response.get_json()["status"] == "paid"


@pytest.mark.parametrize(
    "payload",
    [
        {"name": ["Jane"]},
        {"name": 42},
        {"name": "Jane", "email": {"primary": "jane@example.com"}},
        ["name", "Jane"],
    ],
)
def test_wrongly_typed_body_rejected(client, business, auth_headers, payload):
    headers = dict(auth_headers, **{"X-Business-ID": business.id})

    response = client.post("/api/clients", json=payload, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_expense_description_must_be_text(client, business, auth_headers):
    response = client.post(
        "/api/expenses",
        json={"business_id": business.id, "description": ["ink"], "amount": 10, "date": "2026-03-03"},
        headers=auth_headers,
    )

    assert response.status_code == 400


def test_non_object_status_update_rejected(client, tenant_id, business, client_factory, invoice_factory, auth_headers):
    invoice = invoice_factory(tenant_id, business, client_factory(tenant_id, business))

    response = client.patch(f"/api/invoices/{invoice.id}/status", json=["paid"], headers=auth_headers)

    assert response.status_code == 400


def test_gated_create_locks_tenant_quota_before_counting(client, tenant_id, business, auth_headers):
    calls = []

    with patch(
        "invoicely.services.resource_service.lock_tenant_quota",
        side_effect=lambda tid: calls.append(("lock", tid)),
    ), patch(
        "invoicely.services.resource_service.count_resources",
        side_effect=lambda tid, kind: calls.append(("count", tid)) or 0,
    ):
        response = client.post(
            "/api/clients", json={"name": "Jane Doe", "business_id": business.id}, headers=auth_headers
        )

    assert response.status_code == 201
    assert calls == [("lock", tenant_id), ("count", tenant_id)]
