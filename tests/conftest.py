import json
from datetime import date, timedelta

import pytest
from faker import Faker
from flask_jwt_extended import create_access_token

from invoicely import create_app
from invoicely.billing.paystack_security import compute_paystack_signature
from invoicely.cli import seed_plans
from invoicely.domain.subscriptions import SubscriptionStatus, add_interval, utcnow
from invoicely.extensions import db
from invoicely.models import Business, Client, Invoice, Plan, Subscription

# Initialize Faker for generating test data
fake = Faker()


def pytest_configure(config):
    config.addinivalue_line("markers", "billing: mark test as billing-related")
    config.addinivalue_line("markers", "db: mark test as database-intensive")


@pytest.fixture()
def app():
    """Fresh application and in-memory database for every test"""
    app = create_app("testing")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def plans(app):
    """The seeded Free, Basic and Pro plans keyed by name"""
    seed_plans()
    return {plan.name: plan for plan in Plan.query.all()}


@pytest.fixture()
def tenant_id():
    return fake.uuid4()


@pytest.fixture()
def make_token(app):
    def _make_token(identity, email=None):
        return create_access_token(
            identity=str(identity),
            additional_claims={"email": email or fake.email()},
        )

    return _make_token


@pytest.fixture()
def auth_headers(make_token, tenant_id):
    """Bearer headers for the default test tenant"""
    return {
        "Authorization": f"Bearer {make_token(tenant_id)}",
        "X-Request-ID": fake.uuid4(),
    }


@pytest.fixture()
def sign(app):
    """Sign a webhook body the way Paystack does"""
    def _sign(body: bytes) -> str:
        return compute_paystack_signature(body, app.config["PAYSTACK_SECRET_KEY"])

    return _sign


@pytest.fixture()
def subscription_factory(plans):
    def _create(tenant_id, plan_name="Free", status=SubscriptionStatus.ACTIVE.value,
                interval="monthly", period_start=None, period_end=None, **overrides):
        start = period_start or utcnow()
        subscription = Subscription(
            user_id=tenant_id,
            plan_id=plans[plan_name].id,
            status=status,
            interval=interval,
            current_period_start=start,
            current_period_end=period_end or add_interval(start, interval),
            **overrides,
        )
        db.session.add(subscription)
        db.session.commit()
        return subscription

    return _create


@pytest.fixture()
def business_factory():
    def _create(tenant_id, **overrides):
        business = Business(user_id=tenant_id, name=overrides.pop("name", fake.company()), **overrides)
        db.session.add(business)
        db.session.commit()
        return business

    return _create


@pytest.fixture()
def client_factory():
    def _create(tenant_id, business, **overrides):
        record = Client(
            user_id=tenant_id,
            business_id=business.id,
            name=overrides.pop("name", fake.name()),
            email=overrides.pop("email", fake.email()),
            **overrides,
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _create


@pytest.fixture()
def invoice_factory():
    def _create(tenant_id, business, customer, status="sent", **overrides):
        invoice = Invoice(
            user_id=tenant_id,
            business_id=business.id,
            client_id=customer.id,
            invoice_number=overrides.pop("invoice_number", f"INV-{fake.unique.random_int(1000, 9999)}"),
            issue_date=date.today(),
            due_date=date.today() + timedelta(days=14),
            status=status,
            total_amount=overrides.pop("total_amount", 25000),
            **overrides,
        )
        db.session.add(invoice)
        db.session.commit()
        return invoice

    return _create


@pytest.fixture()
def charge_event():
    """Build a Paystack charge.success envelope for a subscription"""
    def _build(reference, subscription, amount_kobo=500000, paid_at="2026-03-01T10:00:00.000Z", **data):
        payload = {
            "event": "charge.success",
            "data": {
                "reference": reference,
                "status": "success",
                "amount": amount_kobo,
                "currency": "NGN",
                "paid_at": paid_at,
                "metadata": {"subscription_id": subscription.id, "user_id": subscription.user_id},
                "authorization": {"authorization_code": f"AUTH_{fake.lexify('????????')}"},
                "customer": {"customer_code": f"CUS_{fake.lexify('????????')}", "email": fake.email()},
            },
        }
        payload["data"].update(data)
        return payload

    return _build


@pytest.fixture()
def post_webhook(client, sign):
    """POST a signed (or deliberately mis-signed) body to the Paystack webhook"""
    def _post(payload, signature=None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        return client.post(
            "/api/webhooks/paystack",
            data=body,
            content_type="application/json",
            headers={"x-paystack-signature": signature if signature is not None else sign(body)},
        )

    return _post
