import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from invoicely.billing.paystack_security import compute_paystack_signature, verify_paystack_signature
from invoicely.billing.state_machine import SubscriptionStateMachine
from invoicely.billing.webhook import PaystackWebhookProcessor
from invoicely.extensions import db
from invoicely.models import SubscriptionInvoice

pytestmark = pytest.mark.billing


def test_signature_roundtrip_and_tampering():
    body = b'{"event":"charge.success"}'
    signature = compute_paystack_signature(body, "sk_test_secret")

    assert verify_paystack_signature(body, signature, "sk_test_secret") is True
    assert verify_paystack_signature(body + b" ", signature, "sk_test_secret") is False
    assert verify_paystack_signature(body, signature, "sk_test_other") is False
    assert verify_paystack_signature(body, None, "sk_test_secret") is False
    assert verify_paystack_signature(body, signature, None) is False


def test_invalid_signature_rejected_without_state_change(
    plans, tenant_id, subscription_factory, charge_event, post_webhook
):
    """Test that a bad signature returns 401 and leaves the subscription untouched"""
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    before = (subscription.status, subscription.current_period_end)

    response = post_webhook(charge_event("ref_bad_sig", subscription), signature="0" * 128)

    db.session.refresh(subscription)
    assert response.status_code == 401
    assert (subscription.status, subscription.current_period_end) == before
    assert SubscriptionInvoice.query.count() == 0


def test_missing_signature_rejected(plans, tenant_id, subscription_factory, charge_event, client):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")

    response = client.post(
        "/api/webhooks/paystack",
        data=json.dumps(charge_event("ref_no_sig", subscription)),
        content_type="application/json",
    )

    db.session.refresh(subscription)
    assert response.status_code == 401
    assert subscription.status == "pending"


def test_malformed_body_rejected(app, post_webhook):
    response = post_webhook(b"{not json")

    assert response.status_code == 400


def test_body_without_data_object_rejected(app, post_webhook):
    response = post_webhook({"event": "charge.success", "data": "oops"})

    assert response.status_code == 400


def test_unknown_event_ignored(app, post_webhook):
    response = post_webhook({"event": "transfer.success", "data": {"reference": "trf_1"}})

    assert response.status_code == 200
    assert response.get_json()["received"] is True


def test_charge_success_activates_subscription(
    plans, tenant_id, subscription_factory, charge_event, post_webhook
):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")

    response = post_webhook(charge_event("ref_paid", subscription, amount_kobo=500000))

    db.session.refresh(subscription)
    entry = SubscriptionInvoice.query.filter_by(paystack_invoice_code="ref_paid").one()
    assert response.status_code == 200
    assert subscription.status == "active"
    assert subscription.current_period_start == datetime(2026, 3, 1, 10, 0, 0)
    assert subscription.current_period_end == datetime(2026, 4, 1, 10, 0, 0)
    assert entry.amount == Decimal("5000.00")
    assert entry.source == "webhook"
    assert entry.subscription_id == subscription.id


def test_redelivered_event_is_safe(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    """Test that Paystack retries of the same event produce a single ledger row"""
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    event = charge_event("ref_retry", subscription)

    first = post_webhook(event)
    second = post_webhook(event)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.get_json()["status"] == "duplicate"
    assert SubscriptionInvoice.query.filter_by(paystack_invoice_code="ref_retry").count() == 1


def test_metadata_as_json_string(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    event = charge_event(
        "ref_string_meta",
        subscription,
        metadata=json.dumps({"subscription_id": subscription.id, "user_id": tenant_id}),
    )

    response = post_webhook(event)

    db.session.refresh(subscription)
    assert response.status_code == 200
    assert subscription.status == "active"


def test_paid_at_falls_back_to_created_at(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    event = charge_event("ref_created", subscription, paid_at=None, created_at="2026-05-10T08:30:00Z")

    post_webhook(event)

    db.session.refresh(subscription)
    assert subscription.current_period_start == datetime(2026, 5, 10, 8, 30, 0)
    assert subscription.current_period_end == datetime(2026, 6, 10, 8, 30, 0)


def test_charge_without_subscription_metadata_ignored(app, post_webhook):
    response = post_webhook({
        "event": "charge.success",
        "data": {"reference": "ref_one_off", "status": "success", "amount": 10000, "metadata": {}},
    })

    assert response.status_code == 200
    assert SubscriptionInvoice.query.count() == 0


def test_unknown_subscription_acknowledged(plans, post_webhook):
    response = post_webhook({
        "event": "charge.success",
        "data": {
            "reference": "ref_orphan",
            "status": "success",
            "amount": 500000,
            "metadata": {"subscription_id": "missing"},
        },
    })

    assert response.status_code == 200
    assert SubscriptionInvoice.query.count() == 0


def test_owner_mismatch_not_applied(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    event = charge_event("ref_wrong_owner", subscription)
    event["data"]["metadata"]["user_id"] = "someone-else"

    response = post_webhook(event)

    db.session.refresh(subscription)
    assert response.status_code == 200
    assert subscription.status == "pending"


def test_database_failure_returns_500(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    """Test that a failure applying a recognized event asks Paystack to retry"""
    subscription = subscription_factory(tenant_id, "Basic", status="pending")

    with patch.object(
        SubscriptionStateMachine,
        "confirm_payment",
        side_effect=OperationalError("UPDATE subscriptions", {}, Exception("db down")),
    ):
        response = post_webhook(charge_event("ref_db_down", subscription))

    assert response.status_code == 500


def test_processor_can_be_used_without_http(plans, tenant_id, subscription_factory, charge_event, sign):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    body = json.dumps(charge_event("ref_direct", subscription)).encode()

    result = PaystackWebhookProcessor("sk_test_webhook_secret").handle(body, sign(body))

    assert result.status_code == 200
    assert result.body["status"] == "applied"


def test_old_checkout_link_cannot_buy_a_different_plan(plans, tenant_id, charge_event, post_webhook):
    """Test that a paid Basic monthly link applies Basic monthly even after a Pro yearly checkout started"""
    first = SubscriptionStateMachine.initiate_upgrade(tenant_id, plans["Basic"].id, "monthly")
    SubscriptionStateMachine.initiate_upgrade(tenant_id, plans["Pro"].id, "yearly")
    subscription = first.subscription
    event = charge_event("ref_basic_link", subscription, amount_kobo=500000)
    event["data"]["metadata"].update({"plan_id": plans["Basic"].id, "interval": "monthly"})

    response = post_webhook(event)

    db.session.refresh(subscription)
    assert response.status_code == 200
    assert subscription.plan.name == "Basic"
    assert subscription.interval == "monthly"
    assert subscription.current_period_end == datetime(2026, 4, 1, 10, 0, 0)


def test_underpaid_charge_acknowledged_but_not_applied(
    plans, tenant_id, subscription_factory, charge_event, post_webhook
):
    subscription = subscription_factory(tenant_id, "Pro", status="pending", interval="yearly")

    response = post_webhook(charge_event("ref_short", subscription, amount_kobo=500000))

    db.session.refresh(subscription)
    assert response.status_code == 200
    assert response.get_json()["status"] == "mismatch"
    assert subscription.status == "pending"
    assert SubscriptionInvoice.query.count() == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": "N/A"},
        {"amount": -100},
        {"authorization": "AUTH_flat_string"},
        {"customer": ["CUS_1"]},
    ],
)
def test_malformed_charge_data_rejected(
    plans, tenant_id, subscription_factory, charge_event, post_webhook, overrides
):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")

    response = post_webhook(charge_event("ref_malformed", subscription, **overrides))

    db.session.refresh(subscription)
    assert response.status_code == 400
    assert subscription.status == "pending"
    assert SubscriptionInvoice.query.count() == 0


def test_charge_without_status_ignored(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")
    event = charge_event("ref_no_status", subscription)
    del event["data"]["status"]

    response = post_webhook(event)

    db.session.refresh(subscription)
    assert response.status_code == 200
    assert subscription.status == "pending"


@pytest.mark.parametrize("signature", ["ÿ" * 128, "é", "abc", "0" * 127])
def test_odd_signatures_rejected(signature):
    body = b'{"event":"charge.success"}'

    assert verify_paystack_signature(body, signature, "sk_test_secret") is False
    assert PaystackWebhookProcessor("sk_test_secret").handle(body, signature).status_code == 401


def test_non_ascii_signature_header_returns_401(plans, tenant_id, subscription_factory, charge_event, post_webhook):
    subscription = subscription_factory(tenant_id, "Basic", status="pending")

    response = post_webhook(charge_event("ref_latin1", subscription), signature="é" * 128)

    db.session.refresh(subscription)
    assert response.status_code == 401
    assert subscription.status == "pending"
