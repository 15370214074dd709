from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
import requests

from invoicely.billing.paystack import GatewayError, PaystackClient, is_test_key, to_minor_units
from invoicely.domain.subscriptions import from_minor_units

pytestmark = pytest.mark.billing


def gateway_response(body, status_code=200):
    response = Mock(status_code=status_code, ok=200 <= status_code < 300)
    response.json.return_value = body
    return response


@pytest.fixture()
def paystack():
    return PaystackClient("sk_test_abc", base_url="https://api.paystack.test", timeout=5)


def test_minor_unit_conversion():
    assert to_minor_units(Decimal("5000")) == 500000
    assert to_minor_units("1234.565") == 123457
    assert from_minor_units(500000) == Decimal("5000.00")
    assert from_minor_units(None) == Decimal("0.00")


def test_mode_detection():
    assert is_test_key("sk_test_abc") is True
    assert is_test_key("sk_live_abc") is False
    assert PaystackClient("sk_live_abc").mode == "live"


def test_missing_secret_key():
    with pytest.raises(GatewayError):
        PaystackClient(None)


def test_client_built_from_app_config(app):
    client = PaystackClient.from_app(app)

    assert client.secret_key == "sk_test_webhook_secret"
    assert client.base_url == "https://api.paystack.test"


def test_initialize_transaction(paystack):
    body = {
        "status": True,
        "message": "Authorization URL created",
        "data": {
            "authorization_url": "https://checkout.paystack.com/abc",
            "access_code": "abc",
            "reference": "ref_abc",
        },
    }
    with patch("invoicely.billing.paystack.requests.request", return_value=gateway_response(body)) as mock_request:
        data = paystack.initialize_transaction(
            "payer@example.com", Decimal("5000"), "https://app.test/billing/verify", {"subscription_id": "sub_1"}
        )

    assert data["reference"] == "ref_abc"
    mock_request.assert_called_once_with(
        "POST",
        "https://api.paystack.test/transaction/initialize",
        headers={"Authorization": "Bearer sk_test_abc", "Content-Type": "application/json"},
        timeout=5,
        json={
            "email": "payer@example.com",
            "amount": 500000,
            "callback_url": "https://app.test/billing/verify",
            "metadata": {"subscription_id": "sub_1"},
        },
    )


@pytest.mark.parametrize(
    "email,amount,callback_url",
    [
        ("not-an-email", 5000, "https://app.test/cb"),
        ("payer@example.com", 0, "https://app.test/cb"),
        ("payer@example.com", 5000, ""),
    ],
)
def test_initialize_transaction_validates_input(paystack, email, amount, callback_url):
    with patch("invoicely.billing.paystack.requests.request") as mock_request:
        with pytest.raises(ValueError):
            paystack.initialize_transaction(email, amount, callback_url)

    mock_request.assert_not_called()


def test_verify_transaction(paystack):
    body = {"status": True, "data": {"status": "success", "reference": "ref_abc"}}
    with patch("invoicely.billing.paystack.requests.request", return_value=gateway_response(body)) as mock_request:
        data = paystack.verify_transaction("ref_abc")

    assert data["status"] == "success"
    assert mock_request.call_args[0] == ("GET", "https://api.paystack.test/transaction/verify/ref_abc")


def test_http_error_raises_gateway_error(paystack):
    body = {"status": False, "message": "Transaction reference not found"}
    with patch("invoicely.billing.paystack.requests.request", return_value=gateway_response(body, 400)):
        with pytest.raises(GatewayError) as exc_info:
            paystack.verify_transaction("ref_missing")

    assert exc_info.value.status_code == 400
    assert "not found" in exc_info.value.message


def test_false_status_envelope_raises(paystack):
    body = {"status": False, "message": "Invalid key"}
    with patch("invoicely.billing.paystack.requests.request", return_value=gateway_response(body)):
        with pytest.raises(GatewayError):
            paystack.verify_transaction("ref_abc")


def test_transport_error_raises_gateway_error(paystack):
    with patch(
        "invoicely.billing.paystack.requests.request",
        side_effect=requests.ConnectionError("connection refused"),
    ):
        with pytest.raises(GatewayError):
            paystack.verify_transaction("ref_abc")


@pytest.mark.parametrize("amount", ["N/A", "NaN", "Infinity", -1, True, [500]])
def test_invalid_minor_unit_amounts_raise_value_error(amount):
    with pytest.raises(ValueError):
        from_minor_units(amount)
