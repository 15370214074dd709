import logging
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import quote

import requests
from flask import current_app

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = "https://api.paystack.co"


class GatewayError(Exception):
    """The gateway could not be reached or refused the request."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def to_minor_units(amount) -> int:
    """Paystack expects amounts in the smallest currency unit (kobo)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_test_key(secret_key) -> bool:
    return bool(secret_key) and secret_key.startswith("sk_test_")


class PaystackClient:
    """Thin wrapper over the two Paystack transaction endpoints the billing flow uses."""

    def __init__(self, secret_key, base_url=PAYSTACK_BASE_URL, timeout=10):
        if not secret_key:
            raise GatewayError("PAYSTACK_SECRET_KEY is not configured")
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_app(cls, app=None):
        config = (app or current_app).config
        return cls(
            config.get("PAYSTACK_SECRET_KEY"),
            base_url=config.get("PAYSTACK_BASE_URL", PAYSTACK_BASE_URL),
            timeout=config.get("PAYSTACK_TIMEOUT", 10),
        )

    @property
    def mode(self) -> str:
        return "test" if is_test_key(self.secret_key) else "live"

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error(f"Paystack request failed: {method} {path}: {e}")
            raise GatewayError("Payment gateway is unreachable") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            message = body.get("message") or f"HTTP error! status: {response.status_code}"
            logger.error(f"Paystack API error on {path}: {response.status_code} {message}")
            raise GatewayError(message, status_code=response.status_code)

        if not body.get("status"):
            raise GatewayError(body.get("message") or "Payment gateway rejected the request")

        return body.get("data") or {}

    def initialize_transaction(self, email, amount, callback_url, metadata=None) -> dict:
        """
        Create a hosted-checkout payment link.

        Args:
            email: payer email
            amount: amount in major currency units
            callback_url: where the payer's browser returns after checkout
            metadata: echoed back on the webhook and verify responses

        Returns:
            dict with authorization_url, access_code and reference
        """
        if not email or "@" not in email:
            raise ValueError("Invalid email address")
        if Decimal(str(amount)) <= 0:
            raise ValueError("Amount must be greater than zero")
        if not callback_url:
            raise ValueError("Callback URL is required")

        logger.info(
            "Creating Paystack payment link",
            extra={"mode": self.mode, "amount": str(amount)},
        )
        return self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": to_minor_units(amount),
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )

    def verify_transaction(self, reference) -> dict:
        """Fetch the gateway's authoritative view of a transaction."""
        if not reference:
            raise ValueError("Payment reference is required")
        return self._request("GET", f"/transaction/verify/{quote(str(reference), safe='')}")
