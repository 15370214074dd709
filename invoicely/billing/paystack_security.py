import hashlib
import hmac


def compute_paystack_signature(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha512).hexdigest()


def verify_paystack_signature(payload: bytes, signature, secret) -> bool:
    """
    Check the x-paystack-signature header: an HMAC-SHA512 hex digest of the
    exact raw request body keyed with the secret key.

    Compared as bytes, so a header holding non-ASCII characters is simply
    a mismatch.
    """
    if not secret or not signature or not isinstance(signature, str):
        return False
    computed = compute_paystack_signature(payload, secret).encode()
    candidate = signature.strip().lower().encode("utf-8", "replace")
    return hmac.compare_digest(computed, candidate)
