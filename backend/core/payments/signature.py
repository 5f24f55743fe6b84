"""
Razorpay signature verification.

Both checkout confirmations and webhook deliveries are signed with
HMAC-SHA256 (hex digest). They differ only in what is signed and with
which secret:
- checkout: "{order_id}|{payment_id}" under the API key secret
- webhook:  the raw request body under the webhook secret
"""
import hashlib
import hmac
from typing import Optional, Union


def compute_signature(payload: Union[str, bytes], secret: str) -> str:
    """Hex HMAC-SHA256 of payload under secret."""
    if isinstance(payload, str):
        payload = payload.encode()
    return hmac.new(
        key=secret.encode(),
        msg=payload,
        digestmod=hashlib.sha256
    ).hexdigest()


def verify_signature(payload: Union[str, bytes], signature: Optional[str], secret: Optional[str]) -> bool:
    """
    True iff signature is the HMAC-SHA256 of payload under secret.
    Never raises; an unconfigured secret or absent signature is a mismatch.
    """
    if not secret or not signature:
        return False

    expected = compute_signature(payload, secret)

    # Constant-time comparison; bytes so non-ASCII input compares instead of raising
    return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "surrogateescape"))


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Verify the signature returned by the hosted checkout for an order."""
    return verify_signature(f"{order_id}|{payment_id}", signature, secret)


def verify_webhook_signature(raw_body: Union[str, bytes], signature: str, secret: str) -> bool:
    """Verify the X-Razorpay-Signature header against the exact request body."""
    return verify_signature(raw_body, signature, secret)
