"""
HMAC-SHA256 signature checks for Razorpay.

Two checks share one primitive:

- Webhook deliveries: hex HMAC of the exact raw request body, keyed with
  RAZORPAY_WEBHOOK_SECRET, sent in the X-Razorpay-Signature header.
- Payment confirmations: hex HMAC of ``"{order_id}|{payment_id}"``, keyed
  with RAZORPAY_KEY_SECRET, returned to the checkout client.

Both return False instead of raising: a missing secret, a missing or
malformed signature and a mismatch are all just "not verified".

Usage:
    from billing.signatures import verify_webhook_signature

    if not verify_webhook_signature(request.body, signature, secret):
        return Response({"error": "Invalid signature"}, status=401)
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def compute_signature(payload: bytes | str, secret: str) -> str:
    """
    Compute the hex HMAC-SHA256 of payload under secret.

    Args:
        payload: Raw bytes (str is encoded as UTF-8)
        secret: Shared secret

    Returns:
        Lowercase hex digest
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    raw_payload: bytes | str,
    provided_signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a webhook body against its signature header.

    The body must be the raw bytes received. Hashing a re-serialized JSON
    document gives a different digest.

    Args:
        raw_payload: Raw request body
        provided_signature: Value of X-Razorpay-Signature
        secret: Webhook secret

    Returns:
        True only if the signature matches
    """
    if not secret:
        logger.warning("Signing secret not configured, rejecting signature")
        return False

    if not provided_signature or not isinstance(provided_signature, str):
        return False

    if raw_payload is None:
        return False

    expected = compute_signature(raw_payload, secret)

    # Compare as bytes: compare_digest rejects non-ASCII str arguments
    return hmac.compare_digest(
        expected.encode("ascii"),
        provided_signature.encode("utf-8", errors="replace"),
    )


def verify_payment_signature(
    order_id: str | None,
    payment_id: str | None,
    signature: str | None,
    secret: str | None,
) -> bool:
    """
    Verify a checkout confirmation triple.

    Args:
        order_id: Razorpay order id
        payment_id: Razorpay payment id
        signature: razorpay_signature returned by checkout
        secret: API key secret

    Returns:
        True only if the signature matches ``order_id|payment_id``
    """
    if not order_id or not payment_id:
        return False
    return verify_webhook_signature(f"{order_id}|{payment_id}", signature, secret)
