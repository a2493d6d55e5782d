"""
Builders for Razorpay webhook envelopes used across billing tests.

Usage:
    from billing.tests.payloads import make_event, payment_entity

    event = make_event("payment.captured", payment=payment_entity("pay_1"))
    body = json.dumps(event).encode()
"""

import json

from billing.signatures import compute_signature

EVENT_CREATED_AT = 1700000000


def make_event(category: str, created_at: int | None = EVENT_CREATED_AT, **entities) -> dict:
    """
    Build a webhook envelope.

    Each keyword becomes ``payload[kind]["entity"]``.
    """
    event = {
        "entity": "event",
        "account_id": "acc_test",
        "event": category,
        "contains": list(entities),
        "payload": {kind: {"entity": entity} for kind, entity in entities.items()},
    }
    if created_at is not None:
        event["created_at"] = created_at
    return event


def payment_entity(
    payment_id: str = "pay_test001",
    order_id: str = "order_test001",
    amount: int = 50000,
    status: str = "captured",
    **overrides,
) -> dict:
    entity = {
        "id": payment_id,
        "entity": "payment",
        "amount": amount,
        "currency": "INR",
        "status": status,
        "order_id": order_id,
        "customer_id": "cust_test001",
        "method": "card",
        "recurring": False,
        "fee": 0,
        "error_code": None,
        "error_description": None,
        "created_at": EVENT_CREATED_AT,
    }
    entity.update(overrides)
    return entity


def order_entity(order_id: str = "order_test001", **overrides) -> dict:
    entity = {
        "id": order_id,
        "entity": "order",
        "amount": 50000,
        "amount_paid": 50000,
        "amount_due": 0,
        "currency": "INR",
        "status": "paid",
    }
    entity.update(overrides)
    return entity


def invoice_entity(invoice_id: str = "inv_test001", **overrides) -> dict:
    entity = {
        "id": invoice_id,
        "entity": "invoice",
        "type": "link",
        "amount": 100,
        "amount_paid": 100,
        "amount_due": 0,
        "currency": "INR",
        "status": "paid",
        "order_id": "order_inv001",
        "payment_id": None,
    }
    entity.update(overrides)
    return entity


def token_entity(token_id: str = "token_test001", **overrides) -> dict:
    entity = {
        "id": token_id,
        "entity": "token",
        "method": "emandate",
        "recurring": True,
        "recurring_details": {"status": "confirmed", "failure_reason": None},
    }
    entity.update(overrides)
    return entity


def signed_body(event: dict, secret: str) -> tuple[bytes, str]:
    """Serialize an envelope and sign it like Razorpay does."""
    body = json.dumps(event).encode("utf-8")
    return body, compute_signature(body, secret)
