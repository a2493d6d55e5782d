"""
Pytest fixtures shared by every billing test package.

Provides Razorpay credentials, resets the process-wide idempotency guard
and gateway adapter between tests, and a mock gateway adapter.
"""

from unittest.mock import MagicMock

import pytest

from billing.idempotency import InMemoryIdempotencyGuard, set_idempotency_guard
from billing.services import GatewayActionCoordinator

WEBHOOK_SECRET = "whsec_test_secret"
KEY_SECRET = "key_secret_test"


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def razorpay_settings(settings):
    """Configure test Razorpay credentials."""
    settings.RAZORPAY_KEY_ID = "rzp_test_key"
    settings.RAZORPAY_KEY_SECRET = KEY_SECRET
    settings.RAZORPAY_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.BILLING_DEFAULT_CURRENCY = "INR"
    settings.BILLING_MINIMUM_AMOUNT = 100
    settings.BILLING_WEBHOOK_DEAD_LETTER_ENABLED = False
    return settings


# =============================================================================
# Process-Wide State
# =============================================================================


@pytest.fixture(autouse=True)
def idempotency_guard():
    """Fresh in-memory idempotency guard for each test."""
    guard = InMemoryIdempotencyGuard(capacity=1000)
    set_idempotency_guard(guard)
    yield guard
    set_idempotency_guard(None)


@pytest.fixture
def mock_gateway():
    """
    Replace the Razorpay adapter with a MagicMock.

    Each gateway method returns a minimal Razorpay-shaped response by
    default; tests override ``return_value`` or ``side_effect`` as needed.
    """
    gateway = MagicMock(name="RazorpayAdapter")
    gateway.capture_payment.side_effect = lambda payment_id, amount, currency: {
        "id": payment_id,
        "entity": "payment",
        "amount": amount,
        "currency": currency,
        "status": "captured",
        "method": "card",
        "fee": 0,
    }
    gateway.refund_payment.side_effect = lambda payment_id, amount=None, speed="normal", notes=None: {
        "id": f"rfnd_{payment_id}_{amount}",
        "entity": "refund",
        "payment_id": payment_id,
        "amount": amount,
        "speed_requested": speed,
        "status": "processed",
        "created_at": 1700000000,
    }
    gateway.cancel_invoice.return_value = {"status": "cancelled"}
    gateway.notify_invoice.return_value = {"success": True}

    GatewayActionCoordinator.set_gateway_adapter(gateway)
    yield gateway
    GatewayActionCoordinator.set_gateway_adapter(None)
