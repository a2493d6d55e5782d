"""
Tests for the Razorpay webhook endpoint.

Tests cover:
- Signature verification over the raw body
- Payload validation
- Event-id idempotency
- Handler failures acknowledged with 200
- End-to-end state changes for each event family
"""

import json
import threading
import time
from unittest.mock import patch

import pytest
from django.test import RequestFactory

from core.services import ServiceResult

from billing.conftest import WEBHOOK_SECRET
from billing.models import Order, Payment, RegistrationInvoice
from billing.signatures import compute_signature
from billing.state_machines import InvoiceStatus, OrderStatus, PaymentStatus
from billing.tests.factories import OrderFactory, RegistrationInvoiceFactory
from billing.tests.payloads import (
    invoice_entity,
    make_event,
    order_entity,
    payment_entity,
    signed_body,
    token_entity,
)
from billing.webhooks import router
from billing.webhooks.service import WebhookService
from billing.webhooks.views import razorpay_webhook

WEBHOOK_URL = "/api/v1/billing/webhooks/razorpay/"


# =============================================================================
# Setup
# =============================================================================


@pytest.fixture
def post_webhook(client):
    """POST a signed envelope to the webhook endpoint."""

    def _post(event: dict, event_id: str | None = "evt_test_1", signature: str | None = None):
        body, computed = signed_body(event, WEBHOOK_SECRET)
        headers = {"HTTP_X_RAZORPAY_SIGNATURE": signature if signature is not None else computed}
        if event_id:
            headers["HTTP_X_RAZORPAY_EVENT_ID"] = event_id
        return client.post(WEBHOOK_URL, data=body, content_type="application/json", **headers)

    return _post


# =============================================================================
# Signature Verification Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookSignature:
    """Tests for signature verification."""

    def test_missing_signature_returns_401(self, client):
        response = client.post(
            WEBHOOK_URL,
            data=json.dumps(make_event("payment.captured")),
            content_type="application/json",
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}

    def test_invalid_signature_returns_401(self, post_webhook):
        response = post_webhook(make_event("payment.captured"), signature="0" * 64)

        assert response.status_code == 401

    def test_unconfigured_secret_rejects_everything(self, post_webhook, settings):
        settings.RAZORPAY_WEBHOOK_SECRET = ""

        response = post_webhook(make_event("payment.captured", payment=payment_entity()))

        assert response.status_code == 401
        assert Payment.objects.count() == 0

    def test_body_changed_after_signing_returns_401(self, client):
        event = make_event("payment.captured", payment=payment_entity("pay_tamper", amount=100))
        _, signature = signed_body(event, WEBHOOK_SECRET)
        event["payload"]["payment"]["entity"]["amount"] = 100000

        response = client.post(
            WEBHOOK_URL,
            data=json.dumps(event),
            content_type="application/json",
            HTTP_X_RAZORPAY_SIGNATURE=signature,
        )

        assert response.status_code == 401
        assert not Payment.objects.filter(external_id="pay_tamper").exists()

    def test_get_not_allowed(self, client):
        assert client.get(WEBHOOK_URL).status_code == 405


# =============================================================================
# Payload Validation Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookPayload:
    """Tests for body validation after a valid signature."""

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"payload": {}}', b'{"event": 5}'])
    def test_invalid_body_returns_400(self, client, body):
        response = client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_RAZORPAY_SIGNATURE=compute_signature(body, WEBHOOK_SECRET),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid payload"}

    def test_unknown_category_acknowledged(self, post_webhook):
        response = post_webhook(make_event("refund.processed", refund={"id": "rfnd_1"}))

        assert response.status_code == 200
        assert response.json() == {"received": True}


# =============================================================================
# Idempotency Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookIdempotency:
    """Tests for event-id de-duplication."""

    def test_duplicate_event_id_not_reprocessed(self, post_webhook):
        event = make_event("payment.captured", payment=payment_entity("pay_dup"))

        with patch(
            "billing.webhooks.service.route",
            wraps=router.route,
        ) as mock_route:
            first = post_webhook(event, event_id="evt_dup")
            second = post_webhook(event, event_id="evt_dup")

        assert first.json() == {"received": True}
        assert second.status_code == 200
        assert second.json() == {"received": True, "duplicate": True}
        assert mock_route.call_count == 1
        assert Payment.objects.filter(external_id="pay_dup").count() == 1

    def test_missing_event_id_always_processed(self, post_webhook):
        event = make_event("payment.captured", payment=payment_entity("pay_noid"))

        first = post_webhook(event, event_id=None)
        second = post_webhook(event, event_id=None)

        assert first.json() == {"received": True}
        assert second.json() == {"received": True}

    def test_failed_handler_still_recorded(self, post_webhook, idempotency_guard):
        with patch(
            "billing.webhooks.handlers.PaymentReconciler.on_captured",
            side_effect=RuntimeError("boom"),
        ):
            response = post_webhook(make_event("payment.captured"), event_id="evt_crash")

        assert response.status_code == 200
        assert idempotency_guard.seen("evt_crash")

    def test_concurrent_deliveries_route_once(self):
        body, signature = signed_body(make_event("payment.captured"), WEBHOOK_SECRET)
        barrier = threading.Barrier(2)
        responses = []

        def slow_route(category, event, event_id=None):
            time.sleep(0.2)
            return ServiceResult.success()

        def deliver():
            barrier.wait()
            responses.append(WebhookService.receive(body, signature, "evt_same"))

        with patch("billing.webhooks.service.route", side_effect=slow_route) as mock_route:
            threads = [threading.Thread(target=deliver) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        bodies = [response_body for _, response_body in responses]
        assert mock_route.call_count == 1
        assert {"received": True} in bodies
        assert {"received": True, "duplicate": True} in bodies


# =============================================================================
# Error Handling Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookErrors:
    """Tests for unexpected failures."""

    def test_unexpected_error_returns_500(self):
        request = RequestFactory().post(
            WEBHOOK_URL, data=b"{}", content_type="application/json"
        )

        with patch(
            "billing.webhooks.views.WebhookService.receive",
            side_effect=RuntimeError("guard backend down"),
        ):
            response = razorpay_webhook(request)

        assert response.status_code == 500
        assert json.loads(response.content) == {"error": "Internal error"}


# =============================================================================
# End-to-End Event Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookEvents:
    """Tests for state changes driven through the endpoint."""

    def test_payment_lifecycle(self, post_webhook):
        post_webhook(
            make_event("payment.authorized", payment=payment_entity("pay_e2e", status="authorized")),
            event_id="evt_auth",
        )
        assert Payment.objects.get(external_id="pay_e2e").status == PaymentStatus.AUTHORIZED

        post_webhook(
            make_event("payment.captured", payment=payment_entity("pay_e2e")),
            event_id="evt_cap",
        )
        assert Payment.objects.get(external_id="pay_e2e").status == PaymentStatus.CAPTURED

        # Redelivered authorization with a new event id
        post_webhook(
            make_event("payment.authorized", payment=payment_entity("pay_e2e", status="authorized")),
            event_id="evt_auth_late",
        )
        assert Payment.objects.get(external_id="pay_e2e").status == PaymentStatus.CAPTURED

    def test_payment_failed(self, post_webhook):
        post_webhook(
            make_event(
                "payment.failed",
                payment=payment_entity("pay_e2e_fail", status="failed", error_code="BAD_REQUEST_ERROR"),
            )
        )

        payment = Payment.objects.get(external_id="pay_e2e_fail")
        assert payment.status == PaymentStatus.FAILED
        assert payment.failed_at is not None

    def test_order_paid(self, post_webhook):
        OrderFactory(external_id="order_e2e")

        post_webhook(
            make_event(
                "order.paid",
                payment=payment_entity("pay_for_order", order_id="order_e2e"),
                order=order_entity("order_e2e"),
            )
        )

        assert Order.objects.get(external_id="order_e2e").status == OrderStatus.PAID

    def test_token_confirmed(self, post_webhook):
        OrderFactory(external_id="order_tok_e2e", token={"id": "token_e2e"})

        post_webhook(make_event("token.confirmed", token=token_entity("token_e2e")))

        token = Order.objects.get(external_id="order_tok_e2e").token
        assert token["recurring_details"]["status"] == "confirmed"

    def test_invoice_paid(self, post_webhook):
        RegistrationInvoiceFactory(external_id="inv_e2e")

        post_webhook(
            make_event(
                "invoice.paid",
                invoice=invoice_entity("inv_e2e"),
                payment=payment_entity("pay_inv_e2e"),
            )
        )

        invoice = RegistrationInvoice.objects.get(external_id="inv_e2e")
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.payment_id == "pay_inv_e2e"
