"""
Tests for PaymentReconciler.

Tests cover:
- Webhook entry points creating unknown payments
- Authorization, capture and failure merges with monotonic status
- Capture column population and repeated captures
- Refund application and de-duplication
- Checkout signature merge
"""

from datetime import datetime, timezone as dt_timezone

import pytest

from billing.models import Payment
from billing.reconcilers import PaymentReconciler
from billing.state_machines import PaymentEventKind, PaymentStatus
from billing.tests.factories import PaymentFactory
from billing.tests.payloads import EVENT_CREATED_AT, payment_entity


def as_payload(entity: dict) -> dict:
    return {"payment": {"entity": entity}}


def reload(payment_id: str) -> Payment:
    return Payment.objects.get(external_id=payment_id)


# =============================================================================
# Entry Points
# =============================================================================


@pytest.mark.django_db
class TestOnCaptured:
    """Tests for payment.captured."""

    def test_creates_unknown_payment_as_captured(self):
        entity = payment_entity("pay_cap", order_id="order_cap", amount=50000)

        result = PaymentReconciler.on_captured(as_payload(entity))

        assert result.success
        payment = reload("pay_cap")
        assert payment.status == PaymentStatus.CAPTURED
        assert payment.order_id == "order_cap"
        assert payment.customer_id == "cust_test001"
        assert payment.captured_amount == 50000
        assert payment.capture_id == "pay_cap"
        assert payment.capture_method == "card"
        assert payment.captured_at == datetime.fromtimestamp(EVENT_CREATED_AT, tz=dt_timezone.utc)
        assert payment.metadata["capture"] == entity

    def test_missing_customer_defaults_to_unknown(self):
        entity = payment_entity("pay_anon", customer_id=None)

        PaymentReconciler.on_captured(as_payload(entity))

        assert reload("pay_anon").customer_id == "unknown"

    def test_missing_method_recorded_as_automatic(self):
        PaymentReconciler.on_captured(as_payload(payment_entity("pay_auto", method=None)))

        assert reload("pay_auto").capture_method == "automatic"

    def test_bare_payload_shape_accepted(self):
        result = PaymentReconciler.on_captured({"payment": payment_entity("pay_bare")})

        assert result.success
        assert reload("pay_bare").status == PaymentStatus.CAPTURED

    @pytest.mark.parametrize("payload", [None, {}, {"payment": {"entity": {}}}])
    def test_missing_id_is_failure(self, payload):
        result = PaymentReconciler.on_captured(payload)

        assert not result.success
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"
        assert Payment.objects.count() == 0

    def test_capture_twice_is_stable(self):
        entity = payment_entity("pay_twice")

        PaymentReconciler.on_captured(as_payload(entity))
        first = reload("pay_twice")
        PaymentReconciler.on_captured(as_payload(entity))
        second = reload("pay_twice")

        assert second.status == PaymentStatus.CAPTURED
        assert second.captured_amount == first.captured_amount
        assert second.events.filter(kind=PaymentEventKind.CAPTURE).count() == 1

    def test_acquirer_reference_stored(self):
        entity = payment_entity("pay_acq", acquirer_data={"transaction_id": "txn_991"}, fee=236)

        PaymentReconciler.on_captured(as_payload(entity))

        payment = reload("pay_acq")
        assert payment.capture_reference == "txn_991"
        assert payment.capture_fee == 236

    def test_capture_ignored_after_refund(self):
        PaymentFactory(
            external_id="pay_refunded",
            status=PaymentStatus.REFUNDED,
            amount=1000,
            amount_refunded=1000,
        )

        PaymentReconciler.on_captured(as_payload(payment_entity("pay_refunded", amount=1000)))

        assert reload("pay_refunded").status == PaymentStatus.REFUNDED

    def test_late_capture_overrides_failure(self):
        PaymentFactory(external_id="pay_late", status=PaymentStatus.FAILED)

        PaymentReconciler.on_captured(as_payload(payment_entity("pay_late")))

        assert reload("pay_late").status == PaymentStatus.CAPTURED


@pytest.mark.django_db
class TestOnAuthorized:
    """Tests for payment.authorized."""

    def test_creates_authorized_payment(self):
        result = PaymentReconciler.on_authorized(
            as_payload(payment_entity("pay_auth", status="authorized"))
        )

        assert result.success
        payment = reload("pay_auth")
        assert payment.status == PaymentStatus.AUTHORIZED
        assert payment.events.filter(kind=PaymentEventKind.AUTHORIZATION).count() == 1

    def test_stale_authorized_after_captured_is_ignored(self):
        PaymentReconciler.on_captured(as_payload(payment_entity("pay_stale")))

        result = PaymentReconciler.on_authorized(
            as_payload(payment_entity("pay_stale", status="authorized"))
        )

        assert result.success
        payment = reload("pay_stale")
        assert payment.status == PaymentStatus.CAPTURED
        assert "authorization" not in payment.metadata

    def test_repeat_authorized_refreshes_metadata(self):
        PaymentFactory(external_id="pay_reauth", status=PaymentStatus.AUTHORIZED)

        PaymentReconciler.on_authorized(
            as_payload(payment_entity("pay_reauth", status="authorized", method="upi"))
        )

        payment = reload("pay_reauth")
        assert payment.status == PaymentStatus.AUTHORIZED
        assert payment.metadata["authorization"]["method"] == "upi"


@pytest.mark.django_db
class TestOnFailed:
    """Tests for payment.failed."""

    def test_failure_recorded(self):
        occurred_at = datetime(2024, 5, 1, tzinfo=dt_timezone.utc)
        entity = payment_entity(
            "pay_fail",
            status="failed",
            error_code="BAD_REQUEST_ERROR",
            error_description="Payment was declined",
        )

        PaymentReconciler.on_failed(as_payload(entity), occurred_at)

        payment = reload("pay_fail")
        assert payment.status == PaymentStatus.FAILED
        assert payment.failed_at == occurred_at
        assert payment.metadata["failure"] == {
            "error_code": "BAD_REQUEST_ERROR",
            "error_description": "Payment was declined",
            "failed_at": int(occurred_at.timestamp()),
        }
        assert payment.events.get(kind=PaymentEventKind.FAILURE).reference == "BAD_REQUEST_ERROR"

    def test_raw_failure_payload_kept(self):
        entity = payment_entity(
            "pay_fail_raw",
            status="failed",
            bank="HDFC",
            error_code="BAD_REQUEST_ERROR",
            error_description="declined",
        )

        PaymentReconciler.on_failed(as_payload(entity))

        metadata = reload("pay_fail_raw").metadata
        assert metadata["failed_payment"]["bank"] == "HDFC"
        assert metadata["failed_payment"]["error_description"] == "declined"

    def test_repeat_failure_keeps_first_failed_at(self):
        first = datetime(2024, 5, 1, tzinfo=dt_timezone.utc)
        later = datetime(2024, 5, 2, tzinfo=dt_timezone.utc)
        entity = payment_entity("pay_refail", status="failed", error_code="GATEWAY_ERROR")

        PaymentReconciler.on_failed(as_payload(entity), first)
        PaymentReconciler.on_failed(as_payload(entity), later)

        assert reload("pay_refail").failed_at == first

    def test_failure_after_capture_ignored(self):
        PaymentFactory(external_id="pay_captured", status=PaymentStatus.CAPTURED)

        PaymentReconciler.on_failed(as_payload(payment_entity("pay_captured", status="failed")))

        payment = reload("pay_captured")
        assert payment.status == PaymentStatus.CAPTURED
        assert payment.failed_at is None


# =============================================================================
# Refunds
# =============================================================================


@pytest.mark.django_db
class TestApplyRefund:
    """Tests for PaymentReconciler.apply_refund."""

    def test_full_refund(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED, amount=1000)

        changed = PaymentReconciler.apply_refund(
            payment, {"id": "rfnd_full", "amount": 1000, "status": "processed"}
        )
        payment.save()

        assert changed
        payment = Payment.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.amount_refunded == 1000
        assert payment.metadata["refund"]["id"] == "rfnd_full"
        assert payment.metadata["amount_refunded"] == 1000

    def test_partial_then_remaining(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED, amount=1000)

        PaymentReconciler.apply_refund(payment, {"id": "rfnd_a", "amount": 400})
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED

        PaymentReconciler.apply_refund(payment, {"id": "rfnd_b", "amount": 600})
        payment.save()

        assert payment.status == PaymentStatus.REFUNDED
        assert [r["id"] for r in Payment.objects.get(pk=payment.pk).refunds] == [
            "rfnd_a",
            "rfnd_b",
        ]

    def test_same_refund_id_not_counted_twice(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED, amount=1000)
        refund = {"id": "rfnd_once", "amount": 300}

        PaymentReconciler.apply_refund(payment, refund)
        payment.save()
        changed = PaymentReconciler.apply_refund(payment, refund)

        assert not changed
        assert payment.amount_refunded == 300

    def test_speed_and_notes_recorded(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED, amount=1000)

        PaymentReconciler.apply_refund(
            payment,
            {"id": "rfnd_fast", "amount": 100},
            speed="optimum",
            notes={"reason": "duplicate"},
        )

        assert payment.metadata["refund"]["speed"] == "optimum"
        assert payment.metadata["refund"]["notes"] == {"reason": "duplicate"}


# =============================================================================
# Signature
# =============================================================================


@pytest.mark.django_db
class TestApplySignature:
    """Tests for PaymentReconciler.apply_signature."""

    def test_authorizes_created_payment_and_stores_signature(self):
        payment = PaymentFactory(order_id="")

        changed = PaymentReconciler.apply_signature(payment, "order_sig", "sig_1")

        assert changed
        assert payment.status == PaymentStatus.AUTHORIZED
        assert payment.signature == "sig_1"
        assert payment.order_id == "order_sig"

    def test_signature_written_once(self):
        payment = PaymentFactory(status=PaymentStatus.CAPTURED, signature="sig_first")

        changed = PaymentReconciler.apply_signature(payment, payment.order_id, "sig_second")

        assert not changed
        assert payment.signature == "sig_first"
        assert payment.status == PaymentStatus.CAPTURED
