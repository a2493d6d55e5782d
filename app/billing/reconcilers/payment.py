"""
Payment reconciler.

Merges payment.* webhooks and the results of synchronous gateway actions
into the Payment row. Every ``apply_*`` method works on an instance that
EntityStore has already locked, changes it in memory and returns True
when it must be saved. Webhook entry points and the
GatewayActionCoordinator share these methods, so a capture looks the same
whether Razorpay pushed it or we asked for it.

Transition Rules:
    authorized: only from CREATED; refreshes metadata on AUTHORIZED;
        ignored once captured, refunded or failed
    captured:   from CREATED/AUTHORIZED/FAILED, re-merged on CAPTURED;
        ignored once any refund has been applied
    failed:     from CREATED/AUTHORIZED, re-merged on FAILED;
        ignored once captured or refunded
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService, ServiceResult

from billing.models import Payment
from billing.reconcilers.utils import extract_entity, from_timestamp, to_timestamp
from billing.state_machines import PaymentEventKind, PaymentStatus
from billing.store import EntityStore

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any, Callable


REFUNDED_STATUSES = (PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED)


class PaymentReconciler(BaseService):
    """
    State merge for Payment.

    Usage:
        result = PaymentReconciler.on_captured(event["payload"], occurred_at)
        if not result:
            logger.warning(result.error)
    """

    # =========================================================================
    # Webhook Entry Points
    # =========================================================================

    @classmethod
    def on_authorized(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[Payment]:
        """Handle payment.authorized, creating the payment if unknown."""
        return cls._reconcile("payment.authorized", payload, cls.apply_authorized, occurred_at)

    @classmethod
    def on_captured(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[Payment]:
        """Handle payment.captured, creating the payment if unknown."""
        return cls._reconcile("payment.captured", payload, cls.apply_captured, occurred_at)

    @classmethod
    def on_failed(
        cls, payload: dict, occurred_at: datetime | None = None
    ) -> ServiceResult[Payment]:
        """Handle payment.failed, creating the payment if unknown."""
        return cls._reconcile("payment.failed", payload, cls.apply_failed, occurred_at)

    @classmethod
    def _reconcile(
        cls,
        category: str,
        payload: dict,
        apply: Callable[[Payment, dict, datetime | None], bool],
        occurred_at: datetime | None,
    ) -> ServiceResult[Payment]:
        logger = cls.get_logger()
        entity = extract_entity(payload, "payment")
        payment_id = (entity or {}).get("id")

        if not payment_id:
            logger.error(f"{category}: Could not extract payment id")
            return ServiceResult.failure(
                "Could not extract payment id from webhook",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        logger.info(
            f"Processing {category}",
            extra={"payment_id": payment_id, "status": entity.get("status")},
        )

        payment = EntityStore.upsert(
            Payment,
            payment_id,
            defaults=cls.defaults_from_entity(entity),
            mutate=lambda instance: apply(instance, entity, occurred_at),
        )
        return ServiceResult.success(payment)

    @staticmethod
    def defaults_from_entity(entity: dict[str, Any]) -> dict[str, Any]:
        """Field values for a payment first seen through a webhook."""
        return {
            "order_id": entity.get("order_id") or "",
            "customer_id": entity.get("customer_id") or "unknown",
            "amount": int(entity.get("amount") or 0),
            "currency": entity.get("currency") or settings.BILLING_DEFAULT_CURRENCY,
            "method": entity.get("method") or "",
            "recurring": bool(entity.get("recurring")),
        }

    # =========================================================================
    # Merge Logic
    # =========================================================================

    @classmethod
    def apply_authorized(
        cls, payment: Payment, entity: dict, occurred_at: datetime | None = None
    ) -> bool:
        """
        Merge an authorization into the payment.

        A stale authorization arriving after capture, refund or failure
        never moves the status backwards.
        """
        if payment.status == PaymentStatus.CREATED:
            payment.authorize()
        elif payment.status != PaymentStatus.AUTHORIZED:
            cls.get_logger().info(
                "Ignoring payment.authorized for payment past authorization",
                extra={"payment_id": payment.external_id, "status": payment.status},
            )
            return False

        cls._merge_identity(payment, entity)
        payment.merge_metadata(authorization=entity)
        payment.record_event(
            PaymentEventKind.AUTHORIZATION,
            reference=payment.external_id,
            amount=entity.get("amount"),
            payload=entity,
            occurred_at=from_timestamp(entity.get("created_at")) or occurred_at,
        )
        return True

    @classmethod
    def apply_captured(
        cls,
        payment: Payment,
        entity: dict,
        occurred_at: datetime | None = None,
        default_method: str = "automatic",
    ) -> bool:
        """
        Merge a capture into the payment.

        Capture columns always take the latest capture's values. Once a
        refund has been applied the capture is history and is ignored.
        ``default_method`` is stored when the entity carries no method:
        "automatic" for gateway-side captures, "manual" for API captures.
        """
        if payment.status in REFUNDED_STATUSES:
            cls.get_logger().info(
                "Ignoring capture for refunded payment",
                extra={"payment_id": payment.external_id, "status": payment.status},
            )
            return False

        if payment.status != PaymentStatus.CAPTURED:
            payment.capture()

        captured_at = (
            from_timestamp(entity.get("captured_at"))
            or from_timestamp(entity.get("created_at"))
            or occurred_at
            or timezone.now()
        )
        acquirer_data = entity.get("acquirer_data") or {}

        cls._merge_identity(payment, entity)
        payment.capture_id = entity.get("id") or payment.external_id
        payment.captured_amount = int(entity.get("amount") or payment.amount)
        payment.captured_at = captured_at
        payment.capture_method = entity.get("method") or default_method
        payment.capture_fee = int(entity.get("fee") or 0)
        payment.capture_reference = acquirer_data.get("transaction_id")
        payment.merge_metadata(capture=entity)
        payment.record_event(
            PaymentEventKind.CAPTURE,
            reference=payment.capture_id,
            amount=payment.captured_amount,
            payload=entity,
            occurred_at=captured_at,
        )
        return True

    @classmethod
    def apply_failed(
        cls, payment: Payment, entity: dict, occurred_at: datetime | None = None
    ) -> bool:
        """Merge a failure into the payment, keeping the first failed_at."""
        if payment.status in (PaymentStatus.CREATED, PaymentStatus.AUTHORIZED):
            payment.fail(failed_at=occurred_at)
        elif payment.status != PaymentStatus.FAILED:
            cls.get_logger().info(
                "Ignoring payment.failed for settled payment",
                extra={"payment_id": payment.external_id, "status": payment.status},
            )
            return False

        error_code = entity.get("error_code")
        failure = {
            "error_code": error_code,
            "error_description": entity.get("error_description"),
            "failed_at": to_timestamp(payment.failed_at),
        }

        cls._merge_identity(payment, entity)
        payment.merge_metadata(failure=failure, failed_payment=entity)
        payment.record_event(
            PaymentEventKind.FAILURE,
            reference=error_code or "failure",
            payload=failure,
            occurred_at=payment.failed_at,
        )
        return True

    @classmethod
    def apply_refund(
        cls,
        payment: Payment,
        refund: dict,
        speed: str = "normal",
        notes: dict | None = None,
    ) -> bool:
        """
        Merge a refund returned by the gateway into the payment.

        A refund that brings the total to the captured amount moves the
        payment to REFUNDED, anything less to PARTIALLY_REFUNDED. A refund
        id already in the event log is not counted again.
        """
        refund_id = refund.get("id") or ""
        amount = int(refund.get("amount") or 0)

        if refund_id and payment.has_event(PaymentEventKind.REFUND, refund_id):
            cls.get_logger().info(
                "Refund already applied",
                extra={"payment_id": payment.external_id, "refund_id": refund_id},
            )
            return False

        paid = payment.captured_amount if payment.captured_amount is not None else payment.amount
        if payment.amount_refunded + amount >= paid:
            payment.refund_full(amount)
        else:
            payment.refund_partial(amount)

        record = {
            "speed": refund.get("speed_requested") or speed,
            "status": refund.get("status"),
            "created_at": refund.get("created_at"),
            "notes": notes or refund.get("notes") or {},
        }
        payment.merge_metadata(
            refund={"id": refund_id, "amount": amount, **record},
            amount_refunded=payment.amount_refunded,
        )
        payment.record_event(
            PaymentEventKind.REFUND,
            reference=refund_id,
            amount=amount,
            payload=record,
            occurred_at=from_timestamp(refund.get("created_at")),
        )
        return True

    @classmethod
    def apply_signature(cls, payment: Payment, order_id: str, signature: str) -> bool:
        """
        Merge a verified checkout confirmation into the payment.

        Moves CREATED to AUTHORIZED and stores the signature if none is
        stored yet.
        """
        changed = False

        if payment.status == PaymentStatus.CREATED:
            payment.authorize()
            changed = True

        if not payment.signature:
            payment.signature = signature
            if not payment.order_id:
                payment.order_id = order_id
            payment.record_event(
                PaymentEventKind.SIGNATURE,
                reference=order_id,
                payload={"order_id": order_id},
            )
            changed = True

        return changed

    @staticmethod
    def _merge_identity(payment: Payment, entity: dict) -> None:
        """Fill ownership fields the payment was created without."""
        if not payment.order_id and entity.get("order_id"):
            payment.order_id = entity["order_id"]
        if payment.customer_id == "unknown" and entity.get("customer_id"):
            payment.customer_id = entity["customer_id"]
        if not payment.method and entity.get("method"):
            payment.method = entity["method"]
