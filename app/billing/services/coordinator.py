"""
Gateway action coordinator.

Synchronous actions that must ask Razorpay first and then record the
result locally: capture, refund, signature verification, invoice cancel
and invoice notify.

Every action follows the same shape:

1. Validate input and look up the entity (no lock held)
2. Reject on state before touching the gateway
3. Call the gateway; no lock and no transaction is open during the RPC
4. Merge the gateway's response through the reconciler, on the row locked
   by EntityStore

A gateway error or timeout is raised before step 4, so local state is
only written after the gateway has accepted the action.

Usage:
    from billing.services import GatewayActionCoordinator

    payment = GatewayActionCoordinator.capture_payment("pay_123")
    payment = GatewayActionCoordinator.refund_payment("pay_123", amount=400)
    invoice = GatewayActionCoordinator.cancel_invoice("inv_123")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService

from billing.adapters import RazorpayAdapter
from billing.exceptions import (
    AlreadyProcessedError,
    BillingNotFoundError,
    BillingValidationError,
    InvalidMediumError,
    InvalidSignatureError,
    InvalidStateError,
    InvalidStateTransitionError,
)
from billing.models import Payment, RegistrationInvoice
from billing.reconcilers import InvoiceReconciler, PaymentReconciler
from billing.signatures import verify_payment_signature
from billing.state_machines import (
    PAYMENT_STATUS_RANK,
    InvoiceStatus,
    NotificationMedium,
    PaymentEventKind,
    PaymentStatus,
)
from billing.store import EntityStore

if TYPE_CHECKING:
    from typing import Any


REFUND_SPEEDS = ("normal", "optimum")
REFUNDABLE_STATUSES = (PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED)


class GatewayActionCoordinator(BaseService):
    """
    Runs gateway RPCs and merges their responses into local state.

    All methods are classmethods and raise billing exceptions; views map
    them to HTTP statuses.
    """

    # Gateway adapter - can be injected for testing
    _gateway_adapter: type | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        """Get the gateway adapter class."""
        return cls._gateway_adapter or RazorpayAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        """Set the gateway adapter class (for testing)."""
        cls._gateway_adapter = adapter

    # =========================================================================
    # Payments
    # =========================================================================

    @classmethod
    def capture_payment(
        cls,
        payment_id: str,
        amount: int | None = None,
        currency: str | None = None,
    ) -> Payment:
        """
        Capture an authorized payment.

        Args:
            payment_id: Razorpay payment id
            amount: Amount to capture (defaults to the stored amount)
            currency: Currency (defaults to the stored currency)

        Returns:
            The captured Payment

        Raises:
            BillingNotFoundError: Unknown payment
            AlreadyProcessedError: Payment already captured or refunded
            GatewayError: Razorpay rejected or could not be reached
        """
        logger = cls.get_logger()
        payment = cls._get_payment(payment_id)

        if PAYMENT_STATUS_RANK[payment.status] >= PAYMENT_STATUS_RANK[PaymentStatus.CAPTURED]:
            raise AlreadyProcessedError(
                f"Payment {payment_id} is already {payment.status}",
                details={"payment_id": payment_id, "status": payment.status},
            )

        amount = amount or payment.amount
        currency = currency or payment.currency

        logger.info(
            "Capturing payment",
            extra={"payment_id": payment_id, "amount": amount, "status": payment.status},
        )

        response = cls.get_gateway_adapter().capture_payment(payment_id, amount, currency)
        entity = {"id": payment_id, "amount": amount, **response}

        payment = EntityStore.update(
            Payment,
            payment_id,
            lambda instance: PaymentReconciler.apply_captured(
                instance, entity, default_method="manual"
            ),
        )

        logger.info(
            "Payment captured",
            extra={"payment_id": payment_id, "captured_amount": payment.captured_amount},
        )
        return payment

    @classmethod
    def refund_payment(
        cls,
        payment_id: str,
        amount: int | None = None,
        speed: str = "normal",
        notes: dict[str, Any] | None = None,
    ) -> Payment:
        """
        Refund a captured payment, fully or partially.

        Args:
            payment_id: Razorpay payment id
            amount: Amount to refund (defaults to the remaining refundable amount)
            speed: "normal" or "optimum"
            notes: Notes sent with the refund

        Returns:
            The refunded Payment

        Raises:
            BillingNotFoundError: Unknown payment
            InvalidStateError: Payment is not captured
            BillingValidationError: Bad speed or amount above refundable
            GatewayError: Razorpay rejected or could not be reached
        """
        logger = cls.get_logger()
        payment = cls._get_payment(payment_id)

        if payment.status not in REFUNDABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot refund payment in {payment.status} state",
                details={"payment_id": payment_id, "status": payment.status},
            )

        if speed not in REFUND_SPEEDS:
            raise BillingValidationError(
                f"Refund speed must be one of {', '.join(REFUND_SPEEDS)}",
                details={"speed": speed},
            )

        refundable = payment.refundable_amount
        if amount is None:
            amount = refundable
        if amount <= 0 or amount > refundable:
            raise BillingValidationError(
                f"Refund amount must be between 1 and {refundable}",
                details={"amount": amount, "refundable_amount": refundable},
            )

        logger.info(
            "Refunding payment",
            extra={"payment_id": payment_id, "amount": amount, "speed": speed},
        )

        response = cls.get_gateway_adapter().refund_payment(
            payment_id, amount=amount, speed=speed, notes=notes
        )
        refund = {**response, "amount": response.get("amount") or amount}

        def merge(instance: Payment) -> bool:
            refund_id = refund.get("id") or ""
            if refund_id and instance.has_event(PaymentEventKind.REFUND, refund_id):
                return False
            # Re-check under the lock: a concurrent refund may have landed
            if (
                instance.status not in REFUNDABLE_STATUSES
                or refund["amount"] > instance.refundable_amount
            ):
                logger.error(
                    "Gateway refund cannot be applied to current state",
                    extra={
                        "payment_id": payment_id,
                        "refund_id": refund_id,
                        "status": instance.status,
                    },
                )
                raise InvalidStateTransitionError(
                    f"Refund {refund_id} exceeds what payment {payment_id} can absorb",
                    details={"payment_id": payment_id, "refund_id": refund_id},
                )
            return PaymentReconciler.apply_refund(instance, refund, speed=speed, notes=notes)

        payment = EntityStore.update(Payment, payment_id, merge)

        logger.info(
            "Payment refunded",
            extra={
                "payment_id": payment_id,
                "refund_id": refund.get("id"),
                "amount_refunded": payment.amount_refunded,
                "status": payment.status,
            },
        )
        return payment

    @classmethod
    def verify_payment_signature(
        cls,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> Payment:
        """
        Verify a checkout confirmation and mark the payment authorized.

        Raises:
            InvalidSignatureError: Signature does not match order_id|payment_id
            BillingNotFoundError: Unknown payment
        """
        logger = cls.get_logger()

        if not verify_payment_signature(
            order_id, payment_id, signature, settings.RAZORPAY_KEY_SECRET
        ):
            logger.warning(
                "Payment signature verification failed",
                extra={"order_id": order_id, "payment_id": payment_id},
            )
            raise InvalidSignatureError(
                "Invalid payment signature",
                details={"order_id": order_id, "payment_id": payment_id},
            )

        payment = EntityStore.update(
            Payment,
            payment_id,
            lambda instance: PaymentReconciler.apply_signature(instance, order_id, signature),
        )
        if payment is None:
            raise BillingNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": payment_id},
            )

        logger.info(
            "Payment signature verified",
            extra={"payment_id": payment_id, "status": payment.status},
        )
        return payment

    # =========================================================================
    # Invoices
    # =========================================================================

    @classmethod
    def cancel_invoice(cls, invoice_id: str) -> RegistrationInvoice:
        """
        Cancel an issued invoice.

        Raises:
            BillingNotFoundError: Unknown invoice
            AlreadyProcessedError: Invoice already cancelled
            InvalidStateError: Invoice already paid or expired
            GatewayError: Razorpay rejected or could not be reached
        """
        logger = cls.get_logger()
        invoice = cls._get_invoice(invoice_id)

        if invoice.status == InvoiceStatus.CANCELLED:
            raise AlreadyProcessedError(
                f"Invoice {invoice_id} is already cancelled",
                details={"invoice_id": invoice_id},
            )
        if invoice.is_terminal:
            raise InvalidStateError(
                f"Cannot cancel invoice in {invoice.status} state",
                details={"invoice_id": invoice_id, "status": invoice.status},
            )

        cls.get_gateway_adapter().cancel_invoice(invoice_id)

        def merge(instance: RegistrationInvoice) -> bool:
            if instance.status == InvoiceStatus.CANCELLED:
                return False
            if instance.is_terminal:
                raise InvalidStateTransitionError(
                    f"Invoice {invoice_id} became {instance.status} during cancellation",
                    details={"invoice_id": invoice_id, "status": instance.status},
                )
            return InvoiceReconciler.apply_cancelled(instance)

        invoice = EntityStore.update(RegistrationInvoice, invoice_id, merge)

        logger.info("Invoice cancelled", extra={"invoice_id": invoice_id})
        return invoice

    @classmethod
    def notify_invoice(cls, invoice_id: str, medium: str) -> RegistrationInvoice:
        """
        Resend an invoice notification by SMS or email.

        Raises:
            InvalidMediumError: Medium is not "sms" or "email"
            BillingNotFoundError: Unknown invoice
            GatewayError: Razorpay rejected or could not be reached
        """
        if medium not in NotificationMedium.values:
            raise InvalidMediumError(
                "Medium must be 'sms' or 'email'",
                details={"medium": medium},
            )

        cls._get_invoice(invoice_id)

        cls.get_gateway_adapter().notify_invoice(invoice_id, medium)

        invoice = EntityStore.update(
            RegistrationInvoice,
            invoice_id,
            lambda instance: InvoiceReconciler.apply_notified(instance, medium),
        )

        cls.get_logger().info(
            "Invoice notification sent",
            extra={"invoice_id": invoice_id, "medium": medium},
        )
        return invoice

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def _get_payment(cls, payment_id: str) -> Payment:
        payment = EntityStore.get(Payment, payment_id)
        if payment is None:
            raise BillingNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": payment_id},
            )
        return payment

    @classmethod
    def _get_invoice(cls, invoice_id: str) -> RegistrationInvoice:
        invoice = EntityStore.get(RegistrationInvoice, invoice_id)
        if invoice is None:
            raise BillingNotFoundError(
                f"Invoice {invoice_id} not found",
                details={"invoice_id": invoice_id},
            )
        return invoice
