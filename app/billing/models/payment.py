"""
Payment and PaymentEvent models.

Payment mirrors a Razorpay payment. Its status moves only through the
django-fsm transitions below; capture, refund and failure details are kept
both as columns (current truth) and as PaymentEvent rows (append-only
history).

Usage:
    from billing.models import Payment
    from billing.state_machines import PaymentEventKind

    payment = Payment.objects.get(external_id="pay_123")
    payment.capture()
    payment.record_event(PaymentEventKind.CAPTURE, reference="pay_123", amount=5000)
    payment.save()  # Saves the row and flushes queued events
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from billing.models.base import GatewayEntity
from billing.state_machines import PaymentEventKind, PaymentStatus

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class Payment(GatewayEntity):
    """
    Razorpay payment.

    State Flow:
        CREATED -> AUTHORIZED -> CAPTURED -> PARTIALLY_REFUNDED -> REFUNDED

    Failure Flow:
        CREATED/AUTHORIZED -> FAILED -> CAPTURED (late capture)

    Fields:
        order_id/customer_id: Owning order and customer (Razorpay ids)
        amount: Payment amount in minor units
        status: Current FSM state
        signature: Payment confirmation signature, written once
        capture_*: Latest capture sub-record
        amount_refunded: Running total of refunds
        metadata: Latest raw provider payloads, merged by key
        version: Incremented on every update

    Invariant:
        captured_amount + amount_refunded never exceeds what was paid;
        refunds are validated against refundable_amount before the gateway
        is called.
    """

    # ==========================================================================
    # Ownership & Amount
    # ==========================================================================

    order_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Razorpay order id (order_xxx)",
    )

    customer_id = models.CharField(
        max_length=64,
        default="unknown",
        db_index=True,
        help_text="Razorpay customer id, 'unknown' when the webhook has none",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Payment amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    provider = models.CharField(
        max_length=20,
        default="razorpay",
        help_text="Payment gateway",
    )

    method = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Payment method reported by the gateway (card, upi, ...)",
    )

    recurring = models.BooleanField(
        default=False,
        help_text="Charged against a saved recurring token",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.CREATED,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    signature = models.CharField(
        max_length=128,
        blank=True,
        default="",
        help_text="Payment confirmation signature (set once)",
    )

    # ==========================================================================
    # Capture
    # ==========================================================================

    capture_id = models.CharField(max_length=64, blank=True, default="")

    captured_amount = models.PositiveBigIntegerField(null=True, blank=True)

    captured_at = models.DateTimeField(null=True, blank=True)

    capture_method = models.CharField(max_length=32, blank=True, default="")

    capture_fee = models.PositiveBigIntegerField(default=0)

    capture_reference = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        help_text="Acquirer transaction reference",
    )

    # ==========================================================================
    # Refunds & Failure
    # ==========================================================================

    amount_refunded = models.PositiveBigIntegerField(
        default=0,
        help_text="Total refunded so far (minor units)",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the first refund was applied",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment first failed",
    )

    # ==========================================================================
    # Metadata
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Latest raw provider payloads keyed by kind, merged never replaced",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["order_id", "status"], name="billing_pay_order_status_idx"),
            models.Index(fields=["customer_id", "created_at"], name="billing_pay_cust_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount_refunded__lte=models.F("amount")),
                name="billing_payment_refund_within_amount",
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pending_events: list[PaymentEvent] = []

    def __str__(self) -> str:
        amount_display = f"{self.amount / 100:.2f} {self.currency.upper()}"
        return f"Payment({self.external_id}, {self.status}, {amount_display})"

    def save(self, *args, **kwargs):
        """Save the row, then append any queued PaymentEvent rows."""
        super().save(*args, **kwargs)
        if self._pending_events:
            PaymentEvent.objects.bulk_create(
                self._pending_events,
                ignore_conflicts=True,
            )
            self._pending_events = []

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def refundable_amount(self) -> int:
        """Amount still available for refund."""
        paid = self.captured_amount if self.captured_amount is not None else self.amount
        return max(paid - self.amount_refunded, 0)

    @property
    def refunds(self) -> list[dict]:
        """Refund records, oldest first."""
        return [
            {"id": event.reference, "amount": event.amount, **event.payload}
            for event in self.events.filter(kind=PaymentEventKind.REFUND).order_by(
                "occurred_at", "created_at"
            )
        ]

    def merge_metadata(self, **entries) -> None:
        """Merge top-level entries into metadata, keeping the other keys."""
        self.metadata = {**(self.metadata or {}), **entries}

    def record_event(
        self,
        kind: str,
        reference: str = "",
        amount: int | None = None,
        payload: dict | None = None,
        occurred_at=None,
    ) -> None:
        """
        Queue an append-only event row, written on the next save().

        A (payment, kind, reference) triple is stored once; repeats are
        dropped by the unique constraint.
        """
        self._pending_events.append(
            PaymentEvent(
                payment=self,
                kind=kind,
                reference=reference,
                amount=amount,
                payload=payload or {},
                occurred_at=occurred_at or timezone.now(),
            )
        )

    def has_event(self, kind: str, reference: str) -> bool:
        """Check whether an event was already recorded (or queued)."""
        if any(e.kind == kind and e.reference == reference for e in self._pending_events):
            return True
        if self._state.adding:
            return False
        return self.events.filter(kind=kind, reference=reference).exists()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.CREATED,
        target=PaymentStatus.AUTHORIZED,
    )
    def authorize(self):
        """
        Mark the payment as authorized.

        Transition: CREATED -> AUTHORIZED
        """

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.AUTHORIZED, PaymentStatus.FAILED],
        target=PaymentStatus.CAPTURED,
    )
    def capture(self):
        """
        Mark the payment as captured.

        Transition: CREATED/AUTHORIZED/FAILED -> CAPTURED

        Capture columns are filled by the reconciler, which also handles a
        repeated capture on an already captured payment.
        """

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.AUTHORIZED],
        target=PaymentStatus.FAILED,
    )
    def fail(self, failed_at=None):
        """
        Mark the payment as failed.

        Transition: CREATED/AUTHORIZED -> FAILED
        """
        if self.failed_at is None:
            self.failed_at = failed_at or timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.PARTIALLY_REFUNDED,
    )
    def refund_partial(self, amount: int):
        """
        Apply a refund that leaves part of the payment unrefunded.

        Transition: CAPTURED/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED
        """
        self._apply_refund_amount(amount)

    @transition(
        field=status,
        source=[PaymentStatus.CAPTURED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.REFUNDED,
    )
    def refund_full(self, amount: int):
        """
        Apply the refund that brings the total to the full amount.

        Transition: CAPTURED/PARTIALLY_REFUNDED -> REFUNDED
        """
        self._apply_refund_amount(amount)

    def _apply_refund_amount(self, amount: int) -> None:
        self.amount_refunded += amount
        if self.refunded_at is None:
            self.refunded_at = timezone.now()


class PaymentEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Append-only log of typed payment sub-events.

    One row per authorization, capture, refund, failure or signature
    confirmation. Rows are never updated.

    Fields:
        payment: Owning payment
        kind: Event type (PaymentEventKind)
        reference: Provider id of the sub-event (refund id, capture id)
        amount: Amount involved, when applicable
        payload: Raw provider data for the sub-event
        occurred_at: Provider timestamp, falling back to arrival time
    """

    payment = models.ForeignKey(
        Payment,
        on_delete=models.PROTECT,
        related_name="events",
    )

    kind = models.CharField(
        max_length=20,
        choices=PaymentEventKind.choices,
        db_index=True,
    )

    reference = models.CharField(
        max_length=128,
        blank=True,
        default="",
    )

    amount = models.PositiveBigIntegerField(null=True, blank=True)

    payload = models.JSONField(default=dict, blank=True)

    occurred_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["occurred_at", "created_at"]
        verbose_name = "Payment Event"
        verbose_name_plural = "Payment Events"
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "kind", "reference"],
                name="billing_payment_event_unique_reference",
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentEvent({self.kind}, {self.reference})"
