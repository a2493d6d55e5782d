"""
Webhook bookkeeping models.

ProcessedEvent backs the durable idempotency guard: one row per Razorpay
event id that was fully handled, trimmed to a bounded size.

WebhookEvent is the dead-letter log. When BILLING_WEBHOOK_DEAD_LETTER_ENABLED
is on, a delivery whose handler failed is stored here so it can be replayed
by the Celery tasks in billing.tasks.

Usage:
    from billing.models import WebhookEvent

    event = WebhookEvent.objects.create(
        event_id="evt_123",
        event_type="payment.captured",
        payload=body,
    )
    event.mark_failed("KeyError: 'payment'")
    event.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from billing.state_machines import WebhookEventStatus


class ProcessedEvent(models.Model):
    """
    Razorpay event id that has been handled.

    Fields:
        event_id: X-Razorpay-Event-Id header value
        received_at: When the delivery was recorded (eviction order)
    """

    event_id = models.CharField(max_length=128, unique=True)

    received_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["received_at"]
        verbose_name = "Processed Event"
        verbose_name_plural = "Processed Events"

    def __str__(self) -> str:
        return f"ProcessedEvent({self.event_id})"


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Dead-lettered webhook delivery awaiting replay.

    Processing Flow:
        1. Router handler fails, event stored as FAILED
        2. replay_failed_webhook_events picks up retryable rows
        3. replay_webhook_event marks PROCESSING and re-routes
        4. Row ends PROCESSED, or FAILED with retry_count incremented

    Fields:
        event_id: Razorpay event id (may be empty when the header was absent)
        event_type: Event category (payment.captured, ...)
        payload: Full webhook body
        status: Replay status
        processed_at: When a replay succeeded
        error_message: Last handler error
        retry_count: Number of replay attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    event_id = models.CharField(
        max_length=128,
        blank=True,
        default="",
        db_index=True,
        help_text="Razorpay event id (X-Razorpay-Event-Id)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Razorpay event category (e.g., 'payment.captured')",
    )

    payload = models.JSONField(
        help_text="Full webhook body (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.FAILED,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(null=True, blank=True)

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of replay attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "retry_count"], name="billing_whe_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_id or self.pk}, {self.event_type})"

    @property
    def can_retry(self) -> bool:
        """Failed and below BILLING_WEBHOOK_MAX_RETRIES replays."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < settings.BILLING_WEBHOOK_MAX_RETRIES
        )

    def mark_processing(self) -> None:
        """
        Mark event as being replayed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully replayed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
