"""
Celery tasks for billing.

This module provides async tasks for:
- Replaying dead-lettered webhook events
- Periodic sweep of replayable events
- Periodic reset of replays stuck in PROCESSING

Dead-lettered rows only exist when BILLING_WEBHOOK_DEAD_LETTER_ENABLED is on.

Usage:
    from billing.tasks import replay_webhook_event

    # Replay one stored event
    replay_webhook_event.delay(str(webhook_event.id))

    # Sweep all replayable events (typically via celery-beat)
    from billing.tasks import replay_failed_webhook_events
    replay_failed_webhook_events.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from billing.models import WebhookEvent
from billing.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REPLAY_BATCH_SIZE = 100
STUCK_PROCESSING_THRESHOLD_MINUTES = 30


# =============================================================================
# Dead-Letter Replay Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": settings.BILLING_WEBHOOK_MAX_RETRIES},
    acks_late=True,
)
def replay_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Re-dispatch a dead-lettered webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips it if already processed or out of attempts
    3. Marks as processing (increments retry_count)
    4. Dispatches to the registered handler without isolation
    5. Marks as processed or failed

    Args:
        webhook_event_id: UUID of the WebhookEvent to replay

    Returns:
        Dict with replay result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    from billing.webhooks.router import dispatch

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.status == WebhookEventStatus.PROCESSED:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.retry_count >= settings.BILLING_WEBHOOK_MAX_RETRIES:
        logger.warning(
            "WebhookEvent out of replay attempts",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "retry_count": webhook_event.retry_count,
            },
        )
        return {"status": "exhausted", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Replaying webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_id": webhook_event.event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        result = dispatch(webhook_event.event_type, webhook_event.payload)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook replay failed with exception",
            extra={"webhook_event_id": str(webhook_event_id), "error": error_msg},
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook replay handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook replayed successfully",
        extra={"webhook_event_id": str(webhook_event_id)},
    )
    return {"status": "processed", "webhook_event_id": str(webhook_event_id)}


@shared_task
def replay_failed_webhook_events() -> dict:
    """
    Periodic task to replay failed webhook events.

    Finds failed events that haven't exceeded BILLING_WEBHOOK_MAX_RETRIES
    and queues them for replay. Schedule via celery-beat, e.g. every 5 minutes.

    Returns:
        Dict with count of events queued
    """
    failed_events = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.BILLING_WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:REPLAY_BATCH_SIZE]

    queued_count = 0
    for webhook_event in failed_events:
        replay_webhook_event.delay(str(webhook_event.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for replay",
            extra={
                "webhook_event_id": str(webhook_event.id),
                "event_type": webhook_event.event_type,
                "retry_count": webhook_event.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} failed webhooks for replay",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


@shared_task
def reset_stuck_webhook_events() -> dict:
    """
    Periodic task to reset replays stuck in PROCESSING.

    A worker that crashed mid-replay leaves the row in PROCESSING; after
    STUCK_PROCESSING_THRESHOLD_MINUTES it is set back to FAILED so the sweep
    picks it up again.

    Returns:
        Dict with count of events reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_events = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook_event in stuck_events:
        webhook_event.mark_failed("Replay timed out - reset for retry")
        webhook_event.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook replay",
            extra={"webhook_event_id": str(webhook_event.id)},
        )

    return {"reset_count": reset_count}
