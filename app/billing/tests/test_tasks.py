"""
Tests for webhook replay Celery tasks.

Tests cover:
- Replay state transitions (failed -> processing -> processed/failed)
- Idempotency (processed events are skipped)
- Replay attempt limit
- Exceptions re-raised for Celery retry
- Periodic sweep of replayable events
- Reset of replays stuck in PROCESSING
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.utils import timezone

from billing.models import Payment, WebhookEvent
from billing.state_machines import PaymentStatus, WebhookEventStatus
from billing.tasks import (
    STUCK_PROCESSING_THRESHOLD_MINUTES,
    replay_failed_webhook_events,
    replay_webhook_event,
    reset_stuck_webhook_events,
)
from billing.tests.factories import WebhookEventFactory


def reload(webhook_event: WebhookEvent) -> WebhookEvent:
    return WebhookEvent.objects.get(pk=webhook_event.pk)


@pytest.fixture
def stuck_event():
    """WebhookEvent left in PROCESSING past the threshold."""
    webhook_event = WebhookEventFactory(status=WebhookEventStatus.PROCESSING, retry_count=1)
    # updated_at is auto_now, so backdate with a queryset update
    WebhookEvent.objects.filter(pk=webhook_event.pk).update(
        updated_at=timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES + 5)
    )
    return webhook_event


# =============================================================================
# replay_webhook_event
# =============================================================================


@pytest.mark.django_db
class TestReplayWebhookEvent:
    """Tests for the replay_webhook_event task."""

    def test_not_found(self):
        missing_id = str(uuid4())

        result = replay_webhook_event.run(missing_id)

        assert result == {"status": "not_found", "webhook_event_id": missing_id}

    def test_already_processed_is_skipped(self):
        webhook_event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch("billing.webhooks.router.dispatch") as mock_dispatch:
            result = replay_webhook_event.run(str(webhook_event.id))

        assert result["status"] == "already_processed"
        mock_dispatch.assert_not_called()

    def test_exhausted_is_skipped(self, settings):
        webhook_event = WebhookEventFactory(retry_count=settings.BILLING_WEBHOOK_MAX_RETRIES)

        result = replay_webhook_event.run(str(webhook_event.id))

        assert result["status"] == "exhausted"
        assert reload(webhook_event).status == WebhookEventStatus.FAILED

    def test_successful_replay_applies_event(self):
        webhook_event = WebhookEventFactory()

        result = replay_webhook_event.run(str(webhook_event.id))

        assert result["status"] == "processed"
        stored = reload(webhook_event)
        assert stored.status == WebhookEventStatus.PROCESSED
        assert stored.retry_count == 1
        assert stored.processed_at is not None
        assert stored.error_message is None
        assert Payment.objects.get(external_id="pay_replay001").status == PaymentStatus.CAPTURED

    def test_handler_failure_marks_failed(self):
        webhook_event = WebhookEventFactory(
            payload={"entity": "event", "event": "payment.captured", "payload": {}},
        )

        result = replay_webhook_event.run(str(webhook_event.id))

        assert result["status"] == "handler_failed"
        stored = reload(webhook_event)
        assert stored.status == WebhookEventStatus.FAILED
        assert stored.retry_count == 1
        assert stored.error_message == result["error"]

    def test_exception_marks_failed_and_reraises(self):
        webhook_event = WebhookEventFactory()

        with patch(
            "billing.webhooks.router.dispatch",
            side_effect=RuntimeError("db gone"),
        ), pytest.raises(RuntimeError):
            replay_webhook_event.run(str(webhook_event.id))

        stored = reload(webhook_event)
        assert stored.status == WebhookEventStatus.FAILED
        assert stored.error_message == "RuntimeError: db gone"
        assert stored.retry_count == 1

    def test_replay_is_idempotent_for_the_payment(self):
        webhook_event = WebhookEventFactory()

        replay_webhook_event.run(str(webhook_event.id))
        WebhookEvent.objects.filter(pk=webhook_event.pk).update(status=WebhookEventStatus.FAILED)
        replay_webhook_event.run(str(webhook_event.id))

        assert Payment.objects.filter(external_id="pay_replay001").count() == 1


# =============================================================================
# replay_failed_webhook_events
# =============================================================================


@pytest.mark.django_db
class TestReplayFailedWebhookEvents:
    """Tests for the replay_failed_webhook_events periodic task."""

    def test_queues_retryable_events(self):
        webhook_event = WebhookEventFactory()

        with patch("billing.tasks.replay_webhook_event.delay") as mock_delay:
            result = replay_failed_webhook_events()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(webhook_event.id))

    def test_skips_exhausted_and_finished_events(self, settings):
        WebhookEventFactory(retry_count=settings.BILLING_WEBHOOK_MAX_RETRIES)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        with patch("billing.tasks.replay_webhook_event.delay") as mock_delay:
            result = replay_failed_webhook_events()

        assert result == {"queued_count": 0}
        mock_delay.assert_not_called()


# =============================================================================
# reset_stuck_webhook_events
# =============================================================================


@pytest.mark.django_db
class TestResetStuckWebhookEvents:
    """Tests for the reset_stuck_webhook_events periodic task."""

    def test_resets_stuck_events_to_failed(self, stuck_event):
        result = reset_stuck_webhook_events()

        assert result == {"reset_count": 1}
        stored = reload(stuck_event)
        assert stored.status == WebhookEventStatus.FAILED
        assert "timed out" in stored.error_message
        assert stored.can_retry

    def test_ignores_recent_processing_events(self):
        webhook_event = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)

        result = reset_stuck_webhook_events()

        assert result == {"reset_count": 0}
        assert reload(webhook_event).status == WebhookEventStatus.PROCESSING
