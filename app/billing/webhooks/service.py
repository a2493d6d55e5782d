"""
Inbound webhook delivery pipeline.

Runs the checks of one Razorpay delivery in order:

1. Signature over the raw body (401 when missing or wrong)
2. JSON envelope with an ``event`` category (400 otherwise)
3. Idempotency guard claims X-Razorpay-Event-Id (duplicate acknowledged, no write)
4. Router, with per-handler failure isolation

The id is claimed before routing so two concurrent deliveries of the same
event cannot both reach a reconciler. A claimed id stays recorded even when
its handler fails.

The view only translates the returned status and body into a response.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService

from billing.idempotency import get_idempotency_guard
from billing.signatures import verify_webhook_signature
from billing.webhooks.router import route

if TYPE_CHECKING:
    from typing import Any


class WebhookService(BaseService):
    """
    Verifies, deduplicates and routes Razorpay webhook deliveries.

    Usage:
        status, body = WebhookService.receive(request.body, signature, event_id)
        return JsonResponse(body, status=status)
    """

    @classmethod
    def receive(
        cls,
        raw_body: bytes,
        signature: str | None,
        event_id: str | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Process one webhook delivery.

        Args:
            raw_body: Exact request body bytes
            signature: X-Razorpay-Signature header value
            event_id: X-Razorpay-Event-Id header value, if sent

        Returns:
            (HTTP status, response body)
        """
        logger = cls.get_logger()

        if not verify_webhook_signature(raw_body, signature, settings.RAZORPAY_WEBHOOK_SECRET):
            logger.warning(
                "Webhook signature verification failed",
                extra={"event_id": event_id, "has_signature": bool(signature)},
            )
            return 401, {"error": "Invalid signature"}

        event = cls._parse(raw_body)
        if event is None:
            logger.warning("Webhook body is not a valid event", extra={"event_id": event_id})
            return 400, {"error": "Invalid payload"}

        category = event["event"]
        guard = get_idempotency_guard()

        if not guard.claim(event_id):
            logger.info(
                "Duplicate webhook, returning success",
                extra={"event_id": event_id, "event_type": category},
            )
            return 200, {"received": True, "duplicate": True}

        logger.info(
            f"Received Razorpay webhook: {category}",
            extra={"event_id": event_id, "event_type": category},
        )

        result = route(category, event, event_id=event_id)

        logger.info(
            "Webhook acknowledged",
            extra={
                "event_id": event_id,
                "event_type": category,
                "handled": result.success,
            },
        )
        return 200, {"received": True}

    @staticmethod
    def _parse(raw_body: bytes) -> dict[str, Any] | None:
        try:
            event = json.loads(raw_body)
        except (TypeError, ValueError):
            return None
        if not isinstance(event, dict) or not isinstance(event.get("event"), str):
            return None
        return event
