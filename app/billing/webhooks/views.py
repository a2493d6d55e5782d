"""
Webhook endpoint view for Razorpay.

Usage:
    # In urls.py
    from billing.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.webhooks.service import WebhookService

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def razorpay_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive Razorpay webhook events.

    Security:
    - HMAC-SHA256 signature of the raw body (X-Razorpay-Signature)
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - X-Razorpay-Event-Id is checked against the idempotency guard
    - Duplicates return 200 with ``duplicate: true`` without reprocessing

    Returns:
        JsonResponse with status:
        - 200: Event accepted (new, duplicate, or handler failure)
        - 400: Body is not a Razorpay event
        - 401: Missing or invalid signature
        - 500: Unexpected failure outside the handlers
    """
    signature = request.headers.get("X-Razorpay-Signature")
    event_id = request.headers.get("X-Razorpay-Event-Id") or None

    try:
        status, body = WebhookService.receive(request.body, signature, event_id)
    except Exception as e:
        logger.error(
            f"Unexpected error receiving webhook: {type(e).__name__}",
            extra={"event_id": event_id},
            exc_info=True,
        )
        return JsonResponse({"error": "Internal error"}, status=500)

    return JsonResponse(body, status=status)
