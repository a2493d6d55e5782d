"""
Webhook event router.

Maps a Razorpay event category to exactly one registered handler. Handlers
are registered with ``@register_handler`` in billing.webhooks.handlers,
which the app config imports on startup.

Every routed call is isolated: a handler that raises is logged with its
traceback and reported as a failed ServiceResult instead of propagating,
so one bad event never turns a delivery into a 500 and triggers a gateway
retry storm. With BILLING_WEBHOOK_DEAD_LETTER_ENABLED the failed delivery
is also stored as a WebhookEvent for replay.

Usage:
    from billing.webhooks.router import register_handler, route

    @register_handler("payment.captured")
    def handle_payment_captured(event: dict) -> ServiceResult:
        ...

    result = route("payment.captured", event, event_id="evt_123")
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from django.conf import settings

from core.services import ServiceResult

from billing.models import WebhookEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event categories to handler functions taking the whole envelope
WEBHOOK_HANDLERS: dict[str, Callable[[dict[str, Any]], ServiceResult]] = {}


def register_handler(*categories: str) -> Callable:
    """
    Decorator to register a webhook handler for one or more categories.

    Usage:
        @register_handler("token.confirmed", "token.rejected")
        def handle_token_status(event: dict) -> ServiceResult:
            ...

    Args:
        categories: Razorpay event categories (e.g., "payment.captured")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[dict[str, Any]], ServiceResult]) -> Callable:
        for category in categories:
            WEBHOOK_HANDLERS[category] = func
            logger.debug(f"Registered webhook handler for {category}")
        return func

    return decorator


# =============================================================================
# Dispatch
# =============================================================================


def dispatch(category: str, event: dict[str, Any]) -> ServiceResult:
    """
    Call the handler registered for a category.

    Unknown categories are acknowledged as handled. Handler exceptions
    propagate; use ``route`` for isolated dispatch.

    Args:
        category: Event category
        event: Full webhook envelope

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(category)

    if not handler:
        logger.info(
            f"No handler registered for event type: {category}",
            extra={"event_type": category},
        )
        return ServiceResult.success(None)

    return handler(event)


def route(
    category: str,
    event: dict[str, Any],
    event_id: str | None = None,
) -> ServiceResult:
    """
    Dispatch an event with failure isolation.

    Args:
        category: Event category
        event: Full webhook envelope
        event_id: X-Razorpay-Event-Id, for logs and the dead-letter row

    Returns:
        The handler's ServiceResult, or a failed result if it raised
    """
    log_extra = {"event_id": event_id, "event_type": category}
    logger.info(f"Routing {category}", extra=log_extra)

    try:
        result = dispatch(category, event)
    except Exception as e:
        logger.exception(
            f"Webhook handler for {category} raised",
            extra={**log_extra, "error": str(e)},
        )
        result = ServiceResult.from_exception(e, error_code="HANDLER_EXCEPTION")
        dead_letter(category, event, event_id, f"{type(e).__name__}: {e}")
        return result

    if not result.success:
        logger.warning(
            f"Webhook handler for {category} failed: {result.error}",
            extra={**log_extra, "error_code": result.error_code},
        )

    return result


def dead_letter(
    category: str,
    event: dict[str, Any],
    event_id: str | None,
    error_message: str,
) -> WebhookEvent | None:
    """
    Store a failed delivery for replay, when dead-lettering is enabled.

    Returns:
        The stored WebhookEvent, or None when disabled or the write failed
    """
    if not settings.BILLING_WEBHOOK_DEAD_LETTER_ENABLED:
        return None

    try:
        webhook_event = WebhookEvent.objects.create(
            event_id=event_id or "",
            event_type=category,
            payload=event,
            error_message=error_message,
        )
    except Exception:
        logger.exception(
            "Failed to store webhook in dead-letter log",
            extra={"event_id": event_id, "event_type": category},
        )
        return None

    logger.info(
        "Webhook stored for replay",
        extra={
            "event_id": event_id,
            "event_type": category,
            "webhook_event_id": str(webhook_event.id),
        },
    )
    return webhook_event
