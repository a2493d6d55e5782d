"""
Webhook handlers for Razorpay events.

Each handler unpacks the envelope and hands the payload to its reconciler.
Imported by BillingConfig.ready() so the registry is populated before the
first request.
"""

from __future__ import annotations

from typing import Any

from core.services import ServiceResult

from billing.reconcilers import (
    InvoiceReconciler,
    NotificationReconciler,
    OrderReconciler,
    PaymentReconciler,
    TokenReconciler,
)
from billing.reconcilers.utils import event_time
from billing.webhooks.router import register_handler


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("payment.authorized")
def handle_payment_authorized(event: dict[str, Any]) -> ServiceResult:
    return PaymentReconciler.on_authorized(event.get("payload"), event_time(event))


@register_handler("payment.captured")
def handle_payment_captured(event: dict[str, Any]) -> ServiceResult:
    return PaymentReconciler.on_captured(event.get("payload"), event_time(event))


@register_handler("payment.failed")
def handle_payment_failed(event: dict[str, Any]) -> ServiceResult:
    return PaymentReconciler.on_failed(event.get("payload"), event_time(event))


# =============================================================================
# Order Handlers
# =============================================================================


@register_handler("order.paid")
def handle_order_paid(event: dict[str, Any]) -> ServiceResult:
    return OrderReconciler.on_paid(event.get("payload"), event_time(event))


@register_handler("order.notification.delivered", "order.notification.failed")
def handle_order_notification(event: dict[str, Any]) -> ServiceResult:
    return NotificationReconciler.on_notification(
        event.get("payload"), event["event"], event_time(event)
    )


# =============================================================================
# Token Handlers
# =============================================================================


@register_handler("token.confirmed", "token.rejected", "token.cancelled", "token.paused")
def handle_token_status(event: dict[str, Any]) -> ServiceResult:
    return TokenReconciler.on_token_status(
        event.get("payload"), event["event"], event_time(event)
    )


# =============================================================================
# Invoice Handlers
# =============================================================================


@register_handler("invoice.paid")
def handle_invoice_paid(event: dict[str, Any]) -> ServiceResult:
    return InvoiceReconciler.on_paid(event.get("payload"), event_time(event))


@register_handler("invoice.expired")
def handle_invoice_expired(event: dict[str, Any]) -> ServiceResult:
    return InvoiceReconciler.on_expired(event.get("payload"), event_time(event))
