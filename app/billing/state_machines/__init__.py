"""
State machine enums for billing models.

This module defines the state enums used by billing models with django-fsm.
"""

from billing.state_machines.states import (
    PAYMENT_STATUS_RANK,
    InvoiceStatus,
    NotificationMedium,
    NotificationStatus,
    OrderStatus,
    PaymentEventKind,
    PaymentStatus,
    TokenStatus,
    WebhookEventStatus,
)

__all__ = [
    "PAYMENT_STATUS_RANK",
    "InvoiceStatus",
    "NotificationMedium",
    "NotificationStatus",
    "OrderStatus",
    "PaymentEventKind",
    "PaymentStatus",
    "TokenStatus",
    "WebhookEventStatus",
]
