"""
Reconcilers: per-entity state merge for webhooks and gateway actions.

Each reconciler exposes ``on_*`` webhook entry points returning a
ServiceResult and ``apply_*`` merge methods that run on a locked instance
inside EntityStore.

Usage:
    from billing.reconcilers import PaymentReconciler

    result = PaymentReconciler.on_captured(event["payload"])
"""

from billing.reconcilers.invoice import InvoiceReconciler
from billing.reconcilers.notification import NotificationReconciler
from billing.reconcilers.order import OrderReconciler
from billing.reconcilers.payment import PaymentReconciler
from billing.reconcilers.token import TokenReconciler

__all__ = [
    "InvoiceReconciler",
    "NotificationReconciler",
    "OrderReconciler",
    "PaymentReconciler",
    "TokenReconciler",
]
