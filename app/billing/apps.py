"""
Billing app configuration.

This app reconciles Razorpay payment-lifecycle events:
- Webhook verification, deduplication and routing
- Per-entity reconcilers (payment, order, token, notification, invoice)
- Synchronous gateway actions (capture, refund, cancel, notify)
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    def ready(self):
        # Populate the webhook handler registry
        from billing.webhooks import handlers  # noqa: F401
