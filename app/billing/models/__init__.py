"""
Billing domain models.

This module contains all billing-related models:
- Customer: Razorpay customer
- Order: Razorpay order with recurring token reference
- Payment: Razorpay payment with capture/refund state
- PaymentEvent: Append-only typed log of payment sub-events
- RegistrationInvoice: Payment link with notification flags
- ProcessedEvent: Handled webhook event ids (durable idempotency)
- WebhookEvent: Dead-letter log for failed webhook deliveries
"""

from billing.models.customer import Customer
from billing.models.invoice import RegistrationInvoice
from billing.models.order import Order
from billing.models.payment import Payment, PaymentEvent
from billing.models.webhook_event import ProcessedEvent, WebhookEvent

__all__ = [
    "Customer",
    "Order",
    "Payment",
    "PaymentEvent",
    "ProcessedEvent",
    "RegistrationInvoice",
    "WebhookEvent",
]
