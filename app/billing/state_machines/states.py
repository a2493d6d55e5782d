"""
State enums for billing models.

This module defines all state enums used by billing models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    created → authorized → captured → partially_refunded → refunded
    created/authorized → failed
    failed → captured (late capture reported by the gateway)

Order States:
    created → paid
    any → paid (order.paid is authoritative)

Registration Invoice States:
    issued → paid | cancelled | expired
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: REFUNDED

    State Flow:
        CREATED → AUTHORIZED → CAPTURED → PARTIALLY_REFUNDED → REFUNDED
        CAPTURED → REFUNDED (full refund in one step)

    Failure Flow:
        CREATED/AUTHORIZED → FAILED
        FAILED → CAPTURED
    """

    CREATED = "created", "Created"
    AUTHORIZED = "authorized", "Authorized"
    CAPTURED = "captured", "Captured"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


# Lifecycle rank used to reject stale authorized/captured deliveries.
# FAILED sits beside AUTHORIZED: a capture may still follow it.
PAYMENT_STATUS_RANK = {
    PaymentStatus.CREATED: 0,
    PaymentStatus.AUTHORIZED: 1,
    PaymentStatus.FAILED: 1,
    PaymentStatus.CAPTURED: 2,
    PaymentStatus.PARTIALLY_REFUNDED: 3,
    PaymentStatus.REFUNDED: 4,
}


class OrderStatus(models.TextChoices):
    """
    States for the Order model lifecycle.

    Terminal states: PAID

    State Flow:
        CREATED → PAID
        AUTHORIZED/FAILED → PAID

    AUTHORIZED and FAILED are only ever copied from the gateway's
    order response; order.paid moves any order to PAID.
    """

    CREATED = "created", "Created"
    AUTHORIZED = "authorized", "Authorized"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class InvoiceStatus(models.TextChoices):
    """
    States for the RegistrationInvoice model lifecycle.

    Terminal states: PAID, CANCELLED, EXPIRED

    State Flow:
        ISSUED → PAID
        ISSUED → CANCELLED
        ISSUED → EXPIRED
    """

    ISSUED = "issued", "Issued"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class NotificationStatus(models.TextChoices):
    """Delivery flag for invoice SMS/email notifications."""

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"


class NotificationMedium(models.TextChoices):
    """Channels an invoice notification can be sent through."""

    SMS = "sms", "SMS"
    EMAIL = "email", "Email"


class PaymentEventKind(models.TextChoices):
    """Typed entries of the append-only payment event log."""

    AUTHORIZATION = "authorization", "Authorization"
    CAPTURE = "capture", "Capture"
    REFUND = "refund", "Refund"
    FAILURE = "failure", "Failure"
    SIGNATURE = "signature", "Signature"


class TokenStatus(models.TextChoices):
    """Recurring token states reported by token.* webhooks."""

    CONFIRMED = "confirmed", "Confirmed"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"
    PAUSED = "paused", "Paused"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for dead-lettered WebhookEvent rows.

    State Flow:
        FAILED → PROCESSING → PROCESSED
        FAILED → PROCESSING → FAILED (retry later)
    """

    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
