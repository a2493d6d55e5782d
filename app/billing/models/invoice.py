"""
RegistrationInvoice model.

Registration invoices are payment links issued through the provisioning
API. After issue they change only through invoice.paid / invoice.expired
webhooks or the explicit cancel and notify actions.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from billing.models.base import GatewayEntity
from billing.state_machines import InvoiceStatus, NotificationStatus


class RegistrationInvoice(GatewayEntity):
    """
    Razorpay registration invoice (payment link).

    State Flow:
        ISSUED -> PAID | CANCELLED | EXPIRED

    Fields:
        customer_id/order_id/payment_id: Related Razorpay ids
        amount/amount_paid/amount_due: Amounts in minor units
        status: Current FSM state
        sms_status/email_status: Notification delivery flags
        paid_at/cancelled_at/expired_at: Terminal markers, at most one set

    Note:
        The terminal markers are written only by the matching transition,
        and a check constraint rejects rows with more than one of them.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    customer_id = models.CharField(max_length=64, db_index=True)

    order_id = models.CharField(max_length=64, blank=True, default="")

    payment_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Payment that settled the invoice",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Invoice amount in smallest currency unit",
    )

    amount_paid = models.PositiveBigIntegerField(default=0)

    amount_due = models.PositiveBigIntegerField(default=0)

    currency = models.CharField(max_length=3, default="INR")

    description = models.CharField(max_length=255, blank=True, default="")

    receipt = models.CharField(max_length=64, blank=True, default="")

    short_url = models.URLField(blank=True, default="")

    notes = models.JSONField(default=dict, blank=True)

    # ==========================================================================
    # State & Notification Flags
    # ==========================================================================

    status = FSMField(
        default=InvoiceStatus.ISSUED,
        choices=InvoiceStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the invoice (managed by FSM)",
    )

    sms_status = models.CharField(
        max_length=10,
        choices=NotificationStatus.choices,
        default=NotificationStatus.PENDING,
    )

    email_status = models.CharField(
        max_length=10,
        choices=NotificationStatus.choices,
        default=NotificationStatus.PENDING,
    )

    # ==========================================================================
    # Terminal Markers
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)

    cancelled_at = models.DateTimeField(null=True, blank=True)

    expired_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Registration Invoice"
        verbose_name_plural = "Registration Invoices"
        constraints = [
            models.CheckConstraint(
                check=(
                    models.Q(paid_at__isnull=True, cancelled_at__isnull=True)
                    | models.Q(paid_at__isnull=True, expired_at__isnull=True)
                    | models.Q(cancelled_at__isnull=True, expired_at__isnull=True)
                ),
                name="billing_invoice_single_terminal_marker",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status != InvoiceStatus.ISSUED

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source=InvoiceStatus.ISSUED, target=InvoiceStatus.PAID)
    def mark_paid(self, amount_paid: int, amount_due: int, payment_id: str | None = None):
        """
        Record payment of the invoice.

        Transition: ISSUED -> PAID
        """
        self.amount_paid = amount_paid
        self.amount_due = amount_due
        if payment_id:
            self.payment_id = payment_id
        self.paid_at = timezone.now()

    @transition(field=status, source=InvoiceStatus.ISSUED, target=InvoiceStatus.CANCELLED)
    def cancel(self):
        """
        Cancel the invoice.

        Transition: ISSUED -> CANCELLED
        """
        self.cancelled_at = timezone.now()

    @transition(field=status, source=InvoiceStatus.ISSUED, target=InvoiceStatus.EXPIRED)
    def expire(self):
        """
        Expire the invoice.

        Transition: ISSUED -> EXPIRED
        """
        self.expired_at = timezone.now()
