"""
Order model.

An order is created through the provisioning API and afterwards changed only
by webhooks: order.paid, order.notification.* and token.*.

Usage:
    from billing.models import Order

    order = Order.objects.create(
        external_id="order_Kx9",
        customer_id="cust_A1",
        amount=50000,
        token={"token_id": "token_77"},
    )

    order.mark_paid()
    order.save()

    # Reverse lookup by token (indexed column, kept in sync on save)
    Order.objects.filter(token_id="token_77")
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from billing.models.base import GatewayEntity
from billing.state_machines import OrderStatus


def extract_token_id(token: dict | None) -> str | None:
    """Return the token id a token sub-record refers to, if any."""
    if not isinstance(token, dict):
        return None
    return token.get("id") or token.get("token_id") or None


class Order(GatewayEntity):
    """
    Razorpay order.

    Fields:
        customer_id: Owning customer's Razorpay id
        amount: Order amount in minor units (paise)
        status: Current FSM state
        token: Recurring token sub-record (token_id, recurring_details, ...)
        token_id: Secondary index over ``token`` for token.* fan-out
        notes: Accumulating notes bag (may carry a notification sub-record)
        paid_at: When order.paid was applied
    """

    # ==========================================================================
    # Ownership & Amount
    # ==========================================================================

    customer_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Razorpay customer id (cust_xxx)",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Order amount in smallest currency unit",
    )

    currency = models.CharField(
        max_length=3,
        default="INR",
        help_text="ISO 4217 currency code",
    )

    receipt = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Merchant receipt reference",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.CREATED,
        choices=OrderStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the order (managed by FSM)",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was marked paid",
    )

    # ==========================================================================
    # Recurring Token
    # ==========================================================================

    token = models.JSONField(
        null=True,
        blank=True,
        help_text="Recurring token sub-record",
    )

    token_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Token id referenced by ``token`` (maintained on save)",
    )

    # ==========================================================================
    # Notes
    # ==========================================================================

    notes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form notes, merged never replaced",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(fields=["customer_id", "status"], name="billing_order_cust_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(amount__gt=0),
                name="billing_order_amount_positive",
            ),
        ]

    def save(self, *args, **kwargs):
        self.token_id = extract_token_id(self.token)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "token" in update_fields:
            kwargs["update_fields"] = list({*update_fields, "token_id"})
        super().save(*args, **kwargs)

    def merge_notes(self, **entries) -> None:
        """Merge top-level entries into notes, keeping the other keys."""
        self.notes = {**(self.notes or {}), **entries}

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source="*", target=OrderStatus.PAID)
    def mark_paid(self):
        """
        Mark the order as paid.

        Transition: * -> PAID

        order.paid is authoritative, so any current state is accepted.
        The first paid_at is kept on redelivery.
        """
        if self.paid_at is None:
            self.paid_at = timezone.now()
