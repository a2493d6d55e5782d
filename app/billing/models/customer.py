"""
Customer model.

Customers are created once through the provisioning API and referenced by
orders, payments and invoices through their Razorpay id.
"""

from __future__ import annotations

from django.db import models

from billing.models.base import GatewayEntity


class Customer(GatewayEntity):
    """
    Razorpay customer.

    Fields:
        name/email/contact: Contact details, immutable after creation
        gstin: Optional GST identification number
        notes: Free-form key/value notes (the only mutable field)
    """

    name = models.CharField(max_length=255)

    email = models.EmailField(max_length=255)

    contact = models.CharField(
        max_length=32,
        help_text="Phone number including country code",
    )

    gstin = models.CharField(
        max_length=15,
        blank=True,
        default="",
        help_text="GST identification number",
    )

    notes = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form notes sent to and returned by Razorpay",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"
