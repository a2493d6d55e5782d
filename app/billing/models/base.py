"""
Shared abstract base for records mirrored from Razorpay.
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin


class GatewayEntity(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Abstract base for customers, orders, payments and invoices.

    Fields:
        external_id: Razorpay identifier (cust_xxx, order_xxx, pay_xxx, inv_xxx)

    Other entities reference each other by external id, never by foreign
    key, so webhooks may create a row before its parent is known locally.
    """

    external_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Razorpay identifier - unique lookup key",
    )

    class Meta(BaseModel.Meta):
        abstract = True

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.external_id})"
