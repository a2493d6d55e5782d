"""
Abstract base model.

Every billing table carries ``created_at`` / ``updated_at``. ``updated_at``
also drives the stuck-replay sweep in billing.tasks.

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Order(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        external_id = models.CharField(max_length=64, unique=True)

List mixins before BaseModel.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """Row timestamps, newest first by default."""

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the row was inserted",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the row was last saved",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]
