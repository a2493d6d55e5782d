"""
Abstract mixins combined with core.models.BaseModel.

Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    VersionedMixin: Row version counter incremented on every update

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin

    class Payment(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
        external_id = models.CharField(max_length=64, unique=True)

List mixins before BaseModel.
"""

from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F


class UUIDPrimaryKeyMixin(models.Model):
    """
    UUID primary key.

    Razorpay ids live in ``external_id``; ``id`` is the internal row identity.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Internal row id",
    )

    class Meta:
        abstract = True


class VersionedMixin(models.Model):
    """
    Row version counter for concurrency diagnostics.

    On every update the version is incremented in the database with an
    ``F()`` expression, so two writers that both committed are visible as
    two increments even when the later write wins.

    Fields:
        version: Incremented on each update, starts at 1
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version counter - incremented on each save",
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment.

        Inserts keep the default version; updates increment it atomically
        and read the new value back.
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
