"""
EntityStore: the single writer for billing entities.

Reconcilers and the gateway coordinator never call ``save()`` themselves.
They hand EntityStore a mutate callable that changes a locked instance in
memory and reports whether anything changed; EntityStore runs it inside
``transaction.atomic()`` on a row locked with ``select_for_update()`` and
saves the result.

A webhook and a synchronous action racing on the same payment therefore
serialize on the row lock, and whichever commits last wins.

Usage:
    from billing.store import EntityStore

    def mark_paid(order: Order) -> bool:
        order.mark_paid()
        return True

    order = EntityStore.update(Order, "order_123", mark_paid)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, TypeVar

from django.db import IntegrityError, models, transaction

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)

# mutate(instance) -> True if the instance changed and must be saved
Mutator = Callable[[M], bool]


class EntityStore:
    """
    Atomic get / upsert / update over models keyed by ``external_id``.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def get(cls, model: type[M], external_id: str) -> M | None:
        """
        Point lookup by external id.

        Returns:
            The instance, or None if absent
        """
        if not external_id:
            return None
        return model.objects.filter(external_id=external_id).first()

    @classmethod
    def update(
        cls,
        model: type[M],
        external_id: str,
        mutate: Mutator,
    ) -> M | None:
        """
        Lock, mutate and save an existing row.

        Args:
            model: Model class
            external_id: Razorpay id of the row
            mutate: Callable applied to the locked instance

        Returns:
            The saved instance, or None if no row matches
        """
        with transaction.atomic():
            instance = (
                model.objects.select_for_update()
                .filter(external_id=external_id)
                .first()
            )
            if instance is None:
                return None
            if mutate(instance):
                instance.save()
            return instance

    @classmethod
    def upsert(
        cls,
        model: type[M],
        external_id: str,
        defaults: dict[str, Any],
        mutate: Mutator,
    ) -> M:
        """
        Lock or create a row, then mutate and save it.

        A missing row is built from ``defaults`` and then passed through
        ``mutate`` like an existing one, so creation and update share the
        same merge logic. A concurrent insert of the same external id is
        retried once as an update.

        Args:
            model: Model class
            external_id: Razorpay id of the row
            defaults: Field values for a new row
            mutate: Callable applied to the locked or new instance

        Returns:
            The saved instance
        """
        for attempt in range(2):
            try:
                with transaction.atomic():
                    instance = (
                        model.objects.select_for_update()
                        .filter(external_id=external_id)
                        .first()
                    )
                    created = instance is None
                    if created:
                        instance = model(external_id=external_id, **defaults)
                    changed = mutate(instance)
                    if created or changed:
                        instance.save()
                    if created:
                        logger.info(
                            f"Created {model.__name__} from upsert",
                            extra={"external_id": external_id},
                        )
                    return instance
            except IntegrityError:
                if attempt:
                    raise
                logger.info(
                    f"Concurrent insert of {model.__name__}, retrying as update",
                    extra={"external_id": external_id},
                )
        raise AssertionError("unreachable")

    @classmethod
    def update_matching(
        cls,
        model: type[M],
        mutate: Mutator,
        **lookup: Any,
    ) -> list[M]:
        """
        Apply ``update`` to every row matching a secondary-index lookup.

        Each row is locked, mutated and saved in its own transaction, so one
        row's failure never rolls back another's update.

        Returns:
            Instances that were found and updated
        """
        external_ids = list(
            model.objects.filter(**lookup).values_list("external_id", flat=True)
        )
        updated = []
        for external_id in external_ids:
            instance = cls.update(model, external_id, mutate)
            if instance is not None:
                updated.append(instance)
        return updated

    @classmethod
    def create(cls, model: type[M], external_id: str, **fields: Any) -> M:
        """
        Insert a new row for an entity the gateway just created.

        Raises:
            IntegrityError: If the external id already exists
        """
        with transaction.atomic():
            return model.objects.create(external_id=external_id, **fields)
