"""
Webhook event-id deduplication.

Razorpay delivers webhooks at least once and sends the same
X-Razorpay-Event-Id on every retry. The guard remembers handled ids so a
retry is acknowledged without being processed again. A slow delivery can
be retried while the first attempt is still running, so the webhook path
claims the id (check and record in one step) before routing.

Available Guards:
    InMemoryIdempotencyGuard: Bounded set in process memory (default).
        NOT durable: forgotten on restart and not shared between worker
        processes. Only suitable for a single-process deployment.
    CacheIdempotencyGuard: Django cache (Redis via django-redis) with TTL.
        Shared across processes and survives restarts.
    DatabaseIdempotencyGuard: ProcessedEvent table, trimmed to capacity.

Selection:
    BILLING_IDEMPOTENCY_BACKEND = "billing.idempotency.CacheIdempotencyGuard"

Usage:
    from billing.idempotency import get_idempotency_guard

    guard = get_idempotency_guard()
    if not guard.claim(event_id):
        return {"received": True, "duplicate": True}
    ...

Note:
    Events without an id are never recorded and always look unseen.
    Entity-level reconciliation is idempotent on its own, so a guard miss
    costs a redundant write, not a wrong state.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Protocol, runtime_checkable

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.utils.module_loading import import_string

from billing.models import ProcessedEvent

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "billing:webhook-event:"


@runtime_checkable
class IdempotencyGuard(Protocol):
    """
    Protocol for webhook event-id deduplication stores.

    Any object with ``seen``, ``record`` and ``claim`` can be plugged in through
    BILLING_IDEMPOTENCY_BACKEND without touching the webhook code.
    """

    def seen(self, event_id: str | None) -> bool:
        """Return True if event_id was already recorded."""
        ...

    def record(self, event_id: str | None) -> None:
        """Remember event_id as handled."""
        ...

    def claim(self, event_id: str | None) -> bool:
        """
        Record event_id unless already recorded, atomically.

        Returns False when another delivery got there first. An event
        without an id is never recorded and is always claimable.
        """
        ...


class InMemoryIdempotencyGuard:
    """
    Bounded in-process set of handled event ids.

    Evicts the oldest entry once ``capacity`` is exceeded (insertion
    order). All bookkeeping happens under one lock and never blocks on I/O.
    """

    def __init__(self, capacity: int | None = None):
        self.capacity = capacity or settings.BILLING_IDEMPOTENCY_CAPACITY
        self._events: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, event_id: str | None) -> bool:
        if not event_id:
            return False
        with self._lock:
            return event_id in self._events

    def record(self, event_id: str | None) -> None:
        if not event_id:
            return
        with self._lock:
            self._insert(event_id)

    def claim(self, event_id: str | None) -> bool:
        if not event_id:
            return True
        with self._lock:
            if event_id in self._events:
                return False
            self._insert(event_id)
            return True

    def _insert(self, event_id: str) -> None:
        # Caller holds self._lock
        self._events[event_id] = None
        while len(self._events) > self.capacity:
            evicted, _ = self._events.popitem(last=False)
            logger.debug(f"Evicted webhook event id {evicted}")

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class CacheIdempotencyGuard:
    """
    Event ids stored in the Django cache with an expiry.

    With the django-redis backend this is shared by every web process and
    survives restarts. Entries expire after BILLING_IDEMPOTENCY_TTL_SECONDS.
    """

    def __init__(self, ttl: int | None = None, cache_backend=None):
        self.ttl = ttl or settings.BILLING_IDEMPOTENCY_TTL_SECONDS
        self.cache = cache_backend or cache

    def _key(self, event_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}{event_id}"

    def seen(self, event_id: str | None) -> bool:
        if not event_id:
            return False
        return self.cache.get(self._key(event_id)) is not None

    def record(self, event_id: str | None) -> None:
        if not event_id:
            return
        self.cache.set(self._key(event_id), 1, timeout=self.ttl)

    def claim(self, event_id: str | None) -> bool:
        if not event_id:
            return True
        # cache.add only writes when the key is absent (SET NX on Redis)
        return bool(self.cache.add(self._key(event_id), 1, timeout=self.ttl))


class DatabaseIdempotencyGuard:
    """
    Event ids stored in the ProcessedEvent table.

    Keeps at most ``capacity`` rows; the oldest are deleted after each
    insert.
    """

    def __init__(self, capacity: int | None = None):
        self.capacity = capacity or settings.BILLING_IDEMPOTENCY_CAPACITY

    def seen(self, event_id: str | None) -> bool:
        if not event_id:
            return False
        return ProcessedEvent.objects.filter(event_id=event_id).exists()

    def record(self, event_id: str | None) -> None:
        self.claim(event_id)

    def claim(self, event_id: str | None) -> bool:
        if not event_id:
            return True
        try:
            with transaction.atomic():
                ProcessedEvent.objects.create(event_id=event_id)
        except IntegrityError:
            # Recorded by another delivery of the same event
            return False
        self._trim()
        return True

    def _trim(self) -> None:
        stale_ids = ProcessedEvent.objects.order_by("-received_at", "-id").values_list(
            "id", flat=True
        )[self.capacity :]
        stale_ids = list(stale_ids)
        if stale_ids:
            ProcessedEvent.objects.filter(id__in=stale_ids).delete()


# =============================================================================
# Guard Selection
# =============================================================================

_guard: IdempotencyGuard | None = None
_guard_lock = threading.Lock()


def get_idempotency_guard() -> IdempotencyGuard:
    """
    Return the process-wide guard configured by BILLING_IDEMPOTENCY_BACKEND.

    The instance is created once so the in-memory guard keeps its state
    across requests.
    """
    global _guard
    if _guard is None:
        with _guard_lock:
            if _guard is None:
                guard_class = import_string(settings.BILLING_IDEMPOTENCY_BACKEND)
                _guard = guard_class()
                logger.info(f"Using webhook idempotency guard {guard_class.__name__}")
    return _guard


def set_idempotency_guard(guard: IdempotencyGuard | None) -> None:
    """
    Replace the process-wide guard (None resets to the configured backend).

    Args:
        guard: Guard instance or None
    """
    global _guard
    with _guard_lock:
        _guard = guard
