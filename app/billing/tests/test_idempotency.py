"""
Tests for webhook idempotency guards.

Tests cover:
- In-memory bounded set with oldest-first eviction
- Atomic claim for concurrent deliveries
- Cache guard with expiry
- Database guard with trimming
- Guard selection from settings
"""

import threading

import pytest
from django.core.cache.backends.locmem import LocMemCache

from billing.idempotency import (
    CacheIdempotencyGuard,
    DatabaseIdempotencyGuard,
    IdempotencyGuard,
    InMemoryIdempotencyGuard,
    get_idempotency_guard,
    set_idempotency_guard,
)
from billing.models import ProcessedEvent


class TestInMemoryIdempotencyGuard:
    """Tests for InMemoryIdempotencyGuard."""

    def test_record_then_seen(self):
        guard = InMemoryIdempotencyGuard(capacity=10)

        assert not guard.seen("evt_1")
        guard.record("evt_1")
        assert guard.seen("evt_1")

    def test_none_and_empty_never_seen(self):
        guard = InMemoryIdempotencyGuard(capacity=10)

        guard.record(None)
        guard.record("")

        assert not guard.seen(None)
        assert not guard.seen("")
        assert len(guard) == 0

    def test_evicts_oldest_beyond_capacity(self):
        guard = InMemoryIdempotencyGuard(capacity=3)

        for n in range(4):
            guard.record(f"evt_{n}")

        assert len(guard) == 3
        assert not guard.seen("evt_0")
        assert all(guard.seen(f"evt_{n}") for n in range(1, 4))

    def test_re_recording_does_not_grow(self):
        guard = InMemoryIdempotencyGuard(capacity=3)

        guard.record("evt_1")
        guard.record("evt_1")

        assert len(guard) == 1

    def test_capacity_defaults_to_setting(self, settings):
        settings.BILLING_IDEMPOTENCY_CAPACITY = 7

        assert InMemoryIdempotencyGuard().capacity == 7

    def test_claim_only_once(self):
        guard = InMemoryIdempotencyGuard(capacity=10)

        assert guard.claim("evt_claim")
        assert not guard.claim("evt_claim")
        assert guard.seen("evt_claim")

    def test_claim_without_id_always_succeeds(self):
        guard = InMemoryIdempotencyGuard(capacity=10)

        assert guard.claim(None)
        assert guard.claim(None)
        assert len(guard) == 0

    def test_concurrent_claims_have_one_winner(self):
        guard = InMemoryIdempotencyGuard(capacity=10)
        barrier = threading.Barrier(8)
        results = []

        def claim():
            barrier.wait()
            results.append(guard.claim("evt_race"))

        threads = [threading.Thread(target=claim) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryIdempotencyGuard(capacity=1), IdempotencyGuard)


class TestCacheIdempotencyGuard:
    """Tests for CacheIdempotencyGuard."""

    @pytest.fixture
    def cache_backend(self):
        backend = LocMemCache("idempotency-tests", {})
        yield backend
        backend.clear()

    def test_record_then_seen(self, cache_backend):
        guard = CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend)

        guard.record("evt_cache")

        assert guard.seen("evt_cache")
        assert cache_backend.get("billing:webhook-event:evt_cache") == 1

    def test_shared_between_instances(self, cache_backend):
        CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend).record("evt_shared")

        assert CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend).seen("evt_shared")

    def test_claim_uses_add(self, cache_backend):
        guard = CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend)

        assert guard.claim("evt_cache_claim")
        assert not guard.claim("evt_cache_claim")
        assert cache_backend.get("billing:webhook-event:evt_cache_claim") == 1

    def test_claim_after_record_fails(self, cache_backend):
        guard = CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend)

        guard.record("evt_cache_rec")

        assert not guard.claim("evt_cache_rec")

    def test_none_is_ignored(self, cache_backend):
        guard = CacheIdempotencyGuard(ttl=60, cache_backend=cache_backend)

        guard.record(None)

        assert not guard.seen(None)


@pytest.mark.django_db
class TestDatabaseIdempotencyGuard:
    """Tests for DatabaseIdempotencyGuard."""

    def test_record_then_seen(self):
        guard = DatabaseIdempotencyGuard(capacity=10)

        guard.record("evt_db")

        assert guard.seen("evt_db")
        assert ProcessedEvent.objects.filter(event_id="evt_db").count() == 1

    def test_duplicate_record_is_ignored(self):
        guard = DatabaseIdempotencyGuard(capacity=10)

        guard.record("evt_db")
        guard.record("evt_db")

        assert ProcessedEvent.objects.count() == 1

    def test_claim_only_once(self):
        guard = DatabaseIdempotencyGuard(capacity=10)

        assert guard.claim("evt_db_claim")
        assert not guard.claim("evt_db_claim")
        assert ProcessedEvent.objects.filter(event_id="evt_db_claim").count() == 1

    def test_claim_without_id_writes_nothing(self):
        assert DatabaseIdempotencyGuard(capacity=10).claim("")
        assert ProcessedEvent.objects.count() == 0

    def test_trims_to_capacity(self):
        guard = DatabaseIdempotencyGuard(capacity=2)

        for n in range(4):
            guard.record(f"evt_{n}")

        assert ProcessedEvent.objects.count() == 2
        assert guard.seen("evt_3")
        assert not guard.seen("evt_0")


class TestGuardSelection:
    """Tests for get_idempotency_guard / set_idempotency_guard."""

    def test_builds_configured_backend_once(self, settings):
        settings.BILLING_IDEMPOTENCY_BACKEND = "billing.idempotency.InMemoryIdempotencyGuard"
        set_idempotency_guard(None)

        first = get_idempotency_guard()
        second = get_idempotency_guard()

        assert isinstance(first, InMemoryIdempotencyGuard)
        assert first is second

    def test_set_overrides(self):
        guard = InMemoryIdempotencyGuard(capacity=1)

        set_idempotency_guard(guard)

        assert get_idempotency_guard() is guard
