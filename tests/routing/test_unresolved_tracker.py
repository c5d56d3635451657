"""Tests for UnresolvedModelTracker."""

from __future__ import annotations

import asyncio

import pytest

from model_routing.routing.store import InMemoryRoutingStore
from model_routing.routing.unresolved import UnresolvedModelTracker
from model_routing.telemetry.metrics import REGISTRY


class _BrokenStore(InMemoryRoutingStore):
    async def record_unresolved(self, model_name, count, seen_at):
        raise ConnectionError("database unavailable")


def _lookups() -> float:
    return REGISTRY.get_sample_value("routing_unresolved_lookups_total") or 0.0


class TestTrack:
    def test_counts_per_name(self):
        tracker = UnresolvedModelTracker(InMemoryRoutingStore())
        tracker.track("a")
        tracker.track("a")
        tracker.track("b")
        assert tracker.pending == {"a": 2, "b": 1}

    def test_increments_metric(self):
        tracker = UnresolvedModelTracker(InMemoryRoutingStore())
        before = _lookups()
        tracker.track("a")
        assert _lookups() == before + 1

    def test_cap_drops_new_names(self):
        tracker = UnresolvedModelTracker(InMemoryRoutingStore(), max_pending=2)
        for name in ("a", "b", "c"):
            tracker.track(name)
        tracker.track("a")
        assert tracker.pending == {"a": 2, "b": 1}

    def test_pending_is_a_copy(self):
        tracker = UnresolvedModelTracker(InMemoryRoutingStore())
        tracker.track("a")
        tracker.pending.clear()
        assert tracker.pending == {"a": 1}


class TestFlush:
    @pytest.mark.asyncio
    async def test_flush_writes_and_clears(self):
        store = InMemoryRoutingStore()
        tracker = UnresolvedModelTracker(store)
        tracker.track("a")
        tracker.track("a")
        tracker.track("b")

        assert await tracker.flush() == 2
        assert tracker.pending == {}
        assert store.unresolved["a"].occurrence_count == 2
        assert store.unresolved["b"].occurrence_count == 1

    @pytest.mark.asyncio
    async def test_flush_accumulates_across_batches(self):
        store = InMemoryRoutingStore()
        tracker = UnresolvedModelTracker(store)
        tracker.track("a")
        await tracker.flush()
        first_seen = store.unresolved["a"].first_seen

        tracker.track("a")
        tracker.track("a")
        await tracker.flush()

        record = store.unresolved["a"]
        assert record.occurrence_count == 3
        assert record.first_seen == first_seen
        assert record.last_seen >= first_seen
        assert record.resolved is False

    @pytest.mark.asyncio
    async def test_empty_flush(self):
        assert await UnresolvedModelTracker(InMemoryRoutingStore()).flush() == 0

    @pytest.mark.asyncio
    async def test_flush_failure_is_swallowed(self):
        tracker = UnresolvedModelTracker(_BrokenStore())
        tracker.track("a")
        assert await tracker.flush() == 0
        # Batch is dropped, tracking continues
        assert tracker.pending == {}
        tracker.track("b")
        assert tracker.pending == {"b": 1}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_periodic_flush(self):
        store = InMemoryRoutingStore()
        tracker = UnresolvedModelTracker(store, flush_interval_seconds=0.01)
        tracker.start()
        tracker.track("a")

        for _ in range(100):
            if "a" in store.unresolved:
                break
            await asyncio.sleep(0.01)

        await tracker.stop()
        assert store.unresolved["a"].occurrence_count == 1

    @pytest.mark.asyncio
    async def test_stop_flushes_remaining(self):
        store = InMemoryRoutingStore()
        tracker = UnresolvedModelTracker(store, flush_interval_seconds=3600)
        tracker.start()
        tracker.track("a")
        await tracker.stop()
        assert store.unresolved["a"].occurrence_count == 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        tracker = UnresolvedModelTracker(InMemoryRoutingStore(), flush_interval_seconds=3600)
        tracker.start()
        task = tracker._flush_task
        tracker.start()
        assert tracker._flush_task is task
        await tracker.stop()
        assert tracker._flush_task is None
