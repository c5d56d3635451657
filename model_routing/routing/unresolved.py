"""Unresolved-model tracker.

Records model names that matched no catalog entry, so operators can see
which aliases are missing. It sits on the pricing-cache lookup path, so
``track()`` must never block, await, or raise:

- track() bumps an in-memory counter (synchronous, O(1))
- a background task flushes the counters to the store periodically
- flush failures are logged and the batch is dropped

Design:
- Pending counts are swapped out wholesale on flush; under a single event
  loop the swap cannot interleave with track()
- Distinct pending names are capped so a flood of garbage names cannot grow
  memory without bound; overflow names are counted in Prometheus only
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import structlog

from model_routing.routing.store import RoutingStore
from model_routing.telemetry import metrics

log = structlog.get_logger(__name__)


class UnresolvedModelTracker:
    """Buffers cache misses and periodically writes them to the store."""

    def __init__(
        self,
        store: RoutingStore,
        *,
        flush_interval_seconds: float = 30.0,
        max_pending: int = 1000,
    ) -> None:
        self._store = store
        self._flush_interval_seconds = flush_interval_seconds
        self._max_pending = max_pending
        self._pending: dict[str, int] = {}
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> dict[str, int]:
        """Snapshot of counts not yet written."""
        return dict(self._pending)

    def track(self, model_name: str) -> None:
        """Record one failed lookup of ``model_name``. Never raises."""
        try:
            metrics.unresolved_lookups_total.inc()
            if model_name in self._pending:
                self._pending[model_name] += 1
            elif len(self._pending) < self._max_pending:
                self._pending[model_name] = 1
            else:
                log.debug("unresolved.dropped", model=model_name, max_pending=self._max_pending)
        except Exception as exc:  # the lookup path must stay untouched
            log.debug("unresolved.track_failed", model=model_name, error=str(exc))

    async def flush(self) -> int:
        """Write pending counts to the store.

        Returns:
            Number of distinct model names flushed (0 on failure).
        """
        if not self._pending:
            return 0

        batch, self._pending = self._pending, {}
        now = datetime.now(UTC)
        try:
            for model_name, count in batch.items():
                await self._store.record_unresolved(model_name, count, now)
        except Exception as exc:
            log.error(
                "unresolved.flush_error",
                error=str(exc),
                count=len(batch),
                exc_info=True,
            )
            return 0

        log.info("unresolved.flushed", count=len(batch))
        return len(batch)

    async def _periodic_flush(self) -> None:
        """Background task that periodically flushes pending counts."""
        while True:
            try:
                await asyncio.sleep(self._flush_interval_seconds)
                await self.flush()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.error("unresolved.periodic_flush_error", error=str(exc), exc_info=True)

    def start(self) -> None:
        if self._flush_task is None:
            self._flush_task = asyncio.create_task(self._periodic_flush())
            log.info("unresolved.started", interval_seconds=self._flush_interval_seconds)

    async def stop(self) -> None:
        """Cancel the periodic task and flush what is left."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        await self.flush()
