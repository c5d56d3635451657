"""In-memory mirror of the model pricing catalog.

Readers vastly outnumber writers: every routing decision does several
lookups, while reloads happen on catalog sync and startup only. State is
therefore an immutable snapshot (entries + alias index built together) held
by a single reference. reload() builds a complete new snapshot and swaps the
reference in one assignment, so a concurrent reader sees either the old or
the new catalog, never a half-built one.

reload() also reconciles stored quality scores with the scorer: any row whose
score drifted gets a correction write and the corrected value in memory.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import structlog

from model_routing.routing.aliases import build_alias_index, resolve_model_name
from model_routing.routing.quality import compute_quality_score
from model_routing.routing.store import RoutingStore
from model_routing.routing.types import CatalogEntry
from model_routing.routing.unresolved import UnresolvedModelTracker
from model_routing.telemetry import metrics

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    entries: Mapping[str, CatalogEntry] = field(default_factory=lambda: MappingProxyType({}))
    alias_index: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


class PricingCache:
    """Catalog lookups with alias resolution and unresolved-name tracking."""

    def __init__(
        self,
        store: RoutingStore,
        tracker: UnresolvedModelTracker | None = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._snapshot = _Snapshot()

    async def reload(self) -> int:
        """Rebuild the snapshot from the store.

        Store errors propagate and leave the previous snapshot in place.

        Returns:
            Number of catalog entries loaded.
        """
        rows = await self._store.list_pricing()

        entries: dict[str, CatalogEntry] = {}
        corrections = 0
        for row in rows:
            score = compute_quality_score(row)
            if score != row.quality_score:
                await self._store.update_quality_score(row.model_name, score)
                log.debug(
                    "pricing_cache.score_corrected",
                    model=row.model_name,
                    stored=row.quality_score,
                    computed=score,
                )
                row = row.with_score(score)
                corrections += 1
            entries[row.model_name] = row

        self._snapshot = _Snapshot(
            entries=MappingProxyType(entries),
            alias_index=MappingProxyType(build_alias_index(entries.keys())),
        )

        if corrections:
            metrics.score_corrections_total.inc(corrections)
        log.info("pricing_cache.reloaded", models=len(entries), score_corrections=corrections)
        return len(entries)

    def get_by_model(self, model_name: str) -> CatalogEntry | None:
        """Exact lookup, then alias resolution; misses are tracked."""
        snapshot = self._snapshot

        entry = snapshot.entries.get(model_name)
        if entry is not None:
            return entry

        resolved = resolve_model_name(model_name, snapshot.entries.keys(), snapshot.alias_index)
        if resolved is not None:
            log.debug("pricing_cache.alias_resolved", requested=model_name, resolved=resolved)
            return snapshot.entries[resolved]

        if self._tracker is not None:
            self._tracker.track(model_name)
        return None

    def get_all(self) -> list[CatalogEntry]:
        """All entries in catalog order (a new list on every call)."""
        return list(self._snapshot.entries.values())

    def __len__(self) -> int:
        return len(self._snapshot.entries)
