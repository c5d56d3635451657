"""Persistence boundary for the routing core.

RoutingStore is the only way the cache, orchestrator and catalog sync reach
storage. Two implementations exist:

- InMemoryRoutingStore (this module): dict-backed, returns copies so callers
  can never mutate stored state by accident. Used by tests and by
  single-process dev runs without PostgreSQL.
- SqlRoutingStore (sql_store.py): SQLAlchemy async, one session per call.

Every write is an idempotent upsert keyed on the natural key
(model_name / (user_id, provider) / (user_id, tier)) so retries are safe.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from model_routing.routing.types import (
    CatalogEntry,
    ConnectedProvider,
    Tier,
    TierAssignment,
)


@dataclass
class UnresolvedModelRecord:
    """Aggregated cache misses for one requested model name."""

    model_name: str
    occurrence_count: int
    first_seen: datetime
    last_seen: datetime
    resolved: bool = False


class RoutingStore(Protocol):
    # Pricing catalog
    async def list_pricing(self) -> list[CatalogEntry]: ...

    async def upsert_pricing(self, entry: CatalogEntry) -> None: ...

    async def update_quality_score(self, model_name: str, score: int) -> None: ...

    async def delete_pricing(self, model_names: Collection[str]) -> int: ...

    # Connected providers
    async def list_providers(self, user_id: str) -> list[ConnectedProvider]: ...

    async def list_active_providers(self, user_id: str) -> list[ConnectedProvider]: ...

    async def get_provider(self, user_id: str, provider: str) -> ConnectedProvider | None: ...

    async def save_provider(self, row: ConnectedProvider) -> ConnectedProvider: ...

    async def deactivate_all_providers(self, user_id: str) -> int: ...

    # Tier assignments
    async def list_tiers(self, user_id: str) -> list[TierAssignment]: ...

    async def get_tier(self, user_id: str, tier: Tier) -> TierAssignment | None: ...

    async def save_tier(self, row: TierAssignment) -> TierAssignment: ...

    async def find_overrides(self, model_names: Collection[str]) -> list[TierAssignment]: ...

    async def list_overrides(self, user_id: str) -> list[TierAssignment]: ...

    # Observability
    async def record_unresolved(self, model_name: str, count: int, seen_at: datetime) -> None: ...


class InMemoryRoutingStore:
    """Dict-backed RoutingStore.

    Pricing rows keep insertion order, which is the catalog order the tier
    selector falls back on for equal prices.
    """

    def __init__(self, pricing: Collection[CatalogEntry] = ()) -> None:
        self.pricing: dict[str, CatalogEntry] = {e.model_name: e for e in pricing}
        self.providers: dict[tuple[str, str], ConnectedProvider] = {}
        self.tiers: dict[tuple[str, Tier], TierAssignment] = {}
        self.unresolved: dict[str, UnresolvedModelRecord] = {}

    # ------------------------------------------------------------------ #
    # Pricing
    # ------------------------------------------------------------------ #

    async def list_pricing(self) -> list[CatalogEntry]:
        return list(self.pricing.values())

    async def upsert_pricing(self, entry: CatalogEntry) -> None:
        self.pricing[entry.model_name] = entry

    async def update_quality_score(self, model_name: str, score: int) -> None:
        entry = self.pricing.get(model_name)
        if entry is not None:
            self.pricing[model_name] = entry.with_score(score)

    async def delete_pricing(self, model_names: Collection[str]) -> int:
        deleted = 0
        for name in model_names:
            if self.pricing.pop(name, None) is not None:
                deleted += 1
        return deleted

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #

    async def list_providers(self, user_id: str) -> list[ConnectedProvider]:
        return [replace(p) for (uid, _), p in self.providers.items() if uid == user_id]

    async def list_active_providers(self, user_id: str) -> list[ConnectedProvider]:
        return [p for p in await self.list_providers(user_id) if p.is_active]

    async def get_provider(self, user_id: str, provider: str) -> ConnectedProvider | None:
        row = self.providers.get((user_id, provider.lower()))
        return replace(row) if row is not None else None

    async def save_provider(self, row: ConnectedProvider) -> ConnectedProvider:
        stored = replace(row, provider=row.provider.lower())
        self.providers[(stored.user_id, stored.provider)] = stored
        return replace(stored)

    async def deactivate_all_providers(self, user_id: str) -> int:
        changed = 0
        for (uid, _), row in self.providers.items():
            if uid == user_id and row.is_active:
                row.is_active = False
                changed += 1
        return changed

    # ------------------------------------------------------------------ #
    # Tiers
    # ------------------------------------------------------------------ #

    async def list_tiers(self, user_id: str) -> list[TierAssignment]:
        return [replace(t) for (uid, _), t in self.tiers.items() if uid == user_id]

    async def get_tier(self, user_id: str, tier: Tier) -> TierAssignment | None:
        row = self.tiers.get((user_id, tier))
        return replace(row) if row is not None else None

    async def save_tier(self, row: TierAssignment) -> TierAssignment:
        self.tiers[(row.user_id, row.tier)] = replace(row)
        return replace(row)

    async def find_overrides(self, model_names: Collection[str]) -> list[TierAssignment]:
        wanted = set(model_names)
        return [replace(t) for t in self.tiers.values() if t.override_model in wanted]

    async def list_overrides(self, user_id: str) -> list[TierAssignment]:
        return [t for t in await self.list_tiers(user_id) if t.override_model is not None]

    # ------------------------------------------------------------------ #
    # Observability
    # ------------------------------------------------------------------ #

    async def record_unresolved(self, model_name: str, count: int, seen_at: datetime) -> None:
        record = self.unresolved.get(model_name)
        if record is None:
            self.unresolved[model_name] = UnresolvedModelRecord(
                model_name=model_name,
                occurrence_count=count,
                first_seen=seen_at,
                last_seen=seen_at,
            )
        else:
            record.occurrence_count += count
            record.last_seen = seen_at
