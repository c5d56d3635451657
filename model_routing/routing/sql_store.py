"""SQLAlchemy implementation of RoutingStore.

Each method opens its own short session from the factory, commits on
success and rolls back on error, so no session outlives a single call and
nothing is held across awaits in the routing core.

Writes are PostgreSQL ``INSERT ... ON CONFLICT DO UPDATE`` keyed on the
natural key, which keeps them idempotent under retries and concurrent
recalculations (last writer wins per row).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Collection
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from model_routing.models import (
    ModelPricing,
    TierAssignmentRecord,
    UnresolvedModel,
    UserProvider,
)
from model_routing.routing.types import (
    CatalogEntry,
    ConnectedProvider,
    Tier,
    TierAssignment,
)

log = structlog.get_logger(__name__)


def _to_entry(row: ModelPricing) -> CatalogEntry:
    return CatalogEntry(
        model_name=row.model_name,
        provider=row.provider,
        input_price_per_token=row.input_price_per_token,
        output_price_per_token=row.output_price_per_token,
        context_window=row.context_window,
        capability_reasoning=row.capability_reasoning,
        capability_code=row.capability_code,
        quality_score=row.quality_score,
    )


def _to_provider(row: UserProvider) -> ConnectedProvider:
    return ConnectedProvider(
        id=str(row.id),
        user_id=row.user_id,
        provider=row.provider,
        is_active=row.is_active,
        credential_encrypted=row.credential_encrypted,
        key_prefix=row.key_prefix,
        connected_at=row.connected_at,
    )


def _to_assignment(row: TierAssignmentRecord) -> TierAssignment:
    return TierAssignment(
        id=str(row.id),
        user_id=row.user_id,
        tier=Tier(row.tier),
        override_model=row.override_model,
        auto_assigned_model=row.auto_assigned_model,
        updated_at=row.updated_at,
    )


class SqlRoutingStore:
    """RoutingStore backed by PostgreSQL via SQLAlchemy async."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ------------------------------------------------------------------ #
    # Pricing
    # ------------------------------------------------------------------ #

    async def list_pricing(self) -> list[CatalogEntry]:
        async with self._session() as session:
            result = await session.execute(select(ModelPricing).order_by(ModelPricing.model_name))
            return [_to_entry(row) for row in result.scalars().all()]

    async def upsert_pricing(self, entry: CatalogEntry) -> None:
        values = {
            "model_name": entry.model_name,
            "provider": entry.provider,
            "input_price_per_token": entry.input_price_per_token,
            "output_price_per_token": entry.output_price_per_token,
            "context_window": entry.context_window,
            "capability_reasoning": entry.capability_reasoning,
            "capability_code": entry.capability_code,
            "quality_score": entry.quality_score,
            "updated_at": datetime.now(UTC),
        }
        stmt = pg_insert(ModelPricing).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ModelPricing.model_name],
            set_={k: v for k, v in values.items() if k != "model_name"},
        )
        async with self._session() as session:
            await session.execute(stmt)

    async def update_quality_score(self, model_name: str, score: int) -> None:
        async with self._session() as session:
            await session.execute(
                update(ModelPricing)
                .where(ModelPricing.model_name == model_name)
                .values(quality_score=score, updated_at=datetime.now(UTC))
            )

    async def delete_pricing(self, model_names: Collection[str]) -> int:
        if not model_names:
            return 0
        async with self._session() as session:
            result = await session.execute(
                delete(ModelPricing).where(ModelPricing.model_name.in_(list(model_names)))
            )
            return result.rowcount or 0

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #

    async def list_providers(self, user_id: str) -> list[ConnectedProvider]:
        async with self._session() as session:
            result = await session.execute(
                select(UserProvider)
                .where(UserProvider.user_id == user_id)
                .order_by(UserProvider.connected_at)
            )
            return [_to_provider(row) for row in result.scalars().all()]

    async def list_active_providers(self, user_id: str) -> list[ConnectedProvider]:
        async with self._session() as session:
            result = await session.execute(
                select(UserProvider)
                .where(UserProvider.user_id == user_id, UserProvider.is_active.is_(True))
                .order_by(UserProvider.connected_at)
            )
            return [_to_provider(row) for row in result.scalars().all()]

    async def get_provider(self, user_id: str, provider: str) -> ConnectedProvider | None:
        async with self._session() as session:
            result = await session.execute(
                select(UserProvider).where(
                    UserProvider.user_id == user_id,
                    UserProvider.provider == provider.lower(),
                )
            )
            row = result.scalar_one_or_none()
            return _to_provider(row) if row is not None else None

    async def save_provider(self, row: ConnectedProvider) -> ConnectedProvider:
        now = datetime.now(UTC)
        stmt = pg_insert(UserProvider).values(
            id=row.id,
            user_id=row.user_id,
            provider=row.provider.lower(),
            is_active=row.is_active,
            credential_encrypted=row.credential_encrypted,
            key_prefix=row.key_prefix,
            connected_at=row.connected_at,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_user_providers_user_provider",
            set_={
                "is_active": stmt.excluded.is_active,
                "credential_encrypted": stmt.excluded.credential_encrypted,
                "key_prefix": stmt.excluded.key_prefix,
                "updated_at": now,
            },
        ).returning(UserProvider)
        async with self._session() as session:
            result = await session.execute(stmt)
            return _to_provider(result.scalar_one())

    async def deactivate_all_providers(self, user_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(UserProvider)
                .where(UserProvider.user_id == user_id, UserProvider.is_active.is_(True))
                .values(is_active=False, updated_at=datetime.now(UTC))
            )
            return result.rowcount or 0

    # ------------------------------------------------------------------ #
    # Tiers
    # ------------------------------------------------------------------ #

    async def list_tiers(self, user_id: str) -> list[TierAssignment]:
        async with self._session() as session:
            result = await session.execute(
                select(TierAssignmentRecord).where(TierAssignmentRecord.user_id == user_id)
            )
            return [_to_assignment(row) for row in result.scalars().all()]

    async def get_tier(self, user_id: str, tier: Tier) -> TierAssignment | None:
        async with self._session() as session:
            result = await session.execute(
                select(TierAssignmentRecord).where(
                    TierAssignmentRecord.user_id == user_id,
                    TierAssignmentRecord.tier == tier.value,
                )
            )
            row = result.scalar_one_or_none()
            return _to_assignment(row) if row is not None else None

    async def save_tier(self, row: TierAssignment) -> TierAssignment:
        stmt = pg_insert(TierAssignmentRecord).values(
            id=row.id,
            user_id=row.user_id,
            tier=row.tier.value,
            override_model=row.override_model,
            auto_assigned_model=row.auto_assigned_model,
            updated_at=row.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_tier_assignments_user_tier",
            set_={
                "override_model": stmt.excluded.override_model,
                "auto_assigned_model": stmt.excluded.auto_assigned_model,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(TierAssignmentRecord)
        async with self._session() as session:
            result = await session.execute(stmt)
            return _to_assignment(result.scalar_one())

    async def find_overrides(self, model_names: Collection[str]) -> list[TierAssignment]:
        if not model_names:
            return []
        async with self._session() as session:
            result = await session.execute(
                select(TierAssignmentRecord).where(
                    TierAssignmentRecord.override_model.in_(list(model_names))
                )
            )
            return [_to_assignment(row) for row in result.scalars().all()]

    async def list_overrides(self, user_id: str) -> list[TierAssignment]:
        async with self._session() as session:
            result = await session.execute(
                select(TierAssignmentRecord).where(
                    TierAssignmentRecord.user_id == user_id,
                    TierAssignmentRecord.override_model.is_not(None),
                )
            )
            return [_to_assignment(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------ #
    # Observability
    # ------------------------------------------------------------------ #

    async def record_unresolved(self, model_name: str, count: int, seen_at: datetime) -> None:
        stmt = pg_insert(UnresolvedModel).values(
            model_name=model_name,
            occurrence_count=count,
            first_seen=seen_at,
            last_seen=seen_at,
            resolved=False,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UnresolvedModel.model_name],
            set_={
                "occurrence_count": UnresolvedModel.occurrence_count + count,
                "last_seen": seen_at,
            },
        )
        async with self._session() as session:
            await session.execute(stmt)
