"""Assignment orchestrator: owns per-user provider and tier-assignment state.

The orchestrator is the only writer of ConnectedProvider and TierAssignment
rows. It keeps each user's auto-assigned models in step with two inputs that
change independently:

- the user's connected providers (connect / disconnect)
- the model catalog (catalog sync adds and removes models)

Effective model rule (evaluated on every read, not only after writes):
    override_model, if set AND its catalog provider is among the user's
    active providers (alias-expanded) AND it still resolves in the cache;
    otherwise auto_assigned_model.

Recalculation issues one upsert per tier. The four writes are not a
transaction; each is idempotent, so a crash half way leaves stale but valid
rows that the next trigger corrects.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from model_routing.core.crypto import (
    CredentialCipher,
    CredentialDecryptionError,
    key_prefix,
)
from model_routing.routing.aliases import expand_provider_names
from model_routing.routing.errors import ProviderNotFoundError
from model_routing.routing.pricing_cache import PricingCache
from model_routing.routing.selector import pick_best
from model_routing.routing.store import RoutingStore
from model_routing.routing.types import (
    TIER_ORDER,
    CatalogEntry,
    ConnectedProvider,
    Tier,
    TierAssignment,
)
from model_routing.telemetry import metrics

log = structlog.get_logger(__name__)

# Local runtime, no credential needed
KEYLESS_PROVIDERS = frozenset({"ollama"})


@dataclass(frozen=True)
class _ClearedOverride:
    tier: Tier
    model_name: str


def format_fallback_notice(model_name: str, tier: Tier, auto_model: str | None) -> str:
    """User-facing message for an override that was cleared."""
    label = tier.value.capitalize()
    if auto_model:
        return f"{model_name} is no longer available. {label} is back to automatic mode ({auto_model})."
    return f"{model_name} is no longer available. {label} is back to automatic mode."


class AssignmentOrchestrator:
    """Provider connectivity, tier overrides and auto-assignment per user."""

    def __init__(
        self,
        store: RoutingStore,
        cache: PricingCache,
        cipher: CredentialCipher,
    ) -> None:
        self._store = store
        self._cache = cache
        self._cipher = cipher

    # ------------------------------------------------------------------ #
    # Recalculation
    # ------------------------------------------------------------------ #

    async def _active_provider_names(self, user_id: str) -> set[str]:
        providers = await self._store.list_active_providers(user_id)
        return expand_provider_names(p.provider for p in providers)

    async def available_models(self, user_id: str) -> list[CatalogEntry]:
        """Catalog entries served by the user's active providers."""
        active = await self._active_provider_names(user_id)
        return [e for e in self._cache.get_all() if e.provider.lower() in active]

    async def recalculate(self, user_id: str) -> None:
        """Recompute auto_assigned_model for all four tiers.

        The candidate set is computed once, so every tier sees the same
        snapshot of providers and catalog. Overrides are left untouched.
        """
        candidates = await self.available_models(user_id)
        now = datetime.now(UTC)

        assigned: dict[str, str | None] = {}
        for tier in TIER_ORDER:
            choice = pick_best(candidates, tier)
            model_name = choice.model_name if choice is not None else None

            row = await self._store.get_tier(user_id, tier)
            if row is None:
                row = TierAssignment(user_id=user_id, tier=tier)
            row.auto_assigned_model = model_name
            row.updated_at = now
            await self._store.save_tier(row)
            assigned[tier.value] = model_name

        metrics.recalculations_total.inc()
        log.info(
            "routing.recalculated",
            user_id=user_id,
            candidates=len(candidates),
            assigned=assigned,
        )

    # ------------------------------------------------------------------ #
    # Providers
    # ------------------------------------------------------------------ #

    async def get_providers(self, user_id: str) -> list[ConnectedProvider]:
        """All provider rows of the user, active and inactive."""
        return await self._store.list_providers(user_id)

    async def upsert_provider(
        self,
        user_id: str,
        provider: str,
        credential: str | None = None,
    ) -> tuple[ConnectedProvider, bool]:
        """Connect (or reconnect) a provider and recalculate.

        A reconnect without a credential keeps the stored one.

        Returns:
            (row, is_new) where is_new is False for a reactivated row.
        """
        name = provider.strip().lower()
        encrypted = self._cipher.encrypt(credential) if credential else None

        row = await self._store.get_provider(user_id, name)
        is_new = row is None
        if row is None:
            row = ConnectedProvider(
                user_id=user_id,
                provider=name,
                credential_encrypted=encrypted,
                key_prefix=key_prefix(credential) if credential else None,
            )
        else:
            row.is_active = True
            if encrypted is not None:
                row.credential_encrypted = encrypted
                row.key_prefix = key_prefix(credential or "")

        row = await self._store.save_provider(row)
        await self.recalculate(user_id)

        if is_new:
            metrics.provider_connected_total.inc()
            log.info("routing.provider_connected", user_id=user_id, provider=name)
        else:
            log.info("routing.provider_reactivated", user_id=user_id, provider=name)
        return row, is_new

    async def remove_provider(self, user_id: str, provider: str) -> list[str]:
        """Deactivate a provider, clearing overrides it backed.

        Raises:
            ProviderNotFoundError: The user never connected ``provider``.

        Returns:
            One notification per cleared override.
        """
        name = provider.strip().lower()
        row = await self._store.get_provider(user_id, name)
        if row is None:
            raise ProviderNotFoundError(f"Provider not found: {provider}")

        removed_names = expand_provider_names([name])
        # Providers that stay connected and still cover an aliased name
        remaining = {
            p.provider for p in await self._store.list_active_providers(user_id) if p.provider != name
        }
        still_served = expand_provider_names(remaining)

        cleared: list[_ClearedOverride] = []
        for tier_row in await self._store.list_overrides(user_id):
            entry = self._cache.get_by_model(tier_row.override_model or "")
            if entry is None:
                continue
            entry_provider = entry.provider.lower()
            if entry_provider in removed_names and entry_provider not in still_served:
                cleared.append(_ClearedOverride(tier_row.tier, tier_row.override_model or ""))
                tier_row.override_model = None
                tier_row.updated_at = datetime.now(UTC)
                await self._store.save_tier(tier_row)

        row.is_active = False
        await self._store.save_provider(row)
        await self.recalculate(user_id)

        if cleared:
            metrics.overrides_cleared_total.labels(reason="provider_removed").inc(len(cleared))
        log.info(
            "routing.provider_removed",
            user_id=user_id,
            provider=name,
            overrides_cleared=len(cleared),
        )
        return await self._notifications(user_id, cleared)

    async def deactivate_all_providers(self, user_id: str) -> list[str]:
        """Disconnect every provider and clear every override."""
        overrides = await self._store.list_overrides(user_id)
        cleared: list[_ClearedOverride] = []
        now = datetime.now(UTC)
        for tier_row in overrides:
            cleared.append(_ClearedOverride(tier_row.tier, tier_row.override_model or ""))
            tier_row.override_model = None
            tier_row.updated_at = now
            await self._store.save_tier(tier_row)

        deactivated = await self._store.deactivate_all_providers(user_id)
        await self.recalculate(user_id)

        if cleared:
            metrics.overrides_cleared_total.labels(reason="providers_deactivated").inc(len(cleared))
        log.info(
            "routing.providers_deactivated",
            user_id=user_id,
            providers=deactivated,
            overrides_cleared=len(cleared),
        )
        return await self._notifications(user_id, cleared)

    async def _notifications(self, user_id: str, cleared: list[_ClearedOverride]) -> list[str]:
        notices: list[str] = []
        for item in cleared:
            row = await self._store.get_tier(user_id, item.tier)
            auto_model = row.auto_assigned_model if row is not None else None
            notices.append(format_fallback_notice(item.model_name, item.tier, auto_model))
        return notices

    async def get_provider_credential(self, user_id: str, provider: str) -> str | None:
        """Decrypted credential for ``provider``.

        Returns "" for keyless local providers and None when there is no
        usable credential (not connected, none stored, or undecryptable).
        """
        name = provider.strip().lower()
        if name in KEYLESS_PROVIDERS:
            return ""

        names = expand_provider_names([name])
        for row in await self._store.list_active_providers(user_id):
            if row.provider.lower() not in names:
                continue
            if row.credential_encrypted is None:
                return None
            try:
                return self._cipher.decrypt(row.credential_encrypted)
            except CredentialDecryptionError:
                log.warning("routing.credential_decrypt_failed", user_id=user_id, provider=name)
                return None
        return None

    # ------------------------------------------------------------------ #
    # Tiers
    # ------------------------------------------------------------------ #

    async def _ensure_tiers(self, user_id: str) -> tuple[dict[Tier, TierAssignment], bool]:
        rows = {row.tier: row for row in await self._store.list_tiers(user_id)}
        created = False
        for tier in TIER_ORDER:
            if tier not in rows:
                rows[tier] = await self._store.save_tier(TierAssignment(user_id=user_id, tier=tier))
                created = True
        return rows, created

    async def get_tiers(self, user_id: str) -> list[TierAssignment]:
        """The user's four tier rows, in tier order.

        Missing rows are created lazily; on first creation, a user who
        already has active providers gets an immediate recalculation.
        """
        rows, created = await self._ensure_tiers(user_id)
        if created and await self._store.list_active_providers(user_id):
            await self.recalculate(user_id)
            rows = {row.tier: row for row in await self._store.list_tiers(user_id)}
        return [rows[tier] for tier in TIER_ORDER]

    async def set_override(self, user_id: str, tier: Tier, model_name: str) -> TierAssignment:
        """Pin ``model_name`` to ``tier``. Verified at read time, not here."""
        rows, _ = await self._ensure_tiers(user_id)
        row = rows[tier]
        row.override_model = model_name
        row.updated_at = datetime.now(UTC)
        saved = await self._store.save_tier(row)
        log.info("routing.override_set", user_id=user_id, tier=tier.value, model=model_name)
        return saved

    async def clear_override(self, user_id: str, tier: Tier) -> None:
        row = await self._store.get_tier(user_id, tier)
        if row is None or row.override_model is None:
            return
        row.override_model = None
        row.updated_at = datetime.now(UTC)
        await self._store.save_tier(row)
        metrics.overrides_cleared_total.labels(reason="user_cleared").inc()
        log.info("routing.override_cleared", user_id=user_id, tier=tier.value)

    async def reset_all_overrides(self, user_id: str) -> None:
        now = datetime.now(UTC)
        overrides = await self._store.list_overrides(user_id)
        for row in overrides:
            row.override_model = None
            row.updated_at = now
            await self._store.save_tier(row)
        if overrides:
            metrics.overrides_cleared_total.labels(reason="user_reset").inc(len(overrides))
        log.info("routing.overrides_reset", user_id=user_id, cleared=len(overrides))

    async def invalidate_overrides_for_removed_models(self, removed_models: Collection[str]) -> int:
        """Catalog-sync callback: drop overrides pointing at vanished models.

        Each affected user is recalculated once.

        Returns:
            Number of overrides cleared.
        """
        if not removed_models:
            return 0

        affected = await self._store.find_overrides(removed_models)
        if not affected:
            return 0

        now = datetime.now(UTC)
        user_ids: list[str] = []
        for row in affected:
            log.warning(
                "routing.override_invalidated",
                user_id=row.user_id,
                tier=row.tier.value,
                model=row.override_model,
            )
            row.override_model = None
            row.updated_at = now
            await self._store.save_tier(row)
            if row.user_id not in user_ids:
                user_ids.append(row.user_id)

        for user_id in user_ids:
            await self.recalculate(user_id)

        metrics.overrides_cleared_total.labels(reason="model_removed").inc(len(affected))
        log.info(
            "routing.overrides_invalidated",
            overrides=len(affected),
            users=len(user_ids),
            removed_models=sorted(removed_models),
        )
        return len(affected)

    async def get_effective_model(self, user_id: str, assignment: TierAssignment) -> str | None:
        """The model callers should actually use for ``assignment``.

        Any failure to verify the override (unknown to the cache, provider
        inactive or missing) falls back to the auto-assigned model.
        """
        override = assignment.override_model
        if override is not None:
            entry = self._cache.get_by_model(override)
            if entry is not None:
                active = await self._active_provider_names(user_id)
                if entry.provider.lower() in active:
                    return override
            log.debug(
                "routing.override_unusable",
                user_id=user_id,
                tier=assignment.tier.value,
                model=override,
            )
        return assignment.auto_assigned_model
