"""Tests for the curated seed catalog."""

from __future__ import annotations

from collections import Counter

import pytest

from model_routing.routing.aliases import MODEL_ALIASES
from model_routing.routing.engine import build_engine
from model_routing.routing.quality import QUALITY_OVERRIDES, compute_quality_score
from model_routing.routing.seed_catalog import SEED_MODELS, seed_catalog, seed_entries
from model_routing.routing.store import InMemoryRoutingStore
from model_routing.routing.types import Tier
from model_routing.telemetry.metrics import REGISTRY


class TestSeedTable:
    def test_names_are_unique(self):
        names = Counter(row[0] for row in SEED_MODELS)
        assert [name for name, count in names.items() if count > 1] == []

    def test_entries_are_scored(self):
        for entry in seed_entries():
            assert entry.quality_score == compute_quality_score(entry)

    def test_every_alias_target_is_seeded(self):
        names = {row[0] for row in SEED_MODELS}
        assert set(MODEL_ALIASES.values()) <= names

    def test_every_override_is_seeded(self):
        names = {row[0] for row in SEED_MODELS}
        assert set(QUALITY_OVERRIDES) <= names

    def test_no_free_hosted_models(self):
        assert all(entry.total_price_per_token > 0 for entry in seed_entries())


class TestSeedCatalog:
    @pytest.mark.asyncio
    async def test_seeds_store(self):
        store = InMemoryRoutingStore()
        count = await seed_catalog(store)
        assert count == len(SEED_MODELS)
        assert len(store.pricing) == len(SEED_MODELS)

    @pytest.mark.asyncio
    async def test_reseed_is_idempotent(self):
        store = InMemoryRoutingStore()
        await seed_catalog(store)
        first = dict(store.pricing)
        await seed_catalog(store)
        assert store.pricing == first

    @pytest.mark.asyncio
    async def test_seeded_catalog_needs_no_score_corrections(self, fake_settings):
        store = InMemoryRoutingStore()
        await seed_catalog(store)
        engine = build_engine(store, fake_settings)

        before = REGISTRY.get_sample_value("routing_score_corrections_total") or 0.0
        await engine.cache.reload()
        after = REGISTRY.get_sample_value("routing_score_corrections_total") or 0.0
        assert after == before

    @pytest.mark.asyncio
    async def test_seeded_catalog_routes_every_tier(self, fake_settings):
        store = InMemoryRoutingStore()
        await seed_catalog(store)
        engine = build_engine(store, fake_settings)
        await engine.cache.reload()

        await engine.orchestrator.upsert_provider("user-a", "anthropic", "sk-ant-test")
        tiers = {r.tier: r.auto_assigned_model for r in await engine.orchestrator.get_tiers("user-a")}

        assert tiers == {
            Tier.SIMPLE: "claude-haiku-4-5-20251001",
            Tier.STANDARD: "claude-haiku-4-5-20251001",
            Tier.COMPLEX: "claude-opus-4-6",
            Tier.REASONING: "claude-opus-4-6",
        }
