"""Tier resolver: conversational turn -> {tier, model, provider}.

Never raises for a missing model. A user with no providers, or a tier with
nothing assigned, gets ``model=None, provider=None``; callers decide what
to do with that.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from model_routing.routing.classifier import HeuristicTierClassifier, TierClassifier
from model_routing.routing.orchestrator import AssignmentOrchestrator
from model_routing.routing.pricing_cache import PricingCache
from model_routing.routing.types import Tier

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedRoute:
    tier: Tier
    model: str | None
    provider: str | None
    reason: str
    confidence: float
    score: float


class TierResolver:
    def __init__(
        self,
        orchestrator: AssignmentOrchestrator,
        cache: PricingCache,
        classifier: TierClassifier | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._cache = cache
        self._classifier = classifier or HeuristicTierClassifier()

    async def _effective_for(self, user_id: str, tier: Tier) -> tuple[str | None, str | None]:
        tiers = await self._orchestrator.get_tiers(user_id)
        assignment = next((row for row in tiers if row.tier == tier), None)
        if assignment is None:
            return None, None

        model = await self._orchestrator.get_effective_model(user_id, assignment)
        if model is None:
            return None, None

        entry = self._cache.get_by_model(model)
        return model, entry.provider if entry is not None else None

    async def resolve(
        self,
        user_id: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        tool_choice: Any = None,
        prior_tier: str | None = None,
        recent_tiers: Sequence[str] | None = None,
    ) -> ResolvedRoute:
        """Classify the turn and return the effective model for its tier."""
        classification = self._classifier.classify(
            messages,
            tools=tools,
            tool_choice=tool_choice,
            prior_tier=prior_tier,
            recent_tiers=recent_tiers,
        )
        model, provider = await self._effective_for(user_id, classification.tier)

        log.info(
            "routing.resolved",
            user_id=user_id,
            tier=classification.tier.value,
            model=model,
            provider=provider,
            reason=classification.reason,
        )
        return ResolvedRoute(
            tier=classification.tier,
            model=model,
            provider=provider,
            reason=classification.reason,
            confidence=classification.confidence,
            score=classification.score,
        )

    async def resolve_for_tier(self, user_id: str, tier: Tier) -> ResolvedRoute:
        """Heartbeat lookup: no classification, fixed confidence and score."""
        model, provider = await self._effective_for(user_id, tier)
        return ResolvedRoute(
            tier=tier,
            model=model,
            provider=provider,
            reason="heartbeat",
            confidence=1.0,
            score=0.0,
        )
