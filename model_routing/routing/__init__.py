"""Model routing core.

Decides, per user, which concrete model backs each of the four tiers
(simple, standard, complex, reasoning) given the user's connected providers
and the model pricing catalog.

Components (leaf first):
- aliases: provider / model name normalisation
- quality: 1-5 quality score from price and capabilities
- pricing_cache: immutable catalog snapshot with alias lookup
- selector: per-tier best-model policy
- orchestrator: per-user provider and tier-assignment state
- classifier / resolver: conversational turn -> tier -> model
"""

from __future__ import annotations

from model_routing.routing.errors import (
    ProviderNotFoundError,
    RoutingError,
    UnknownTierError,
)
from model_routing.routing.types import (
    TIER_ORDER,
    CatalogEntry,
    ConnectedProvider,
    ModelChoice,
    Tier,
    TierAssignment,
    parse_tier,
)

__all__ = [
    "TIER_ORDER",
    "CatalogEntry",
    "ConnectedProvider",
    "ModelChoice",
    "ProviderNotFoundError",
    "RoutingError",
    "Tier",
    "TierAssignment",
    "UnknownTierError",
    "parse_tier",
]
