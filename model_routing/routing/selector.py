"""Tier selector: picks the best catalog entry for one tier.

Pure over its inputs. The caller filters ``candidates`` to the user's
active providers beforehand; nothing here touches the cache or the network.

Per-tier policy (candidates pre-sorted by total price, stable):
- simple:    cheapest wins, free models included
- standard:  cheapest with quality >= 2, else the global cheapest
- complex:   highest quality, cheaper wins ties
- reasoning: complex policy over reasoning-capable entries, or over all
             entries when none is reasoning-capable
"""

from __future__ import annotations

from collections.abc import Sequence

from model_routing.routing.types import CatalogEntry, ModelChoice, Tier

STANDARD_MIN_QUALITY = 2


def _by_price(candidates: Sequence[CatalogEntry]) -> list[CatalogEntry]:
    # sorted() is stable, so equal prices keep catalog order
    return sorted(candidates, key=lambda e: e.total_price_per_token)


def _highest_quality(ranked: list[CatalogEntry]) -> CatalogEntry:
    # max() returns the first maximal element, i.e. the cheapest among equals
    return max(ranked, key=lambda e: e.quality_score)


def pick_best(candidates: Sequence[CatalogEntry], tier: Tier) -> ModelChoice | None:
    """Select the best model for ``tier`` from ``candidates``.

    Args:
        candidates: Catalog entries already filtered to connected providers
        tier: Target tier

    Returns:
        ModelChoice with the model name and its quality score, or None when
        there are no candidates.
    """
    if not candidates:
        return None

    ranked = _by_price(candidates)

    if tier == Tier.SIMPLE:
        chosen = ranked[0]
    elif tier == Tier.STANDARD:
        qualified = [e for e in ranked if e.quality_score >= STANDARD_MIN_QUALITY]
        chosen = qualified[0] if qualified else ranked[0]
    elif tier == Tier.COMPLEX:
        chosen = _highest_quality(ranked)
    elif tier == Tier.REASONING:
        reasoning = [e for e in ranked if e.capability_reasoning]
        chosen = _highest_quality(reasoning or ranked)
    else:
        raise ValueError(f"Unhandled tier: {tier!r}")

    return ModelChoice(model_name=chosen.model_name, score=chosen.quality_score)
