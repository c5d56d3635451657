"""Quality scorer: maps a catalog entry to a 1-5 quality rating.

The score is derived from price, capabilities and context window. Price is
the strongest available proxy for model capability; "mini"-class models are
held back a notch at every price point.

Rules are an ordered list of (predicate, score) pairs, evaluated top to
bottom, first match wins. The ordering is load-bearing: e.g. a free local
model must never reach the paid-tier rules below it.

A small manual override table short-circuits the formula for models it
demonstrably misjudges. Keep it minimal.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType

from model_routing.routing.types import CatalogEntry

QUALITY_OVERRIDES: Mapping[str, int] = MappingProxyType(
    {
        "claude-sonnet-4-5-20250929": 4,
        "claude-sonnet-4-20250514": 4,
        "gpt-4o": 3,
        "kimi-k2": 3,
        "mistral-large": 3,
        "grok-2": 3,
    }
)

_MINI_PATTERN = re.compile(r"\b(?:mini|nano|haiku|micro)\b", re.IGNORECASE)

BIG_CONTEXT = 1_000_000
FRONTIER_PRICE = Decimal("8.0")  # USD per million tokens (input + output)
PREMIUM_PRICE = Decimal("3.0")
MID_PRICE = Decimal("1.0")
BUDGET_PRICE = Decimal("0.50")


@dataclass(frozen=True)
class ScoreSignals:
    """Inputs the scoring rules look at, derived once per entry."""

    total_per_million: Decimal
    reasoning: bool
    code: bool
    is_mini: bool
    big_context: bool

    @property
    def has_both(self) -> bool:
        return self.reasoning and self.code

    @property
    def free(self) -> bool:
        return self.total_per_million == 0

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> ScoreSignals:
        return cls(
            total_per_million=entry.total_price_per_million,
            reasoning=entry.capability_reasoning,
            code=entry.capability_code,
            is_mini=_MINI_PATTERN.search(entry.model_name) is not None,
            big_context=entry.context_window >= BIG_CONTEXT,
        )


Rule = tuple[Callable[[ScoreSignals], bool], int]

SCORE_RULES: tuple[Rule, ...] = (
    # Local / free models
    (lambda s: s.free and s.has_both and not s.is_mini, 3),
    (lambda s: s.free and s.reasoning and not s.is_mini, 3),
    (lambda s: s.free and s.reasoning and s.is_mini, 2),
    (lambda s: s.free and s.code, 2),
    (lambda s: s.free, 1),
    # Frontier
    (lambda s: s.total_per_million >= FRONTIER_PRICE and s.has_both and not s.is_mini, 5),
    (lambda s: s.total_per_million >= FRONTIER_PRICE and s.code and s.big_context, 5),
    # Strong
    (lambda s: s.total_per_million >= MID_PRICE and s.reasoning and not s.is_mini, 4),
    (lambda s: s.total_per_million >= FRONTIER_PRICE and s.code, 4),
    # Capable
    (lambda s: s.total_per_million >= PREMIUM_PRICE and s.code and not s.is_mini, 3),
    (lambda s: s.total_per_million >= BUDGET_PRICE and s.has_both and not s.is_mini, 3),
    (lambda s: s.reasoning and s.is_mini and s.total_per_million >= BUDGET_PRICE, 3),
    # Everything else
    (lambda s: s.code, 2),
)

DEFAULT_SCORE = 1


def compute_quality_score(entry: CatalogEntry) -> int:
    """Return the 1-5 quality score for ``entry``. Pure, no I/O."""
    override = QUALITY_OVERRIDES.get(entry.model_name)
    if override is not None:
        return override

    signals = ScoreSignals.from_entry(entry)
    for predicate, score in SCORE_RULES:
        if predicate(signals):
            return score
    return DEFAULT_SCORE
