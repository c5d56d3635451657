"""Value types shared by the routing core.

CatalogEntry is immutable: the pricing cache hands the same instances to
every concurrent reader, so nothing may change them in place. Provider and
tier rows are plain mutable records; stores always return copies.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from model_routing.routing.errors import UnknownTierError

DEFAULT_CONTEXT_WINDOW = 128_000
TOKENS_PER_MILLION = Decimal(1_000_000)


class Tier(StrEnum):
    """The four service levels a routing decision targets."""

    SIMPLE = "simple"
    STANDARD = "standard"
    COMPLEX = "complex"
    REASONING = "reasoning"


# Display and escalation order
TIER_ORDER: tuple[Tier, ...] = (Tier.SIMPLE, Tier.STANDARD, Tier.COMPLEX, Tier.REASONING)


def parse_tier(label: str) -> Tier:
    """Convert a user-supplied label to a Tier (raises UnknownTierError)."""
    try:
        return Tier(label.strip().lower())
    except ValueError:
        raise UnknownTierError(f"Unknown tier: {label!r}") from None


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class CatalogEntry:
    """Price and capability metadata for one model.

    Attributes:
        model_name: Globally unique model identifier
        provider: Free-text provider label (compared case-insensitively)
        input_price_per_token: USD per input token
        output_price_per_token: USD per output token
        context_window: Max context length in tokens
        capability_reasoning: Model supports extended reasoning
        capability_code: Model is suitable for code and tool use
        quality_score: 1-5 quality rating. A stored value outside that range
            is accepted here and rewritten by the scorer on cache reload
    """

    model_name: str
    provider: str
    input_price_per_token: Decimal
    output_price_per_token: Decimal
    context_window: int = DEFAULT_CONTEXT_WINDOW
    capability_reasoning: bool = False
    capability_code: bool = False
    quality_score: int = 3

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_price_per_token", _to_decimal(self.input_price_per_token))
        object.__setattr__(self, "output_price_per_token", _to_decimal(self.output_price_per_token))
        if not self.model_name:
            raise ValueError("model_name must not be empty")
        if self.input_price_per_token < 0 or self.output_price_per_token < 0:
            raise ValueError("prices cannot be negative")
        if self.context_window < 1:
            raise ValueError("context_window must be positive")

    @property
    def total_price_per_token(self) -> Decimal:
        return self.input_price_per_token + self.output_price_per_token

    @property
    def total_price_per_million(self) -> Decimal:
        return self.total_price_per_token * TOKENS_PER_MILLION

    def with_score(self, score: int) -> CatalogEntry:
        return replace(self, quality_score=score)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ConnectedProvider:
    """A provider a user has connected (soft-deleted via is_active)."""

    user_id: str
    provider: str
    is_active: bool = True
    credential_encrypted: str | None = None
    key_prefix: str | None = None
    connected_at: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=_new_id)

    @property
    def has_credential(self) -> bool:
        return self.credential_encrypted is not None


@dataclass
class TierAssignment:
    """Per-user, per-tier assignment: manual override plus computed model."""

    user_id: str
    tier: Tier
    override_model: str | None = None
    auto_assigned_model: str | None = None
    updated_at: datetime = field(default_factory=_utcnow)
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class ModelChoice:
    """Result of picking the best model for a tier."""

    model_name: str
    score: int
