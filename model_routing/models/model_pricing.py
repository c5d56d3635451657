"""Model pricing catalog ORM model.

One row per model, keyed by its canonical name. Rows are written by catalog
sync and seeding; the routing core only ever rewrites ``quality_score``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from model_routing.database import Base

# Per-token prices go down to ~1e-8 USD
PRICE_TYPE = Numeric(18, 12)


class ModelPricing(Base):
    """Price and capability metadata for one model.

    Attributes:
        model_name: Canonical model identifier (primary key)
        provider: Provider label as published (case preserved)
        input_price_per_token: USD per input token
        output_price_per_token: USD per output token
        context_window: Max context length in tokens
        capability_reasoning: Extended reasoning support
        capability_code: Suitable for code and tool use
        quality_score: 1-5 derived quality rating
        updated_at: Last write (UTC)
    """

    __tablename__ = "model_pricing"

    model_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    input_price_per_token: Mapped[Decimal] = mapped_column(PRICE_TYPE, nullable=False, default=0)
    output_price_per_token: Mapped[Decimal] = mapped_column(PRICE_TYPE, nullable=False, default=0)
    context_window: Mapped[int] = mapped_column(Integer, nullable=False, default=128_000)
    capability_reasoning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    capability_code: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quality_score: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<ModelPricing {self.model_name} provider={self.provider} q={self.quality_score}>"
