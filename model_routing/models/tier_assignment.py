"""Tier assignment ORM model.

Exactly one row per (user_id, tier) once the user is initialised. The
override is the user's manual pin; the auto-assigned model is recomputed by
the orchestrator whenever providers or the catalog change.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from model_routing.database import Base


class TierAssignmentRecord(Base):
    __tablename__ = "tier_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "tier", name="uq_tier_assignments_user_tier"),
        # Catalog sync looks overrides up by model across all users
        Index("ix_tier_assignments_override_model", "override_model"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    override_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auto_assigned_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return (
            f"<TierAssignmentRecord user={self.user_id} tier={self.tier} "
            f"override={self.override_model} auto={self.auto_assigned_model}>"
        )
