"""Unresolved model ORM model.

Aggregated count of lookups for model names the catalog could not resolve.
Operators use it to spot missing aliases; ``resolved`` is flipped by hand
once an alias or catalog row has been added.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from model_routing.database import Base


class UnresolvedModel(Base):
    __tablename__ = "unresolved_models"

    model_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<UnresolvedModel {self.model_name} count={self.occurrence_count}>"
