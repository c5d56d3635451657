"""Create model routing tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Adds:
- model_pricing table (one row per catalog model)
  - model_name VARCHAR(255) PK
  - provider VARCHAR(100)
  - input_price_per_token NUMERIC(18, 12)
  - output_price_per_token NUMERIC(18, 12)
  - context_window INTEGER
  - capability_reasoning BOOLEAN
  - capability_code BOOLEAN
  - quality_score INTEGER   1-5
  - updated_at TIMESTAMP WITH TIME ZONE

- user_providers table (one row per user and provider)
  - id UUID PK
  - user_id VARCHAR(255)
  - provider VARCHAR(100)   lower-case
  - is_active BOOLEAN
  - credential_encrypted TEXT (nullable)   Fernet token
  - key_prefix VARCHAR(16) (nullable)
  - connected_at / updated_at TIMESTAMP WITH TIME ZONE

- tier_assignments table (four rows per initialised user)
  - id UUID PK
  - user_id VARCHAR(255)
  - tier VARCHAR(20)   simple | standard | complex | reasoning
  - override_model VARCHAR(255) (nullable)
  - auto_assigned_model VARCHAR(255) (nullable)
  - updated_at TIMESTAMP WITH TIME ZONE

- unresolved_models table (aggregated lookup misses)
  - model_name VARCHAR(255) PK
  - occurrence_count INTEGER
  - first_seen / last_seen TIMESTAMP WITH TIME ZONE
  - resolved BOOLEAN

Constraints and indexes:
- uq_user_providers_user_provider      (user_id, provider)
- ix_user_providers_user_active        (user_id, is_active)
- uq_tier_assignments_user_tier        (user_id, tier)
- ix_tier_assignments_user_id          (user_id)
- ix_tier_assignments_override_model   (override_model)
- ix_model_pricing_provider            (provider)

Notes:
- user_id is the opaque JWT subject; there is no users table to reference.
- The upsert paths rely on the two named unique constraints
  (ON CONFLICT ON CONSTRAINT ...), so renaming them requires a code change.
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create model_pricing, user_providers, tier_assignments, and unresolved_models."""

    # ------------------------------------------------------------------
    # model_pricing - shared catalog
    # ------------------------------------------------------------------
    op.create_table(
        "model_pricing",
        sa.Column(
            "model_name",
            sa.String(255),
            primary_key=True,
            nullable=False,
            comment="Canonical model identifier",
        ),
        sa.Column(
            "provider",
            sa.String(100),
            nullable=False,
            comment="Provider label as published, case preserved",
        ),
        sa.Column(
            "input_price_per_token",
            sa.Numeric(18, 12),
            nullable=False,
            server_default="0",
            comment="USD per input token",
        ),
        sa.Column(
            "output_price_per_token",
            sa.Numeric(18, 12),
            nullable=False,
            server_default="0",
            comment="USD per output token",
        ),
        sa.Column(
            "context_window",
            sa.Integer(),
            nullable=False,
            server_default="128000",
            comment="Max context length in tokens",
        ),
        sa.Column(
            "capability_reasoning",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Extended reasoning support",
        ),
        sa.Column(
            "capability_code",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Suitable for code and tool use",
        ),
        sa.Column(
            "quality_score",
            sa.Integer(),
            nullable=False,
            server_default="3",
            comment="Derived quality rating, 1-5",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of last write",
        ),
    )
    op.create_index("ix_model_pricing_provider", "model_pricing", ["provider"])

    # ------------------------------------------------------------------
    # user_providers - per-user provider connections
    # ------------------------------------------------------------------
    op.create_table(
        "user_providers",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            nullable=False,
            comment="Surrogate primary key",
        ),
        sa.Column(
            "user_id",
            sa.String(255),
            nullable=False,
            comment="JWT subject of the owning user",
        ),
        sa.Column(
            "provider",
            sa.String(100),
            nullable=False,
            comment="Lower-case provider name",
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment="False once disconnected; the row is kept",
        ),
        sa.Column(
            "credential_encrypted",
            sa.Text(),
            nullable=True,
            comment="Fernet-encrypted API key; never returned by the API",
        ),
        sa.Column(
            "key_prefix",
            sa.String(16),
            nullable=True,
            comment="First characters of the key, for display",
        ),
        sa.Column(
            "connected_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of first connection",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of last modification",
        ),
        sa.UniqueConstraint("user_id", "provider", name="uq_user_providers_user_provider"),
    )
    op.create_index(
        "ix_user_providers_user_active",
        "user_providers",
        ["user_id", "is_active"],
    )

    # ------------------------------------------------------------------
    # tier_assignments - four rows per user
    # ------------------------------------------------------------------
    op.create_table(
        "tier_assignments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            nullable=False,
            comment="Surrogate primary key",
        ),
        sa.Column(
            "user_id",
            sa.String(255),
            nullable=False,
            comment="JWT subject of the owning user",
        ),
        sa.Column(
            "tier",
            sa.String(20),
            nullable=False,
            comment="simple | standard | complex | reasoning",
        ),
        sa.Column(
            "override_model",
            sa.String(255),
            nullable=True,
            comment="Manual pin; wins over the automatic choice while available",
        ),
        sa.Column(
            "auto_assigned_model",
            sa.String(255),
            nullable=True,
            comment="Best model for the tier among connected providers",
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of last modification",
        ),
        sa.UniqueConstraint("user_id", "tier", name="uq_tier_assignments_user_tier"),
    )
    op.create_index("ix_tier_assignments_user_id", "tier_assignments", ["user_id"])
    op.create_index(
        "ix_tier_assignments_override_model",
        "tier_assignments",
        ["override_model"],
    )

    # ------------------------------------------------------------------
    # unresolved_models - aggregated catalog misses
    # ------------------------------------------------------------------
    op.create_table(
        "unresolved_models",
        sa.Column(
            "model_name",
            sa.String(255),
            primary_key=True,
            nullable=False,
            comment="Model name as requested",
        ),
        sa.Column(
            "occurrence_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
            comment="Lookups that failed to resolve",
        ),
        sa.Column(
            "first_seen",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of first miss",
        ),
        sa.Column(
            "last_seen",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="UTC timestamp of latest miss",
        ),
        sa.Column(
            "resolved",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
            comment="Set by operators once an alias or catalog row exists",
        ),
    )


def downgrade() -> None:
    """Drop the model routing tables."""

    op.drop_table("unresolved_models")

    op.drop_index("ix_tier_assignments_override_model", table_name="tier_assignments")
    op.drop_index("ix_tier_assignments_user_id", table_name="tier_assignments")
    op.drop_table("tier_assignments")

    op.drop_index("ix_user_providers_user_active", table_name="user_providers")
    op.drop_table("user_providers")

    op.drop_index("ix_model_pricing_provider", table_name="model_pricing")
    op.drop_table("model_pricing")
