"""Routing configuration and resolution endpoints.

All endpoints act on the authenticated user (JWT ``sub``).

GET    /routing/providers                 - Connected providers (no credentials)
POST   /routing/providers                 - Connect or reconnect a provider
POST   /routing/providers/deactivate-all  - Disconnect every provider
DELETE /routing/providers/{provider}      - Disconnect one provider
GET    /routing/tiers                     - The four tier assignments
PUT    /routing/tiers/{tier}              - Pin a model to a tier
DELETE /routing/tiers/{tier}              - Remove a tier's pin
POST   /routing/tiers/reset-all           - Remove every pin
GET    /routing/available-models          - Catalog entries the user can route to
POST   /routing/catalog/sync              - Pull local models and reload the catalog
POST   /routing/resolve                   - Classify a turn and return its model
GET    /routing/resolve/{tier}            - Heartbeat lookup for one tier
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from model_routing.auth.dependencies import get_current_user_id, get_engine
from model_routing.routing.engine import RoutingEngine
from model_routing.routing.errors import ProviderNotFoundError, UnknownTierError
from model_routing.routing.types import ConnectedProvider, Tier, parse_tier

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/routing", tags=["routing"])


# ------------------------------------------------------------------ #
# Request / Response schemas
# ------------------------------------------------------------------ #


class ProviderConnect(BaseModel):
    """Request body for connecting a provider."""

    provider: str = Field(..., min_length=1, max_length=100, description="Provider name, e.g. 'openai'")
    credential: str | None = Field(
        None,
        min_length=1,
        max_length=4096,
        description="Provider API key (stored encrypted; omit for local providers)",
    )


class ProviderResponse(BaseModel):
    """Connected provider (never includes the credential)."""

    id: str
    provider: str
    is_active: bool
    has_credential: bool
    key_prefix: str | None
    connected_at: datetime


class ProviderConnectResponse(BaseModel):
    id: str
    provider: str
    is_active: bool


class NotificationsResponse(BaseModel):
    ok: bool = True
    notifications: list[str] = Field(default_factory=list)


class TierResponse(BaseModel):
    tier: Tier
    override_model: str | None
    auto_assigned_model: str | None
    effective_model: str | None
    updated_at: datetime


class OverrideRequest(BaseModel):
    model: str = Field(..., min_length=1, max_length=255, description="Model to pin to the tier")


class OkResponse(BaseModel):
    ok: bool = True


class AvailableModelResponse(BaseModel):
    model_name: str
    provider: str
    input_price_per_token: float
    output_price_per_token: float
    context_window: int
    capability_reasoning: bool
    capability_code: bool
    quality_score: int


class CatalogSyncResponse(BaseModel):
    count: int


class ResolveRequest(BaseModel):
    """A conversational turn to route."""

    messages: list[dict[str, Any]] = Field(..., min_length=1, description="Chat messages, oldest first")
    tools: list[dict[str, Any]] | None = Field(None, description="Tool definitions offered to the model")
    tool_choice: str | dict[str, Any] | None = None
    prior_tier: str | None = None
    recent_tiers: list[str] | None = Field(None, max_length=50)


class ResolveResponse(BaseModel):
    tier: Tier
    model: str | None
    provider: str | None
    reason: str
    confidence: float
    score: float


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _build_provider_response(row: ConnectedProvider) -> ProviderResponse:
    return ProviderResponse(
        id=row.id,
        provider=row.provider,
        is_active=row.is_active,
        has_credential=row.has_credential,
        key_prefix=row.key_prefix,
        connected_at=row.connected_at,
    )


def _tier_or_404(label: str) -> Tier:
    try:
        return parse_tier(label)
    except UnknownTierError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown tier: {label}",
        )


# ------------------------------------------------------------------ #
# Providers
# ------------------------------------------------------------------ #


@router.get("/providers", response_model=list[ProviderResponse], summary="List connected providers")
async def list_providers(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> list[ProviderResponse]:
    rows = await engine.orchestrator.get_providers(user_id)
    return [_build_provider_response(row) for row in rows]


@router.post(
    "/providers",
    response_model=ProviderConnectResponse,
    summary="Connect a provider",
)
async def connect_provider(
    body: ProviderConnect,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> ProviderConnectResponse:
    """Connect (or reactivate) a provider and recompute tier assignments."""
    row, _is_new = await engine.orchestrator.upsert_provider(user_id, body.provider, body.credential)
    return ProviderConnectResponse(id=row.id, provider=row.provider, is_active=row.is_active)


@router.post(
    "/providers/deactivate-all",
    response_model=NotificationsResponse,
    summary="Disconnect all providers",
)
async def deactivate_all_providers(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> NotificationsResponse:
    notifications = await engine.orchestrator.deactivate_all_providers(user_id)
    return NotificationsResponse(notifications=notifications)


@router.delete(
    "/providers/{provider}",
    response_model=NotificationsResponse,
    summary="Disconnect a provider",
)
async def remove_provider(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> NotificationsResponse:
    """Disconnect ``provider``. Overrides it backed fall back to automatic mode."""
    try:
        notifications = await engine.orchestrator.remove_provider(user_id, provider)
    except ProviderNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider {provider} not found",
        )
    return NotificationsResponse(notifications=notifications)


# ------------------------------------------------------------------ #
# Tiers
# ------------------------------------------------------------------ #


@router.get("/tiers", response_model=list[TierResponse], summary="List tier assignments")
async def list_tiers(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> list[TierResponse]:
    rows = await engine.orchestrator.get_tiers(user_id)
    result: list[TierResponse] = []
    for row in rows:
        effective = await engine.orchestrator.get_effective_model(user_id, row)
        result.append(
            TierResponse(
                tier=row.tier,
                override_model=row.override_model,
                auto_assigned_model=row.auto_assigned_model,
                effective_model=effective,
                updated_at=row.updated_at,
            )
        )
    return result


@router.post("/tiers/reset-all", response_model=OkResponse, summary="Clear all overrides")
async def reset_all_overrides(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> OkResponse:
    await engine.orchestrator.reset_all_overrides(user_id)
    return OkResponse()


@router.put("/tiers/{tier}", response_model=TierResponse, summary="Override a tier's model")
async def set_override(
    tier: str,
    body: OverrideRequest,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> TierResponse:
    row = await engine.orchestrator.set_override(user_id, _tier_or_404(tier), body.model)
    effective = await engine.orchestrator.get_effective_model(user_id, row)
    return TierResponse(
        tier=row.tier,
        override_model=row.override_model,
        auto_assigned_model=row.auto_assigned_model,
        effective_model=effective,
        updated_at=row.updated_at,
    )


@router.delete("/tiers/{tier}", response_model=OkResponse, summary="Clear a tier's override")
async def clear_override(
    tier: str,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> OkResponse:
    await engine.orchestrator.clear_override(user_id, _tier_or_404(tier))
    return OkResponse()


# ------------------------------------------------------------------ #
# Catalog
# ------------------------------------------------------------------ #


@router.get(
    "/available-models",
    response_model=list[AvailableModelResponse],
    summary="Models served by connected providers",
)
async def available_models(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> list[AvailableModelResponse]:
    entries = await engine.orchestrator.available_models(user_id)
    return [
        AvailableModelResponse(
            model_name=e.model_name,
            provider=e.provider,
            input_price_per_token=float(e.input_price_per_token),
            output_price_per_token=float(e.output_price_per_token),
            context_window=e.context_window,
            capability_reasoning=e.capability_reasoning,
            capability_code=e.capability_code,
            quality_score=e.quality_score,
        )
        for e in entries
    ]


@router.post("/catalog/sync", response_model=CatalogSyncResponse, summary="Sync local models")
async def sync_catalog(
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> CatalogSyncResponse:
    count = await engine.catalog_sync.sync()
    log.info("routing.catalog_sync_requested", user_id=user_id, count=count)
    return CatalogSyncResponse(count=count)


# ------------------------------------------------------------------ #
# Resolution
# ------------------------------------------------------------------ #


@router.post("/resolve", response_model=ResolveResponse, summary="Resolve a turn to a model")
async def resolve(
    body: ResolveRequest,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> ResolveResponse:
    route = await engine.resolver.resolve(
        user_id,
        body.messages,
        tools=body.tools,
        tool_choice=body.tool_choice,
        prior_tier=body.prior_tier,
        recent_tiers=body.recent_tiers,
    )
    return ResolveResponse(
        tier=route.tier,
        model=route.model,
        provider=route.provider,
        reason=route.reason,
        confidence=route.confidence,
        score=route.score,
    )


@router.get("/resolve/{tier}", response_model=ResolveResponse, summary="Heartbeat lookup for a tier")
async def resolve_for_tier(
    tier: str,
    user_id: str = Depends(get_current_user_id),
    engine: RoutingEngine = Depends(get_engine),
) -> ResolveResponse:
    route = await engine.resolver.resolve_for_tier(user_id, _tier_or_404(tier))
    return ResolveResponse(
        tier=route.tier,
        model=route.model,
        provider=route.provider,
        reason=route.reason,
        confidence=route.confidence,
        score=route.score,
    )
