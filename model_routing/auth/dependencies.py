"""FastAPI dependencies for authentication and engine access.

Key dependencies:
- get_app_settings: the Settings the application was created with
- get_current_user_id: validate the bearer token and return its ``sub``
- get_engine: the RoutingEngine created in the application lifespan
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, Request, status

from model_routing.auth.tokens import TokenValidationError, validate_token
from model_routing.config import Settings
from model_routing.routing.engine import RoutingEngine
from model_routing.telemetry.logging import bind_user_context

log = structlog.get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> str:
    """Extract and validate the Bearer token. Raises HTTP 401 on any failure."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.removeprefix("Bearer ").strip()
    try:
        claims = validate_token(token, settings)
    except TokenValidationError as exc:
        log.info("auth.token_rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    user_id = str(claims["sub"])
    bind_user_context(user_id)
    return user_id


def get_engine(request: Request) -> RoutingEngine:
    engine: RoutingEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Routing engine not initialized",
        )
    return engine
