"""Bearer token validation (PyJWT, HS256 symmetric secret).

Tokens are issued by the platform's identity service with the shared
JWT_SECRET. The routing API only needs the subject: every provider and
tier row is scoped to ``sub``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import jwt
import structlog
from jwt.exceptions import DecodeError, InvalidTokenError

from model_routing.config import Settings

log = structlog.get_logger(__name__)


class TokenValidationError(Exception):
    """Raised when a JWT cannot be validated."""


def validate_token(token: str, settings: Settings) -> dict[str, Any]:
    """Validate a JWT and return its claims.

    Raises TokenValidationError if the token is invalid, expired, has the
    wrong audience, or lacks a subject.
    """
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            options={"verify_exp": True, "verify_aud": True},
        )
    except (DecodeError, InvalidTokenError) as exc:
        raise TokenValidationError(f"Token validation failed: {exc}") from exc

    if not claims.get("sub"):
        raise TokenValidationError("Missing required JWT claim: sub")
    return claims


def create_token(
    *,
    sub: str,
    secret: str,
    audience: str = "model-routing-api",
    expires_in: int = 3600,
) -> str:
    """Create a signed token. Used by tests and local tooling only."""
    now = int(datetime.now(UTC).timestamp())
    payload = {
        "sub": sub,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")
