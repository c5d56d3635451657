"""Telemetry package for observability.

This package contains:
- Structured logging with request correlation (logging.py)
- Prometheus counters for routing decisions (metrics.py)
"""

from __future__ import annotations

from model_routing.telemetry.logging import (
    RequestIdMiddleware,
    bind_user_context,
    configure_logging,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_user_context",
    "configure_logging",
]
