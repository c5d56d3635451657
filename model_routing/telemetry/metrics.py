"""Prometheus counters for the routing subsystem.

Metrics exported:
- routing_unresolved_lookups_total: catalog lookups that matched no model
- routing_recalculations_total: per-user tier recalculations
- routing_overrides_cleared_total: manual overrides cleared, by reason
- routing_catalog_sync_models_total: models upserted by catalog sync
- routing_provider_connected_total: newly connected providers
- routing_score_corrections_total: quality scores rewritten on cache reload

A private registry keeps these apart from any default-registry exporters
(and lets tests create several apps in one process).
"""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    generate_latest,
)

REGISTRY = CollectorRegistry(auto_describe=True)


unresolved_lookups_total = Counter(
    "routing_unresolved_lookups_total",
    "Model lookups that matched no catalog entry after alias resolution",
    registry=REGISTRY,
)

recalculations_total = Counter(
    "routing_recalculations_total",
    "Tier auto-assignment recalculations",
    registry=REGISTRY,
)

overrides_cleared_total = Counter(
    "routing_overrides_cleared_total",
    "Manual tier overrides cleared automatically or on request",
    ["reason"],
    registry=REGISTRY,
)

catalog_sync_models_total = Counter(
    "routing_catalog_sync_models_total",
    "Models upserted by catalog synchronization",
    registry=REGISTRY,
)

provider_connected_total = Counter(
    "routing_provider_connected_total",
    "Providers connected for the first time",
    registry=REGISTRY,
)

score_corrections_total = Counter(
    "routing_score_corrections_total",
    "Stored quality scores corrected during cache reload",
    registry=REGISTRY,
)


def get_metrics() -> Response:
    """Render the private registry in Prometheus exposition format."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        status_code=200,
    )
