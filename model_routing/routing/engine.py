"""Wiring for the routing core.

RoutingEngine bundles the long-lived collaborators (store, tracker, cache,
orchestrator, resolver, catalog sync) so the app factory, scripts and
tests build them the same way.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from model_routing.config import Settings
from model_routing.core.crypto import CredentialCipher
from model_routing.routing.catalog_sync import OllamaCatalogSync
from model_routing.routing.classifier import TierClassifier
from model_routing.routing.orchestrator import AssignmentOrchestrator
from model_routing.routing.pricing_cache import PricingCache
from model_routing.routing.resolver import TierResolver
from model_routing.routing.store import RoutingStore
from model_routing.routing.unresolved import UnresolvedModelTracker

log = structlog.get_logger(__name__)


@dataclass
class RoutingEngine:
    store: RoutingStore
    tracker: UnresolvedModelTracker
    cache: PricingCache
    orchestrator: AssignmentOrchestrator
    resolver: TierResolver
    catalog_sync: OllamaCatalogSync

    async def start(self, *, sync_catalog: bool = False) -> None:
        """Load the catalog and start background flushing."""
        await self.cache.reload()
        self.tracker.start()
        if sync_catalog:
            await self.catalog_sync.sync()
        log.info("routing_engine.started", models=len(self.cache))

    async def stop(self) -> None:
        await self.tracker.stop()
        log.info("routing_engine.stopped")


def build_engine(
    store: RoutingStore,
    settings: Settings,
    *,
    classifier: TierClassifier | None = None,
    ollama_transport: httpx.AsyncBaseTransport | None = None,
) -> RoutingEngine:
    """Assemble a RoutingEngine over ``store`` using ``settings``."""
    tracker = UnresolvedModelTracker(
        store,
        flush_interval_seconds=settings.unresolved_flush_interval_seconds,
        max_pending=settings.unresolved_max_pending,
    )
    cache = PricingCache(store, tracker)
    cipher = CredentialCipher(settings.secret_key.get_secret_value())
    orchestrator = AssignmentOrchestrator(store, cache, cipher)
    resolver = TierResolver(orchestrator, cache, classifier)
    catalog_sync = OllamaCatalogSync(
        store,
        cache,
        orchestrator,
        base_url=settings.ollama_base_url,
        timeout_seconds=settings.ollama_timeout_seconds,
        transport=ollama_transport,
    )
    return RoutingEngine(
        store=store,
        tracker=tracker,
        cache=cache,
        orchestrator=orchestrator,
        resolver=resolver,
        catalog_sync=catalog_sync,
    )
