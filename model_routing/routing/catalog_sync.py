"""Catalog synchronization from a local Ollama endpoint.

Flow of one sync:
1. GET {base_url}/api/tags (short timeout)
2. Upsert one zero-priced catalog row per installed model, with
   capabilities and context window inferred from name and family
3. Delete Ollama rows for models no longer installed
4. Reload the pricing cache once
5. Drop user overrides that pointed at removed models

An unreachable or misbehaving endpoint is not an error: the sync logs a
warning and reports zero models, leaving the catalog untouched. Individual
model objects that cannot become a catalog row are skipped with a warning.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import httpx
import structlog

from model_routing.routing.orchestrator import AssignmentOrchestrator
from model_routing.routing.pricing_cache import PricingCache
from model_routing.routing.quality import compute_quality_score
from model_routing.routing.store import RoutingStore
from model_routing.routing.types import DEFAULT_CONTEXT_WINDOW, CatalogEntry
from model_routing.telemetry import metrics

log = structlog.get_logger(__name__)

OLLAMA_PROVIDER = "Ollama"

REASONING_MODEL_PREFIXES: tuple[str, ...] = (
    "deepseek-r1",
    "qwq",
    "qwen3",
    "marco-o1",
    "smallthinker",
)

CODE_NAME_MARKERS: tuple[str, ...] = ("code", "coder", "starcoder", "codestral")

# Large general-purpose families that handle code and tool use well
GENERAL_CODE_FAMILIES = frozenset(
    {
        "llama",
        "gemma2",
        "gemma3",
        "qwen2",
        "qwen2.5",
        "qwen3",
        "mistral",
        "mixtral",
        "command-r",
        "phi3",
        "phi4",
    }
)

FAMILY_CONTEXT_WINDOWS: Mapping[str, int] = {
    "llama": 128_000,
    "qwen2": 128_000,
    "qwen2.5": 128_000,
    "qwen3": 128_000,
    "phi3": 128_000,
    "command-r": 128_000,
    "gemma": 8_192,
    "gemma2": 8_192,
    "mistral": 32_768,
    "mixtral": 32_768,
    "phi4": 16_384,
}


def normalize_model_name(name: str) -> str:
    """Drop the implicit ``:latest`` tag; keep any other tag."""
    return name[: -len(":latest")] if name.endswith(":latest") else name


def is_reasoning_model(name: str) -> bool:
    base = name.split(":", 1)[0].lower()
    return base.startswith(REASONING_MODEL_PREFIXES)


def is_code_model(name: str, family: str | None) -> bool:
    base = name.split(":", 1)[0].lower()
    if any(marker in base for marker in CODE_NAME_MARKERS):
        return True
    return family is not None and family.lower() in GENERAL_CODE_FAMILIES


def context_window_for(family: str | None) -> int:
    if family is None:
        return DEFAULT_CONTEXT_WINDOW
    return FAMILY_CONTEXT_WINDOWS.get(family.lower(), DEFAULT_CONTEXT_WINDOW)


def entry_from_tag(model: Mapping[str, Any]) -> CatalogEntry:
    """Build a catalog row from one /api/tags model object."""
    name = normalize_model_name(str(model["name"]))
    details = model.get("details") or {}
    family = details.get("family") if isinstance(details, Mapping) else None
    if not isinstance(family, str):
        family = None

    entry = CatalogEntry(
        model_name=name,
        provider=OLLAMA_PROVIDER,
        input_price_per_token=Decimal(0),
        output_price_per_token=Decimal(0),
        context_window=context_window_for(family),
        capability_reasoning=is_reasoning_model(name),
        capability_code=is_code_model(name, family),
    )
    return entry.with_score(compute_quality_score(entry))


class OllamaCatalogSync:
    """Pulls locally installed models into the pricing catalog."""

    def __init__(
        self,
        store: RoutingStore,
        cache: PricingCache,
        orchestrator: AssignmentOrchestrator,
        *,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._orchestrator = orchestrator
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def _fetch_models(self) -> list[dict[str, Any]]:
        url = f"{self._base_url}/api/tags"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("catalog_sync.unreachable", url=url, error=str(exc))
            return []

        models = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            return []
        return [m for m in models if isinstance(m, dict) and m.get("name")]

    async def sync(self) -> int:
        """Run one synchronization pass.

        Returns:
            Number of models upserted (0 when the endpoint is unavailable).
        """
        entries: list[CatalogEntry] = []
        for model in await self._fetch_models():
            try:
                entries.append(entry_from_tag(model))
            except ValueError as exc:
                log.warning("catalog_sync.invalid_model", model=model.get("name"), error=str(exc))

        # Nothing usable must not be read as "everything was uninstalled"
        if not entries:
            log.info("catalog_sync.no_models", base_url=self._base_url)
            return 0

        for entry in entries:
            await self._store.upsert_pricing(entry)

        synced = {e.model_name for e in entries}
        stale = [
            row.model_name
            for row in await self._store.list_pricing()
            if row.provider.lower() == OLLAMA_PROVIDER.lower() and row.model_name not in synced
        ]
        if stale:
            await self._store.delete_pricing(stale)

        await self._cache.reload()

        if stale:
            try:
                await self._orchestrator.invalidate_overrides_for_removed_models(stale)
            except Exception as exc:
                log.error(
                    "catalog_sync.invalidate_failed",
                    removed=stale,
                    error=str(exc),
                    exc_info=True,
                )

        metrics.catalog_sync_models_total.inc(len(entries))
        log.info("catalog_sync.completed", models=len(entries), removed=len(stale))
        return len(entries)
