"""Curated catalog of well-known hosted models.

Prices are USD per token from the providers' public pricing pages. Quality
scores are not stored here: they are computed by the quality scorer at seed
time, and the pricing cache keeps them in sync afterwards.

Seeding is an upsert, so re-running it restores deleted models and refreshes
prices without touching anything else in the catalog.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from model_routing.routing.quality import compute_quality_score
from model_routing.routing.store import RoutingStore
from model_routing.routing.types import CatalogEntry

log = structlog.get_logger(__name__)

# (model_name, provider, input/token, output/token, context_window, reasoning, code)
SEED_MODELS: tuple[tuple[str, str, str, str, int, bool, bool], ...] = (
    # Anthropic
    ("claude-opus-4-6", "Anthropic", "0.000015", "0.000075", 200_000, True, True),
    ("claude-sonnet-4-5-20250929", "Anthropic", "0.000003", "0.000015", 200_000, True, True),
    ("claude-sonnet-4-20250514", "Anthropic", "0.000003", "0.000015", 200_000, True, True),
    ("claude-haiku-4-5-20251001", "Anthropic", "0.000001", "0.000005", 200_000, False, True),
    # OpenAI
    ("gpt-4o", "OpenAI", "0.0000025", "0.00001", 128_000, False, True),
    ("gpt-4o-mini", "OpenAI", "0.00000015", "0.0000006", 128_000, False, True),
    ("gpt-4.1", "OpenAI", "0.000002", "0.000008", 1_047_576, False, True),
    ("gpt-4.1-mini", "OpenAI", "0.0000004", "0.0000016", 1_047_576, False, True),
    ("gpt-4.1-nano", "OpenAI", "0.0000001", "0.0000004", 1_047_576, False, False),
    ("o3", "OpenAI", "0.000002", "0.000008", 200_000, True, True),
    ("o3-mini", "OpenAI", "0.0000011", "0.0000044", 200_000, True, True),
    ("o4-mini", "OpenAI", "0.0000011", "0.0000044", 200_000, True, True),
    ("gpt-5.3", "OpenAI", "0.00001", "0.00003", 200_000, True, True),
    ("gpt-5.3-codex", "OpenAI", "0.00001", "0.00003", 200_000, True, True),
    ("gpt-5.3-mini", "OpenAI", "0.0000015", "0.000006", 200_000, True, True),
    # Google
    ("gemini-2.5-pro", "Google", "0.00000125", "0.00001", 1_048_576, True, True),
    ("gemini-2.5-flash", "Google", "0.00000015", "0.0000006", 1_048_576, False, True),
    ("gemini-2.5-flash-lite", "Google", "0.0000001", "0.0000004", 1_048_576, False, False),
    ("gemini-2.0-flash", "Google", "0.0000001", "0.0000004", 1_048_576, False, True),
    # DeepSeek
    ("deepseek-v3", "DeepSeek", "0.00000014", "0.00000028", 128_000, False, True),
    ("deepseek-r1", "DeepSeek", "0.00000055", "0.00000219", 128_000, True, False),
    # Moonshot
    ("kimi-k2", "Moonshot", "0.0000006", "0.0000024", 262_144, True, True),
    # Alibaba
    ("qwen-2.5-72b-instruct", "Alibaba", "0.00000034", "0.00000039", 131_072, False, True),
    ("qwq-32b", "Alibaba", "0.00000012", "0.00000018", 131_072, True, False),
    ("qwen-2.5-coder-32b-instruct", "Alibaba", "0.00000018", "0.00000018", 131_072, False, True),
    ("qwen3-235b-a22b", "Alibaba", "0.0000003", "0.0000012", 131_072, True, True),
    ("qwen3-32b", "Alibaba", "0.0000001", "0.0000003", 131_072, True, True),
    # Mistral
    ("mistral-large", "Mistral", "0.000002", "0.000006", 128_000, False, True),
    ("mistral-small", "Mistral", "0.0000002", "0.0000006", 128_000, False, False),
    ("codestral", "Mistral", "0.0000003", "0.0000009", 256_000, False, True),
    # xAI
    ("grok-3", "xAI", "0.000003", "0.000015", 131_072, True, True),
    ("grok-3-mini", "xAI", "0.0000003", "0.0000005", 131_072, True, True),
    ("grok-3-fast", "xAI", "0.000005", "0.000025", 131_072, False, True),
    ("grok-3-mini-fast", "xAI", "0.0000006", "0.000004", 131_072, False, True),
    ("grok-2", "xAI", "0.000002", "0.00001", 131_072, False, True),
    # Zhipu
    ("glm-4-plus", "Zhipu", "0.0000005", "0.0000005", 128_000, False, True),
    ("glm-4-flash", "Zhipu", "0.00000005", "0.00000005", 128_000, False, False),
    # Amazon
    ("nova-pro", "Amazon", "0.0000008", "0.0000032", 300_000, False, True),
    ("nova-lite", "Amazon", "0.00000006", "0.00000024", 300_000, False, True),
    ("nova-micro", "Amazon", "0.000000035", "0.00000014", 128_000, False, False),
)


def seed_entries() -> list[CatalogEntry]:
    """The seed table as scored CatalogEntry objects."""
    entries: list[CatalogEntry] = []
    for name, provider, input_price, output_price, context, reasoning, code in SEED_MODELS:
        entry = CatalogEntry(
            model_name=name,
            provider=provider,
            input_price_per_token=Decimal(input_price),
            output_price_per_token=Decimal(output_price),
            context_window=context,
            capability_reasoning=reasoning,
            capability_code=code,
        )
        entries.append(entry.with_score(compute_quality_score(entry)))
    return entries


async def seed_catalog(store: RoutingStore) -> int:
    """Upsert the seed table into ``store``. Returns the number of rows."""
    entries = seed_entries()
    for entry in entries:
        await store.upsert_pricing(entry)
    log.info("seed_catalog.seeded", models=len(entries))
    return len(entries)
