"""Provider and model name normalisation.

Callers name models loosely: "openai/gpt-4o", "gpt-4.1-2025-04-14",
"deepseek-chat". The catalog keys models by a single canonical name. These
helpers bridge the two without any I/O.

Resolution order for a name that failed exact lookup:
1. strip a leading "<provider>/" segment
2. strip a trailing date/revision suffix
3. known rebrand / short-name alias
4. prefix and suffix stripped together
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping
from types import MappingProxyType

# Bidirectional: connecting either name makes the other's models available
_PROVIDER_ALIAS_PAIRS: tuple[tuple[str, str], ...] = (
    ("gemini", "google"),
    ("qwen", "alibaba"),
    ("moonshot", "kimi"),
)


def _build_provider_aliases() -> Mapping[str, frozenset[str]]:
    table: dict[str, set[str]] = {}
    for a, b in _PROVIDER_ALIAS_PAIRS:
        table.setdefault(a, set()).add(b)
        table.setdefault(b, set()).add(a)
    return MappingProxyType({name: frozenset(aliases) for name, aliases in table.items()})


PROVIDER_ALIASES: Mapping[str, frozenset[str]] = _build_provider_aliases()

MODEL_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "deepseek-chat": "deepseek-v3",
        "deepseek-reasoner": "deepseek-r1",
        "claude-opus-4": "claude-opus-4-6",
        "claude-sonnet-4": "claude-sonnet-4-20250514",
        "claude-sonnet-4-5": "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5": "claude-haiku-4-5-20251001",
    }
)

# -YYYY-MM-DD, -YYYYMMDD, or a 3-4 digit revision such as -002 / -0324
_VERSION_SUFFIX = re.compile(r"-(?:\d{4}-\d{2}-\d{2}|\d{8}|\d{3,4})$")


def expand_provider_names(names: Iterable[str]) -> set[str]:
    """Lower-case provider names and add their known aliases.

    >>> sorted(expand_provider_names(["Gemini"]))
    ['gemini', 'google']
    """
    expanded: set[str] = set()
    for name in names:
        key = name.strip().lower()
        if not key:
            continue
        expanded.add(key)
        expanded.update(PROVIDER_ALIASES.get(key, ()))
    return expanded


def strip_provider_prefix(name: str) -> str | None:
    """Return ``name`` without its leading "<provider>/" segment, if any."""
    prefix, sep, rest = name.partition("/")
    if not sep or not prefix or not rest:
        return None
    return rest


def strip_version_suffix(name: str) -> str | None:
    """Return ``name`` without a trailing date/revision suffix, if any."""
    stripped = _VERSION_SUFFIX.sub("", name)
    if stripped == name or not stripped:
        return None
    return stripped


def build_alias_index(known_names: Collection[str]) -> dict[str, str]:
    """Model aliases whose canonical target is present in ``known_names``."""
    return {alias: target for alias, target in MODEL_ALIASES.items() if target in known_names}


def resolve_model_name(
    requested: str,
    known_names: Collection[str],
    alias_index: Mapping[str, str] | None = None,
) -> str | None:
    """Map a loosely-written model name onto a known catalog name.

    Args:
        requested: Model identifier that failed exact lookup
        known_names: Canonical names currently in the catalog
        alias_index: Precomputed alias table (defaults to build_alias_index)

    Returns:
        The first known name produced by the resolution rules, or None.
    """
    if alias_index is None:
        alias_index = build_alias_index(known_names)

    without_prefix = strip_provider_prefix(requested)
    if without_prefix is not None and without_prefix in known_names:
        return without_prefix

    without_suffix = strip_version_suffix(requested)
    if without_suffix is not None and without_suffix in known_names:
        return without_suffix

    aliased = alias_index.get(requested)
    if aliased is not None and aliased in known_names:
        return aliased

    if without_prefix is not None:
        aliased = alias_index.get(without_prefix)
        if aliased is not None and aliased in known_names:
            return aliased
        combined = strip_version_suffix(without_prefix)
        if combined is not None and combined in known_names:
            return combined

    return None
