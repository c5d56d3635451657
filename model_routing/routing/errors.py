"""Domain exceptions raised by the routing core.

Only mutations on unknown providers/tiers raise. Lookups never do: a cache
miss or an unusable override has a defined empty/fallback result instead.
"""

from __future__ import annotations


class RoutingError(Exception):
    """Base class for routing errors surfaced to API clients."""


class ProviderNotFoundError(RoutingError):
    """Raised when removing a provider the user never connected."""


class UnknownTierError(RoutingError):
    """Raised for a tier label outside simple/standard/complex/reasoning."""
