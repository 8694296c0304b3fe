"""
Provider factory — resolves a provider name to an instance.
"""

from __future__ import annotations

from typing import Callable, Mapping

from leakguard.errors import UnknownProviderError
from leakguard.providers import LiveDataProvider


def get_provider(
    provider_name: str,
    registry: Mapping[str, Callable[[], LiveDataProvider]],
) -> LiveDataProvider:
    """Factory — returns a fresh provider registered under provider_name."""
    try:
        constructor = registry[provider_name]
    except KeyError:
        raise UnknownProviderError(f"Unknown live data provider: {provider_name}") from None
    return constructor()
