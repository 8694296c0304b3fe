"""
Live Data Provider — Abstract Interface

Every live-data fetch goes through this interface. Concrete clients
(market quotes, FX rates, weather, clocks) live outside this package;
the core only consumes the ProviderResult they return.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from leakguard.schemas.classification import FreshnessPolicy, ProviderResult

__all__ = ["LiveDataProvider", "ProviderResult", "FreshnessPolicy"]


class LiveDataProvider(ABC):
    """Abstract base for live-data providers."""

    # Identifier recorded in results and required citations
    name: str = ""

    @abstractmethod
    async def fetch(self, query: str) -> ProviderResult:
        """
        Fetch live data for a query.

        Implementations report expected failures as
        ProviderResult.failure(...). Anything raised is converted to a
        failed result by the resolver.
        """
        ...
