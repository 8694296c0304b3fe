"""
Resolver — Concurrent Provider Fetch to Category Inputs

The only async boundary in the package. Fetches every requested category
concurrently, classifies each outcome, and maps it through the failure
semantics table. The output feeds build_multi_provider_constraints.

Provider exceptions never propagate: they become failed results. There
are no timeouts or retries here; providers own their own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Mapping, Optional

from leakguard.constraints import CategoryInput
from leakguard.providers import LiveDataProvider
from leakguard.schemas.classification import ProviderResult, SearchTier
from leakguard.semantics import (
    ProviderOutcome,
    get_failure_semantics,
    outcome_from_result,
)

logger = logging.getLogger(__name__)


async def _safe_fetch(
    category: str,
    provider: LiveDataProvider,
    query: str,
) -> ProviderResult:
    start = time.perf_counter()
    try:
        result = await provider.fetch(query)
    except Exception as e:
        logger.warning(
            "Provider fetch raised: %s", e,
            extra={
                "category": category,
                "provider": provider.name,
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        return ProviderResult.failure(provider.name, f"{type(e).__name__}: {e}")

    logger.debug(
        "Provider fetch complete",
        extra={
            "category": category,
            "provider": provider.name,
            "outcome": "ok" if result.ok else "failed",
            "duration_ms": round((time.perf_counter() - start) * 1000, 3),
        },
    )
    return result


async def fetch_all(
    categories: Iterable[str],
    providers: Mapping[str, LiveDataProvider],
    query: str,
) -> dict[str, Optional[ProviderResult]]:
    """Fetch every category that has a provider, concurrently."""
    categories = list(dict.fromkeys(categories))
    fetchable = [c for c in categories if c in providers]

    results = await asyncio.gather(
        *(_safe_fetch(c, providers[c], query) for c in fetchable)
    )

    fetched: dict[str, Optional[ProviderResult]] = {c: None for c in categories}
    fetched.update(zip(fetchable, results))
    return fetched


async def resolve_categories(
    categories: Iterable[str],
    tier: SearchTier,
    providers: Mapping[str, LiveDataProvider],
    query: str,
    now_ms: Optional[float] = None,
) -> dict[str, Optional[CategoryInput]]:
    """
    Resolve each category to its semantics decision and provider result.

    A low tier skips fetching entirely (every category not_attempted).
    A category with no registered provider is not_attempted. A category
    the semantics table does not know is unresolved (None).
    """
    categories = list(dict.fromkeys(categories))

    if tier == "low":
        fetched: dict[str, Optional[ProviderResult]] = {c: None for c in categories}
    else:
        fetched = await fetch_all(categories, providers, query)

    resolved: dict[str, Optional[CategoryInput]] = {}
    for category in categories:
        result = fetched.get(category)
        outcome = outcome_from_result(result, now_ms)
        try:
            semantics = get_failure_semantics(tier, outcome, category)
        except ValueError as e:
            logger.warning(
                "Category unresolved: %s", e,
                extra={"category": category, "tier": tier, "outcome": outcome.value},
            )
            resolved[category] = None
            continue

        if outcome != ProviderOutcome.VERIFIED_FRESH:
            logger.info(
                "Degraded provider outcome",
                extra={
                    "category": category,
                    "tier": tier,
                    "outcome": outcome.value,
                    "constraint_level": semantics.constraint_level.value,
                },
            )
        resolved[category] = CategoryInput(semantics=semantics, provider_result=result)
    return resolved
