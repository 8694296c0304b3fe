"""
Collaborator Schemas — Inputs Consumed by the Core

Pydantic models for the two in-process contracts LeakGuard consumes:
the topic classification (from the lens classifier) and provider
results (from live-data clients). Both accept the camelCase field
names the upstream services emit as well as snake_case.
"""

from __future__ import annotations

import time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from leakguard.config import settings


LiveCategory = Literal["market", "crypto", "fx", "weather", "time"]
SearchTier = Literal["low", "medium", "high"]

LIVE_CATEGORIES: tuple[str, ...] = ("market", "crypto", "fx", "weather", "time")
FINANCIAL_CATEGORIES: frozenset[str] = frozenset({"market", "crypto", "fx"})


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ============================================================
# TOPIC CLASSIFICATION
# ============================================================

class TopicClassification(_CamelModel):
    """Risk signals produced by the topic classifier for one request."""
    web_helpful: bool = Field(..., description="Whether external information would help at all.")
    risk_score: float = Field(0.0, ge=0.0, le=1.0)
    risk_factors: tuple[str, ...] = ()
    has_recency_request: bool = False
    is_evolving_domain: bool = False
    force_high: bool = False


# ============================================================
# PROVIDER RESULTS
# ============================================================

class FreshnessPolicy(_CamelModel):
    max_age_ms: int = Field(default_factory=lambda: settings.DEFAULT_MAX_AGE_MS, ge=0)


class ProviderResult(_CamelModel):
    """
    Outcome of one live-data fetch.

    ok=True carries the raw payload in `data`; ok=False carries an
    `error` string and no data.
    """
    ok: bool
    provider: str
    data: dict[str, Any] = Field(default_factory=dict)
    fetched_at: float = Field(default_factory=now_ms, description="Epoch milliseconds.")
    freshness_policy: FreshnessPolicy = Field(default_factory=FreshnessPolicy)
    partial: bool = False
    error: Optional[str] = None

    @classmethod
    def success(
        cls,
        provider: str,
        data: dict[str, Any],
        fetched_at: Optional[float] = None,
        max_age_ms: Optional[int] = None,
        partial: bool = False,
    ) -> "ProviderResult":
        return cls(
            ok=True,
            provider=provider,
            data=data,
            fetched_at=fetched_at if fetched_at is not None else now_ms(),
            freshness_policy=FreshnessPolicy(
                max_age_ms=max_age_ms if max_age_ms is not None else settings.DEFAULT_MAX_AGE_MS,
            ),
            partial=partial,
        )

    @classmethod
    def failure(cls, provider: str, error: str) -> "ProviderResult":
        return cls(ok=False, provider=provider, error=error)

    def age_ms(self, now: Optional[float] = None) -> float:
        return (now if now is not None else now_ms()) - self.fetched_at

    def is_stale(self, now: Optional[float] = None) -> bool:
        return self.age_ms(now) > self.freshness_policy.max_age_ms
