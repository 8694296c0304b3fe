"""Pydantic models for the inputs LeakGuard consumes."""

from leakguard.schemas.classification import (
    FINANCIAL_CATEGORIES,
    LIVE_CATEGORIES,
    FreshnessPolicy,
    LiveCategory,
    ProviderResult,
    SearchTier,
    TopicClassification,
)

__all__ = [
    "FINANCIAL_CATEGORIES",
    "LIVE_CATEGORIES",
    "FreshnessPolicy",
    "LiveCategory",
    "ProviderResult",
    "SearchTier",
    "TopicClassification",
]
