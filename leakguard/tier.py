"""
Tier — Search Tier Determination

Decides LOW / MEDIUM / HIGH from a topic classification. The tier gates
whether external verification is attempted at all.

The decision function and the explanation function walk the same branch
order. If you change one, change the other; the tests assert they agree.
"""

from __future__ import annotations

from dataclasses import dataclass

from leakguard.config import settings
from leakguard.schemas.classification import SearchTier, TopicClassification


# Risk factors that force HIGH regardless of score
FORCE_HIGH_FACTORS: frozenset[str] = frozenset({
    "high_stakes",
    "volatile_data",
    "time_sensitive_claim",
    "breaking_news",
})

HIGH_THRESHOLD = settings.TIER_HIGH_THRESHOLD
MEDIUM_THRESHOLD = settings.TIER_MEDIUM_THRESHOLD


@dataclass(frozen=True)
class SkipDecision:
    """Whether search is skipped, and why (for telemetry)."""
    skip: bool
    reason: str  # "not_applicable" | "skipped"


@dataclass(frozen=True)
class TierDecision:
    tier: SearchTier
    explanation: str
    skip: SkipDecision


def determine_search_tier(classification: TopicClassification) -> SearchTier:
    """Map a classification to a search tier. First matching rule wins."""
    c = classification

    # 1. No web help needed
    if not c.web_helpful:
        return "low"

    # 2. Explicit override
    if c.force_high:
        return "high"

    # 3. Force-high risk factors
    if any(f in FORCE_HIGH_FACTORS for f in c.risk_factors):
        return "high"

    # 4. Score thresholds
    if c.risk_score >= HIGH_THRESHOLD:
        return "high"
    if c.risk_score >= MEDIUM_THRESHOLD:
        return "medium"

    # 5. Recency request in an evolving domain
    if c.has_recency_request and c.is_evolving_domain:
        return "medium"

    return "low"


def get_tier_explanation(classification: TopicClassification, tier: SearchTier) -> str:
    """Human-readable justification for a tier, in decision order."""
    c = classification

    if not c.web_helpful:
        return "No external information needed for this query"

    if c.force_high:
        return "High-stakes domain requires verification"

    forced = sorted(f for f in c.risk_factors if f in FORCE_HIGH_FACTORS)
    if forced:
        return f"High-risk factors detected: {', '.join(forced)}"

    if c.risk_score >= HIGH_THRESHOLD:
        return f"High risk score ({c.risk_score:.2f}) requires verification"
    if c.risk_score >= MEDIUM_THRESHOLD:
        return f"Risk score ({c.risk_score:.2f}) warrants search augmentation"

    if c.has_recency_request and c.is_evolving_domain:
        return "Recency request in evolving domain - augmenting with search"

    if tier != "low":
        # Caller passed a tier this classification would not produce
        return f"Tier {tier} supplied externally"
    return f"Risk score ({c.risk_score:.2f}) below threshold for search"


def should_skip_search(classification: TopicClassification, tier: SearchTier) -> SkipDecision:
    """
    LOW tier skips search. Telemetry distinguishes "not_applicable"
    (web not helpful) from "skipped" (useful, but risk below threshold).
    """
    if tier != "low":
        return SkipDecision(skip=False, reason="not_applicable")
    if not classification.web_helpful:
        return SkipDecision(skip=True, reason="not_applicable")
    return SkipDecision(skip=True, reason="skipped")


def explain_tier(classification: TopicClassification) -> TierDecision:
    """Tier, explanation, and skip decision in one call."""
    tier = determine_search_tier(classification)
    return TierDecision(
        tier=tier,
        explanation=get_tier_explanation(classification, tier),
        skip=should_skip_search(classification, tier),
    )
