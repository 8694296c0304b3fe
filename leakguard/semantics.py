"""
Failure Semantics — Verification Outcome to Constraint Level

Maps {search tier, provider outcome, category} to exactly one constraint
level. The mapping is a total function over a small finite input space,
written out as an explicit table so that the constraints builder can stay
pure: the same inputs always yield the same level.

Constraint levels are totally ordered from most to least restrictive:

    insufficient < qualitative_only < forbid_numeric_claims
                 < quote_evidence_only < permissive

"Most restrictive wins" is therefore just min() over the order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from leakguard.schemas.classification import (
    FINANCIAL_CATEGORIES,
    LIVE_CATEGORIES,
    ProviderResult,
)


# ============================================================
# ENUMS
# ============================================================

class ConstraintLevel(str, Enum):
    INSUFFICIENT = "insufficient"
    QUALITATIVE_ONLY = "qualitative_only"
    FORBID_NUMERIC_CLAIMS = "forbid_numeric_claims"
    QUOTE_EVIDENCE_ONLY = "quote_evidence_only"
    PERMISSIVE = "permissive"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, ConstraintLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, ConstraintLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, ConstraintLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, ConstraintLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __hash__(self):
        return hash(self.value)


_LEVEL_ORDER: tuple[ConstraintLevel, ...] = (
    ConstraintLevel.INSUFFICIENT,
    ConstraintLevel.QUALITATIVE_ONLY,
    ConstraintLevel.FORBID_NUMERIC_CLAIMS,
    ConstraintLevel.QUOTE_EVIDENCE_ONLY,
    ConstraintLevel.PERMISSIVE,
)


class ProviderOutcome(str, Enum):
    VERIFIED_FRESH = "verified_fresh"
    VERIFIED_STALE = "verified_stale"
    PARTIAL = "partial"
    FETCH_FAILED = "fetch_failed"
    NOT_ATTEMPTED = "not_attempted"


TIERS: tuple[str, ...] = ("low", "medium", "high")

_L = ConstraintLevel
_O = ProviderOutcome

# tier -> outcome -> level
FAILURE_SEMANTICS_TABLE: dict[str, dict[ProviderOutcome, ConstraintLevel]] = {
    "low": {
        _O.VERIFIED_FRESH: _L.QUOTE_EVIDENCE_ONLY,
        _O.VERIFIED_STALE: _L.QUOTE_EVIDENCE_ONLY,
        _O.PARTIAL: _L.QUOTE_EVIDENCE_ONLY,
        _O.FETCH_FAILED: _L.QUALITATIVE_ONLY,
        _O.NOT_ATTEMPTED: _L.PERMISSIVE,
    },
    "medium": {
        _O.VERIFIED_FRESH: _L.QUOTE_EVIDENCE_ONLY,
        _O.VERIFIED_STALE: _L.QUOTE_EVIDENCE_ONLY,
        _O.PARTIAL: _L.QUOTE_EVIDENCE_ONLY,
        _O.FETCH_FAILED: _L.FORBID_NUMERIC_CLAIMS,
        _O.NOT_ATTEMPTED: _L.QUALITATIVE_ONLY,
    },
    "high": {
        _O.VERIFIED_FRESH: _L.QUOTE_EVIDENCE_ONLY,
        _O.VERIFIED_STALE: _L.QUOTE_EVIDENCE_ONLY,
        _O.PARTIAL: _L.FORBID_NUMERIC_CLAIMS,
        _O.FETCH_FAILED: _L.FORBID_NUMERIC_CLAIMS,
        _O.NOT_ATTEMPTED: _L.INSUFFICIENT,
    },
}

# Categories with no qualitative fallback: "it's roughly afternoon" is not an answer
NO_FALLBACK_CATEGORIES: frozenset[str] = frozenset({"time"})

_OUTCOME_REASONS: dict[ProviderOutcome, str] = {
    _O.VERIFIED_FRESH: "verified data available",
    _O.VERIFIED_STALE: "verified data available but stale",
    _O.PARTIAL: "provider returned partial data",
    _O.FETCH_FAILED: "provider fetch failed",
    _O.NOT_ATTEMPTED: "verification not attempted",
}

_LEVEL_DESCRIPTIONS: dict[ConstraintLevel, str] = {
    _L.INSUFFICIENT: "Cannot answer: required live data is unavailable",
    _L.QUALITATIVE_ONLY: "Qualitative answer only, no specific figures",
    _L.FORBID_NUMERIC_CLAIMS: "Degraded mode: numeric claims forbidden",
    _L.QUOTE_EVIDENCE_ONLY: "Only figures quoted from verified evidence",
    _L.PERMISSIVE: "No live-data constraints",
}


# ============================================================
# FAILURE SEMANTICS
# ============================================================

@dataclass(frozen=True)
class FailureSemantics:
    """The constraint decision for one category of one request."""
    constraint_level: ConstraintLevel
    reason: str
    triggered_by: tuple[str, ...]
    tier: str
    outcome: ProviderOutcome
    action_recommendations_allowed: bool = False
    freshness_warning: bool = False


def allows_numeric(level: ConstraintLevel) -> bool:
    """Whether a level permits stating numeric precision at all."""
    return level >= ConstraintLevel.QUOTE_EVIDENCE_ONLY


def can_proceed(level: ConstraintLevel) -> bool:
    """Whether the model may be called at all under this level."""
    return level != ConstraintLevel.INSUFFICIENT


def most_restrictive(levels: Iterable[ConstraintLevel]) -> ConstraintLevel:
    levels = list(levels)
    if not levels:
        raise ValueError("most_restrictive() requires at least one level")
    return min(levels)


def get_constraint_description(level: ConstraintLevel) -> str:
    return _LEVEL_DESCRIPTIONS[level]


def outcome_from_result(
    result: Optional[ProviderResult],
    now: Optional[float] = None,
) -> ProviderOutcome:
    """Classify a provider result (or its absence) into the outcome taxonomy."""
    if result is None:
        return ProviderOutcome.NOT_ATTEMPTED
    if not result.ok:
        return ProviderOutcome.FETCH_FAILED
    if result.partial:
        return ProviderOutcome.PARTIAL
    if result.is_stale(now):
        return ProviderOutcome.VERIFIED_STALE
    return ProviderOutcome.VERIFIED_FRESH


def get_failure_semantics(
    tier: str,
    outcome: ProviderOutcome,
    category: str,
) -> FailureSemantics:
    """
    Look up the constraint level for one category.

    Raises:
        ValueError for a tier, outcome or category outside the known sets.
    """
    if tier not in FAILURE_SEMANTICS_TABLE:
        raise ValueError(f"Unknown search tier: {tier!r}")
    if category not in LIVE_CATEGORIES:
        raise ValueError(f"Unknown live category: {category!r}")
    outcome = ProviderOutcome(outcome)

    level = FAILURE_SEMANTICS_TABLE[tier][outcome]
    reason = f"{tier} tier, {_OUTCOME_REASONS[outcome]}"

    if category in NO_FALLBACK_CATEGORIES and level in (
        ConstraintLevel.QUALITATIVE_ONLY,
        ConstraintLevel.FORBID_NUMERIC_CLAIMS,
    ):
        level = ConstraintLevel.INSUFFICIENT
        reason += f"; {category} has no qualitative fallback"

    actions = level == ConstraintLevel.PERMISSIVE or (
        level == ConstraintLevel.QUALITATIVE_ONLY
        and category not in FINANCIAL_CATEGORIES
    )

    return FailureSemantics(
        constraint_level=level,
        reason=reason,
        triggered_by=(category,),
        tier=tier,
        outcome=outcome,
        action_recommendations_allowed=actions,
        freshness_warning=outcome == ProviderOutcome.VERIFIED_STALE,
    )


def combine_semantics(semantics: Iterable[FailureSemantics]) -> FailureSemantics:
    """Fold several category decisions into one. Most restrictive wins."""
    items = list(semantics)
    if not items:
        raise ValueError("combine_semantics() requires at least one entry")

    base = min(items, key=lambda s: s.constraint_level)
    categories: list[str] = []
    for s in items:
        for cat in s.triggered_by:
            if cat not in categories:
                categories.append(cat)

    return FailureSemantics(
        constraint_level=base.constraint_level,
        reason="; ".join(dict.fromkeys(s.reason for s in items)),
        triggered_by=tuple(categories),
        tier=base.tier,
        outcome=base.outcome,
        action_recommendations_allowed=all(s.action_recommendations_allowed for s in items),
        freshness_warning=any(s.freshness_warning for s in items),
    )


def validate_semantics(semantics: FailureSemantics) -> list[str]:
    """Check a single decision for internal consistency."""
    errors: list[str] = []
    level = semantics.constraint_level

    if not semantics.triggered_by:
        errors.append("triggered_by must not be empty")
    if level == ConstraintLevel.QUOTE_EVIDENCE_ONLY and semantics.outcome in (
        ProviderOutcome.FETCH_FAILED,
        ProviderOutcome.NOT_ATTEMPTED,
    ):
        errors.append(f"quote_evidence_only cannot follow outcome {semantics.outcome.value}")
    if semantics.action_recommendations_allowed and level in (
        ConstraintLevel.INSUFFICIENT,
        ConstraintLevel.FORBID_NUMERIC_CLAIMS,
        ConstraintLevel.QUOTE_EVIDENCE_ONLY,
    ):
        errors.append(f"action recommendations not allowed at {level.value}")
    if semantics.tier == "high" and level == ConstraintLevel.PERMISSIVE:
        errors.append("high tier can never be permissive")
    return errors


def validate_failure_semantics_matrix() -> list[str]:
    """Exhaustively check every tier x outcome x category cell."""
    errors: list[str] = []
    for tier in TIERS:
        for outcome in ProviderOutcome:
            for category in LIVE_CATEGORIES:
                s = get_failure_semantics(tier, outcome, category)
                errors.extend(
                    f"{tier}/{outcome.value}/{category}: {e}"
                    for e in validate_semantics(s)
                )
    return errors
