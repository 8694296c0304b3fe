"""
Constraints Builder — Failure Semantics to Response Policy

Turns a FailureSemantics decision (and, when verification succeeded, the
raw provider payload) into a ResponseConstraints policy: which numbers may
appear, which exemptions apply, which phrases are banned or required, and
which sources must be cited.

Every builder here is pure. Degraded inputs never raise: the result carries
valid=False and a list of errors, and the policy always resolves toward the
more restrictive level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

from leakguard.errors import ConstraintValidationError
from leakguard.schemas.classification import ProviderResult
from leakguard.semantics import (
    ConstraintLevel,
    FailureSemantics,
    get_constraint_description,
)
from leakguard.tokens import (
    NumericTokenSet,
    build_token_set,
    extract_tokens_from_data,
    merge_token_sets,
)

logger = logging.getLogger(__name__)


# ============================================================
# NUMERIC EXEMPTIONS
# ============================================================

@dataclass(frozen=True)
class NumericExemptions:
    """Numbers that may appear in text without a backing token."""
    allow_years: bool = False
    allow_dates: bool = False
    allow_small_integers: bool = False
    small_integer_max: int = 0
    allow_explanatory_percentages: bool = False
    allow_ordinals: bool = False
    allow_in_code_blocks: bool = False
    allow_in_quotes: bool = False
    custom_patterns: tuple[str, ...] = ()


PERMISSIVE_EXEMPTIONS = NumericExemptions(
    allow_years=True,
    allow_dates=True,
    allow_small_integers=True,
    small_integer_max=100,
    allow_explanatory_percentages=True,
    allow_ordinals=True,
    allow_in_code_blocks=True,
    allow_in_quotes=True,
)

QUOTE_EVIDENCE_EXEMPTIONS = NumericExemptions(
    allow_years=True,
    allow_dates=True,
    allow_small_integers=True,
    small_integer_max=10,
    allow_ordinals=True,
    allow_in_code_blocks=True,
    allow_in_quotes=True,
)

FORBID_NUMERIC_EXEMPTIONS = NumericExemptions(
    allow_years=True,
    allow_dates=True,
    allow_small_integers=True,
    small_integer_max=5,
    allow_ordinals=True,
    allow_in_code_blocks=True,
    allow_in_quotes=False,  # a quoted figure could itself be fabricated
)

QUALITATIVE_EXEMPTIONS = NumericExemptions(
    allow_years=True,
    allow_small_integers=True,
    small_integer_max=3,
    allow_ordinals=True,
)

NO_EXEMPTIONS = NumericExemptions()

_EXEMPTION_FIELDS = frozenset(f.name for f in fields(NumericExemptions))


def merge_exemptions(
    base: NumericExemptions,
    overrides: Optional[Mapping[str, Any]] = None,
) -> NumericExemptions:
    """
    Apply a partial override mapping to an exemption preset.

    Raises:
        ValueError if an override names an unknown exemption field.
    """
    if not overrides:
        return base
    unknown = set(overrides) - _EXEMPTION_FIELDS
    if unknown:
        raise ValueError(f"Unknown exemption fields: {sorted(unknown)}")
    values = dict(overrides)
    if "custom_patterns" in values:
        values["custom_patterns"] = tuple(values["custom_patterns"])
    return replace(base, **values)


# ============================================================
# PHRASES
# ============================================================

UNIVERSAL_BANNED_PHRASES: tuple[str, ...] = (
    "I believe the price is",
    "I think it might be",
    "The price should be around",
    "It was probably",
    "Last I checked",
    "As of my knowledge",
    "Based on my training",
    "I don't have real-time",
    "I cannot access live",
)

CATEGORY_BANNED_PHRASES: Mapping[str, tuple[str, ...]] = {
    "market": (
        "you should buy",
        "you should sell",
        "I recommend buying",
        "I recommend selling",
        "this is a good investment",
        "this is a bad investment",
        "the stock will go up",
        "the stock will go down",
    ),
    "crypto": (
        "you should buy",
        "you should sell",
        "to the moon",
        "guaranteed returns",
        "this coin will",
        "crypto will",
    ),
    "fx": (
        "the rate will",
        "currency will strengthen",
        "currency will weaken",
        "you should exchange now",
    ),
    "weather": (),
    "time": (),
}

# The first entry is the one the builder requires
STALE_DATA_PHRASES: tuple[str, ...] = (
    "may be outdated",
    "might not reflect",
    "check for latest",
    "verify current",
    "data from",
)

DEGRADED_MODE_PHRASES: tuple[str, ...] = (
    "unable to retrieve",
    "couldn't access",
    "for current",
    "check",
    "visit",
)


def get_banned_phrases(*categories: str) -> tuple[str, ...]:
    """Universal phrases plus each category's own, without duplicates."""
    phrases = list(UNIVERSAL_BANNED_PHRASES)
    for category in categories:
        phrases.extend(CATEGORY_BANNED_PHRASES.get(category, ()))
    return tuple(dict.fromkeys(phrases))


def _union(*groups) -> tuple:
    merged: dict = {}
    for group in groups:
        for item in group:
            merged.setdefault(item, None)
    return tuple(merged)


# ============================================================
# RESPONSE CONSTRAINTS
# ============================================================

@dataclass(frozen=True)
class ResponseConstraints:
    """The numeric policy a generated answer must satisfy."""
    numeric_precision_allowed: bool
    allowed_tokens: Optional[NumericTokenSet]
    numeric_exemptions: NumericExemptions
    action_recommendations_allowed: bool
    banned_phrases: tuple[str, ...] = ()
    required_phrases: tuple[str, ...] = ()
    freshness_warning_required: bool = False
    required_citations: tuple[str, ...] = ()
    level: str = "strict"  # "strict" | "permissive"
    reason: str = ""
    triggered_by_categories: tuple[str, ...] = ()
    constraint_level: ConstraintLevel = ConstraintLevel.FORBID_NUMERIC_CLAIMS

    def to_prompt_dict(self) -> dict:
        """Serializable view of the policy for the prompting layer."""
        tokens = None
        if self.allowed_tokens is not None:
            tokens = [
                {
                    "value": t.value,
                    "context_key": t.context_key,
                    "source_field": t.source_field,
                    "provider": t.provider,
                }
                for t in self.allowed_tokens.unique_tokens()
            ]
        return {
            "constraint_level": self.constraint_level.value,
            "description": get_constraint_description(self.constraint_level),
            "level": self.level,
            "numeric_precision_allowed": self.numeric_precision_allowed,
            "allowed_tokens": tokens,
            "action_recommendations_allowed": self.action_recommendations_allowed,
            "banned_phrases": list(self.banned_phrases),
            "required_phrases": list(self.required_phrases),
            "freshness_warning_required": self.freshness_warning_required,
            "required_citations": list(self.required_citations),
            "reason": self.reason,
            "triggered_by_categories": list(self.triggered_by_categories),
        }


@dataclass(frozen=True)
class ConstraintBuildOptions:
    include_freshness_warning: bool = False
    banned_phrases: tuple[str, ...] = ()
    required_phrases: tuple[str, ...] = ()
    exemption_overrides: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class ConstraintBuildResult:
    constraints: ResponseConstraints
    valid: bool
    errors: tuple[str, ...] = ()
    summary: str = ""


@dataclass(frozen=True)
class CategoryInput:
    """One category's semantics decision and the result it was based on."""
    semantics: FailureSemantics
    provider_result: Optional[ProviderResult] = None


_DEFAULT_OPTIONS = ConstraintBuildOptions()


# ============================================================
# SINGLE-CATEGORY BUILDERS
# ============================================================

def build_constraints(
    semantics: FailureSemantics,
    provider_result: Optional[ProviderResult],
    category: str,
    options: Optional[ConstraintBuildOptions] = None,
    now_ms: Optional[float] = None,
) -> ConstraintBuildResult:
    """Build the response policy for one category."""
    options = options or _DEFAULT_OPTIONS

    try:
        level = ConstraintLevel(semantics.constraint_level)
    except ValueError:
        error = f"Unknown constraint level: {semantics.constraint_level!r}"
        logger.warning(error, extra={"category": category})
        return ConstraintBuildResult(
            constraints=build_default_constraints(category),
            valid=False,
            errors=(error,),
            summary="Unknown constraint level - using defaults",
        )

    if level == ConstraintLevel.INSUFFICIENT:
        return build_insufficient_constraints(semantics, category)

    if level == ConstraintLevel.QUALITATIVE_ONLY:
        return build_qualitative_constraints(semantics, category, options)

    if level == ConstraintLevel.FORBID_NUMERIC_CLAIMS:
        return build_forbid_numeric_constraints(semantics, category, options)

    if level == ConstraintLevel.QUOTE_EVIDENCE_ONLY:
        if provider_result is None or not provider_result.ok:
            error = "quote_evidence_only requires verified provider data"
            logger.warning(
                "Verified data missing; falling back to forbid-numeric",
                extra={
                    "category": category,
                    "constraint_level": level.value,
                    "provider": provider_result.provider if provider_result else None,
                },
            )
            fallback = build_forbid_numeric_constraints(semantics, category, options)
            return replace(
                fallback,
                valid=False,
                errors=(error,),
                summary=f"FORBID_NUMERIC (fallback): {semantics.reason}",
            )
        return build_live_data_constraints(semantics, provider_result, category, options, now_ms)

    return build_permissive_constraints(category)


def build_insufficient_constraints(
    semantics: FailureSemantics,
    category: str,
) -> ConstraintBuildResult:
    """The request cannot be answered; nothing numeric is exempt."""
    constraints = ResponseConstraints(
        numeric_precision_allowed=False,
        allowed_tokens=None,
        numeric_exemptions=NO_EXEMPTIONS,
        action_recommendations_allowed=False,
        banned_phrases=get_banned_phrases(category),
        level="strict",
        reason=semantics.reason,
        triggered_by_categories=tuple(semantics.triggered_by),
        constraint_level=ConstraintLevel.INSUFFICIENT,
    )
    return ConstraintBuildResult(
        constraints=constraints,
        valid=True,
        summary=f"INSUFFICIENT: {semantics.reason}",
    )


def build_qualitative_constraints(
    semantics: FailureSemantics,
    category: str,
    options: ConstraintBuildOptions = _DEFAULT_OPTIONS,
) -> ConstraintBuildResult:
    constraints = ResponseConstraints(
        numeric_precision_allowed=False,
        allowed_tokens=None,
        numeric_exemptions=merge_exemptions(QUALITATIVE_EXEMPTIONS, options.exemption_overrides),
        action_recommendations_allowed=semantics.action_recommendations_allowed,
        banned_phrases=_union(get_banned_phrases(category), options.banned_phrases),
        required_phrases=tuple(options.required_phrases),
        freshness_warning_required=options.include_freshness_warning or semantics.freshness_warning,
        level="strict",
        reason=semantics.reason,
        triggered_by_categories=tuple(semantics.triggered_by),
        constraint_level=ConstraintLevel.QUALITATIVE_ONLY,
    )
    return ConstraintBuildResult(
        constraints=constraints,
        valid=True,
        summary=f"QUALITATIVE: {semantics.reason}",
    )


def build_forbid_numeric_constraints(
    semantics: FailureSemantics,
    category: str,
    options: ConstraintBuildOptions = _DEFAULT_OPTIONS,
) -> ConstraintBuildResult:
    """Degraded mode: no figures, and the answer must say data is unavailable."""
    constraints = ResponseConstraints(
        numeric_precision_allowed=False,
        allowed_tokens=None,
        numeric_exemptions=merge_exemptions(FORBID_NUMERIC_EXEMPTIONS, options.exemption_overrides),
        action_recommendations_allowed=False,
        banned_phrases=_union(get_banned_phrases(category), options.banned_phrases),
        required_phrases=_union(DEGRADED_MODE_PHRASES[:1], options.required_phrases),
        freshness_warning_required=True,
        level="strict",
        reason=semantics.reason,
        triggered_by_categories=tuple(semantics.triggered_by),
        constraint_level=ConstraintLevel.FORBID_NUMERIC_CLAIMS,
    )
    return ConstraintBuildResult(
        constraints=constraints,
        valid=True,
        summary=f"FORBID_NUMERIC: {semantics.reason}",
    )


def build_live_data_constraints(
    semantics: FailureSemantics,
    provider_result: ProviderResult,
    category: str,
    options: ConstraintBuildOptions = _DEFAULT_OPTIONS,
    now_ms: Optional[float] = None,
) -> ConstraintBuildResult:
    """Only figures present in the verified payload may be stated."""
    tokens = extract_tokens_from_data(
        provider_result.data,
        provider_result.fetched_at,
        provider_result.provider,
        category,
    )
    stale = provider_result.is_stale(now_ms)

    required = tuple(options.required_phrases)
    if stale:
        required = _union(STALE_DATA_PHRASES[:1], required)

    constraints = ResponseConstraints(
        numeric_precision_allowed=True,
        allowed_tokens=build_token_set(tokens),
        numeric_exemptions=merge_exemptions(QUOTE_EVIDENCE_EXEMPTIONS, options.exemption_overrides),
        action_recommendations_allowed=False,
        banned_phrases=_union(get_banned_phrases(category), options.banned_phrases),
        required_phrases=required,
        freshness_warning_required=stale or options.include_freshness_warning,
        required_citations=(provider_result.provider,),
        level="strict",
        reason=semantics.reason,
        triggered_by_categories=tuple(semantics.triggered_by),
        constraint_level=ConstraintLevel.QUOTE_EVIDENCE_ONLY,
    )

    logger.debug(
        "Live data constraints built",
        extra={
            "category": category,
            "provider": provider_result.provider,
            "tokens_count": len(tokens),
        },
    )
    return ConstraintBuildResult(
        constraints=constraints,
        valid=True,
        summary=f"LIVE_DATA: {len(tokens)} tokens from {provider_result.provider}",
    )


def build_permissive_constraints(category: str) -> ConstraintBuildResult:
    constraints = ResponseConstraints(
        numeric_precision_allowed=True,
        allowed_tokens=None,
        numeric_exemptions=PERMISSIVE_EXEMPTIONS,
        action_recommendations_allowed=True,
        level="permissive",
        reason="Local/passthrough mode - no live data constraints",
        triggered_by_categories=(category,),
        constraint_level=ConstraintLevel.PERMISSIVE,
    )
    return ConstraintBuildResult(
        constraints=constraints,
        valid=True,
        summary="PERMISSIVE: No live data constraints",
    )


def build_default_constraints(category: str = "market") -> ResponseConstraints:
    """Fallback policy: forbid numeric claims."""
    return ResponseConstraints(
        numeric_precision_allowed=False,
        allowed_tokens=None,
        numeric_exemptions=FORBID_NUMERIC_EXEMPTIONS,
        action_recommendations_allowed=False,
        banned_phrases=get_banned_phrases(category),
        freshness_warning_required=True,
        level="strict",
        reason="Default constraints applied",
        triggered_by_categories=(category,),
        constraint_level=ConstraintLevel.FORBID_NUMERIC_CLAIMS,
    )


# ============================================================
# MULTI-PROVIDER BUILDING
# ============================================================

def build_multi_provider_constraints(
    results: Mapping[str, Optional[CategoryInput]],
    options: Optional[ConstraintBuildOptions] = None,
    now_ms: Optional[float] = None,
) -> ConstraintBuildResult:
    """
    Build every category and merge into one policy.

    A category mapped to None is unresolved: it is reported in errors and
    summary, listed among the triggering categories, and forces a
    freshness warning. The other categories' results are kept.
    """
    if not results:
        return ConstraintBuildResult(
            constraints=build_default_constraints(),
            valid=False,
            errors=("No provider results provided",),
            summary="ERROR: No results",
        )

    built: list[ResponseConstraints] = []
    errors: list[str] = []
    summaries: list[str] = []
    unresolved: list[str] = []

    for category, entry in results.items():
        if entry is None:
            unresolved.append(category)
            errors.append(f"{category}: unresolved (no semantics or provider result)")
            summaries.append(f"{category}: UNRESOLVED")
            continue
        result = build_constraints(entry.semantics, entry.provider_result, category, options, now_ms)
        built.append(result.constraints)
        errors.extend(f"{category}: {e}" for e in result.errors)
        summaries.append(f"{category}: {result.summary}")

    if unresolved:
        logger.warning(
            "Unresolved categories: %s", ", ".join(unresolved),
            extra={"category": ",".join(unresolved)},
        )

    if built:
        merged = merge_constraints(built)
    else:
        merged = build_default_constraints(unresolved[0])

    if unresolved:
        merged = replace(
            merged,
            triggered_by_categories=_union(merged.triggered_by_categories, unresolved),
            freshness_warning_required=True,
        )

    return ConstraintBuildResult(
        constraints=merged,
        valid=not errors,
        errors=tuple(errors),
        summary="; ".join(summaries),
    )


def merge_constraints(constraints: list[ResponseConstraints]) -> ResponseConstraints:
    """
    Combine several policies. The most restrictive constraint level is the
    base; tokens are unioned only when that base allows precision.
    """
    if not constraints:
        return build_default_constraints()
    if len(constraints) == 1:
        return constraints[0]

    base = min(constraints, key=lambda c: c.constraint_level)

    tokens = None
    if base.numeric_precision_allowed and base.allowed_tokens is not None:
        tokens = merge_token_sets(*(c.allowed_tokens for c in constraints))

    # Citations name sources for figures; a base that forbids figures needs none
    citations = base.required_citations
    if base.numeric_precision_allowed:
        citations = _union(*(c.required_citations for c in constraints))

    return replace(
        base,
        allowed_tokens=tokens,
        action_recommendations_allowed=all(c.action_recommendations_allowed for c in constraints),
        banned_phrases=_union(*(c.banned_phrases for c in constraints)),
        required_phrases=_union(*(c.required_phrases for c in constraints)),
        freshness_warning_required=any(c.freshness_warning_required for c in constraints),
        required_citations=citations,
        reason="; ".join(dict.fromkeys(c.reason for c in constraints if c.reason)),
        triggered_by_categories=_union(*(c.triggered_by_categories for c in constraints)),
    )


# ============================================================
# VALIDATION
# ============================================================

def validate_constraints(constraints: ResponseConstraints) -> list[str]:
    """Structural invariants of a policy. Empty list means valid."""
    errors: list[str] = []
    c = constraints

    if c.numeric_precision_allowed and c.allowed_tokens is None and c.level == "strict":
        errors.append("numeric_precision_allowed=True with level=strict requires allowed_tokens")
    if c.allowed_tokens is not None and not c.numeric_precision_allowed:
        errors.append("allowed_tokens provided but numeric_precision_allowed=False")
    if c.level == "permissive" and not c.numeric_precision_allowed:
        errors.append("level=permissive requires numeric_precision_allowed=True")
    if not c.triggered_by_categories:
        errors.append("triggered_by_categories must not be empty")
    return errors


def assert_valid_constraints(constraints: ResponseConstraints) -> ResponseConstraints:
    """
    Hard pre-prompt check.

    Raises:
        ConstraintValidationError listing every violated invariant.
    """
    errors = validate_constraints(constraints)
    if errors:
        raise ConstraintValidationError(errors)
    return constraints
