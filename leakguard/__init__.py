"""
LeakGuard — Numeric Leak Prevention for Generated Answers

Keeps a generative model from presenting fabricated figures as verified
live data. Two independent layers:

Policy layer:
  - determine_search_tier:     Risk classification to LOW / MEDIUM / HIGH
  - get_failure_semantics:     Tier x provider outcome x category to a constraint level
  - build_constraints:         Constraint level (+ verified payload) to a ResponseConstraints policy
  - build_multi_provider_constraints: Per-category policies merged, most restrictive wins
  - resolve_categories:        Concurrent provider fetch to per-category inputs

Enforcement layer:
  - LEAK_PATTERNS:             Frozen catalog of numeric surface forms
  - check_numeric_leak:        Post-generation scan of raw text against a policy

Usage:
    from leakguard import build_constraints, check_numeric_leak
    from leakguard import determine_search_tier, get_failure_semantics
"""

__version__ = "1.0.0"

from leakguard.constraints import (
    CategoryInput,
    ConstraintBuildOptions,
    ConstraintBuildResult,
    NumericExemptions,
    ResponseConstraints,
    assert_valid_constraints,
    build_constraints,
    build_multi_provider_constraints,
    merge_constraints,
    validate_constraints,
)
from leakguard.errors import ConstraintValidationError, LeakGuardError, UnknownProviderError
from leakguard.patterns import LEAK_PATTERNS, PATTERN_LIBRARY_VERSION, find_all_matches
from leakguard.providers import LiveDataProvider
from leakguard.providers.factory import get_provider
from leakguard.resolver import resolve_categories
from leakguard.scanner import LeakGuardResult, check_numeric_leak, leak_guard, would_pass
from leakguard.schemas.classification import ProviderResult, TopicClassification
from leakguard.semantics import ConstraintLevel, ProviderOutcome, get_failure_semantics
from leakguard.tier import determine_search_tier, explain_tier
from leakguard.tokens import NumericToken, NumericTokenSet, build_token_set

__all__ = [
    "CategoryInput",
    "ConstraintBuildOptions",
    "ConstraintBuildResult",
    "NumericExemptions",
    "ResponseConstraints",
    "assert_valid_constraints",
    "build_constraints",
    "build_multi_provider_constraints",
    "merge_constraints",
    "validate_constraints",
    "ConstraintValidationError",
    "LeakGuardError",
    "UnknownProviderError",
    "LEAK_PATTERNS",
    "PATTERN_LIBRARY_VERSION",
    "find_all_matches",
    "LiveDataProvider",
    "get_provider",
    "resolve_categories",
    "LeakGuardResult",
    "check_numeric_leak",
    "leak_guard",
    "would_pass",
    "ProviderResult",
    "TopicClassification",
    "ConstraintLevel",
    "ProviderOutcome",
    "get_failure_semantics",
    "determine_search_tier",
    "explain_tier",
    "NumericToken",
    "NumericTokenSet",
    "build_token_set",
]
