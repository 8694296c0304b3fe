"""
Tests for failure semantics: the tier x outcome x category table.
"""

import pytest

from leakguard.schemas.classification import LIVE_CATEGORIES, ProviderResult
from leakguard.semantics import (
    FAILURE_SEMANTICS_TABLE,
    TIERS,
    ConstraintLevel,
    FailureSemantics,
    ProviderOutcome,
    allows_numeric,
    can_proceed,
    combine_semantics,
    get_constraint_description,
    get_failure_semantics,
    most_restrictive,
    outcome_from_result,
    validate_failure_semantics_matrix,
    validate_semantics,
)

L = ConstraintLevel
O = ProviderOutcome
NOW = 1_700_000_000_000.0


class TestConstraintLevelOrder:
    def test_total_order(self):
        ordered = [
            L.INSUFFICIENT, L.QUALITATIVE_ONLY, L.FORBID_NUMERIC_CLAIMS,
            L.QUOTE_EVIDENCE_ONLY, L.PERMISSIVE,
        ]
        assert sorted(reversed(ordered)) == ordered
        assert L.INSUFFICIENT < L.PERMISSIVE
        assert L.QUOTE_EVIDENCE_ONLY >= L.FORBID_NUMERIC_CLAIMS

    def test_most_restrictive(self):
        assert most_restrictive([L.PERMISSIVE, L.FORBID_NUMERIC_CLAIMS, L.QUOTE_EVIDENCE_ONLY]) == (
            L.FORBID_NUMERIC_CLAIMS
        )

    def test_most_restrictive_empty_raises(self):
        with pytest.raises(ValueError):
            most_restrictive([])

    def test_string_values(self):
        assert L.PERMISSIVE == "permissive"
        assert L("qualitative_only") is L.QUALITATIVE_ONLY

    def test_helpers(self):
        assert allows_numeric(L.QUOTE_EVIDENCE_ONLY)
        assert allows_numeric(L.PERMISSIVE)
        assert not allows_numeric(L.FORBID_NUMERIC_CLAIMS)
        assert not can_proceed(L.INSUFFICIENT)
        assert can_proceed(L.QUALITATIVE_ONLY)
        for level in L:
            assert get_constraint_description(level)


class TestOutcomeFromResult:
    def test_none_is_not_attempted(self):
        assert outcome_from_result(None) == O.NOT_ATTEMPTED

    def test_failure(self):
        assert outcome_from_result(ProviderResult.failure("p", "boom")) == O.FETCH_FAILED

    def test_partial(self):
        r = ProviderResult.success("p", {"price": 1.0}, fetched_at=NOW, partial=True)
        assert outcome_from_result(r, NOW) == O.PARTIAL

    def test_stale(self):
        r = ProviderResult.success("p", {"price": 1.0}, fetched_at=NOW - 120_000, max_age_ms=60_000)
        assert outcome_from_result(r, NOW) == O.VERIFIED_STALE

    def test_fresh(self):
        r = ProviderResult.success("p", {"price": 1.0}, fetched_at=NOW - 1_000, max_age_ms=60_000)
        assert outcome_from_result(r, NOW) == O.VERIFIED_FRESH


class TestTable:
    @pytest.mark.parametrize("tier", TIERS)
    @pytest.mark.parametrize("outcome", list(O))
    def test_non_time_categories_follow_table(self, tier, outcome):
        for category in ("market", "crypto", "fx", "weather"):
            s = get_failure_semantics(tier, outcome, category)
            assert s.constraint_level == FAILURE_SEMANTICS_TABLE[tier][outcome]
            assert s.triggered_by == (category,)

    @pytest.mark.parametrize("tier,outcome", [
        ("low", O.FETCH_FAILED),
        ("medium", O.FETCH_FAILED),
        ("medium", O.NOT_ATTEMPTED),
        ("high", O.PARTIAL),
        ("high", O.FETCH_FAILED),
    ])
    def test_time_has_no_qualitative_fallback(self, tier, outcome):
        s = get_failure_semantics(tier, outcome, "time")
        assert s.constraint_level == L.INSUFFICIENT
        assert "no qualitative fallback" in s.reason

    def test_time_with_data_quotes_evidence(self):
        s = get_failure_semantics("high", O.VERIFIED_FRESH, "time")
        assert s.constraint_level == L.QUOTE_EVIDENCE_ONLY

    def test_high_tier_never_permissive(self):
        for outcome in O:
            for category in LIVE_CATEGORIES:
                s = get_failure_semantics("high", outcome, category)
                assert s.constraint_level != L.PERMISSIVE

    def test_reason_format(self):
        s = get_failure_semantics("medium", O.FETCH_FAILED, "market")
        assert s.reason == "medium tier, provider fetch failed"

    def test_accepts_outcome_string(self):
        s = get_failure_semantics("low", "not_attempted", "weather")
        assert s.outcome == O.NOT_ATTEMPTED
        assert s.constraint_level == L.PERMISSIVE

    def test_unknown_inputs_raise(self):
        with pytest.raises(ValueError):
            get_failure_semantics("extreme", O.VERIFIED_FRESH, "market")
        with pytest.raises(ValueError):
            get_failure_semantics("low", O.VERIFIED_FRESH, "sports")
        with pytest.raises(ValueError):
            get_failure_semantics("low", "bogus", "market")


class TestActionsAndFreshness:
    def test_qualitative_non_financial_allows_actions(self):
        s = get_failure_semantics("low", O.FETCH_FAILED, "weather")
        assert s.constraint_level == L.QUALITATIVE_ONLY
        assert s.action_recommendations_allowed is True

    def test_qualitative_financial_forbids_actions(self):
        s = get_failure_semantics("low", O.FETCH_FAILED, "market")
        assert s.action_recommendations_allowed is False

    def test_permissive_allows_actions(self):
        assert get_failure_semantics("low", O.NOT_ATTEMPTED, "crypto").action_recommendations_allowed

    def test_quote_evidence_forbids_actions(self):
        s = get_failure_semantics("medium", O.VERIFIED_FRESH, "weather")
        assert s.action_recommendations_allowed is False

    def test_stale_sets_freshness_warning(self):
        assert get_failure_semantics("high", O.VERIFIED_STALE, "fx").freshness_warning is True
        assert get_failure_semantics("high", O.VERIFIED_FRESH, "fx").freshness_warning is False


class TestCombineAndValidate:
    def test_matrix_is_consistent(self):
        assert validate_failure_semantics_matrix() == []

    def test_combine_most_restrictive_wins(self):
        combined = combine_semantics([
            get_failure_semantics("high", O.VERIFIED_STALE, "crypto"),
            get_failure_semantics("medium", O.FETCH_FAILED, "weather"),
        ])
        assert combined.constraint_level == L.FORBID_NUMERIC_CLAIMS
        assert combined.triggered_by == ("crypto", "weather")
        assert combined.freshness_warning is True
        assert combined.action_recommendations_allowed is False

    def test_combine_empty_raises(self):
        with pytest.raises(ValueError):
            combine_semantics([])

    def test_validate_flags_inconsistent_decision(self):
        bad = FailureSemantics(
            constraint_level=L.QUOTE_EVIDENCE_ONLY,
            reason="hand-built",
            triggered_by=(),
            tier="high",
            outcome=O.FETCH_FAILED,
            action_recommendations_allowed=True,
        )
        errors = validate_semantics(bad)
        assert len(errors) == 3
