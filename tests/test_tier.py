"""
Tests for search tier determination.

The decision function and the explanation function must walk the same
branch order; several tests below pin that lockstep.
"""

import pytest
from pydantic import ValidationError

from leakguard.schemas.classification import TopicClassification
from leakguard.tier import (
    FORCE_HIGH_FACTORS,
    TierDecision,
    determine_search_tier,
    explain_tier,
    get_tier_explanation,
    should_skip_search,
)

_RANK = {"low": 0, "medium": 1, "high": 2}


def _c(**kwargs) -> TopicClassification:
    kwargs.setdefault("web_helpful", True)
    return TopicClassification(**kwargs)


class TestBranchOrder:
    def test_not_web_helpful_is_low_even_when_risky(self):
        c = _c(web_helpful=False, risk_score=0.95, force_high=True)
        assert determine_search_tier(c) == "low"

    def test_force_high(self):
        assert determine_search_tier(_c(force_high=True)) == "high"

    @pytest.mark.parametrize("factor", sorted(FORCE_HIGH_FACTORS))
    def test_force_high_factor(self, factor):
        assert determine_search_tier(_c(risk_factors=(factor,))) == "high"

    def test_unrelated_factor_does_not_force(self):
        assert determine_search_tier(_c(risk_factors=("opinion",))) == "low"

    def test_score_thresholds(self):
        assert determine_search_tier(_c(risk_score=0.85)) == "high"
        assert determine_search_tier(_c(risk_score=0.8)) == "high"
        assert determine_search_tier(_c(risk_score=0.5)) == "medium"
        assert determine_search_tier(_c(risk_score=0.49)) == "low"

    def test_recency_in_evolving_domain(self):
        c = _c(risk_score=0.1, has_recency_request=True, is_evolving_domain=True)
        assert determine_search_tier(c) == "medium"

    def test_recency_alone_is_low(self):
        c = _c(risk_score=0.1, has_recency_request=True)
        assert determine_search_tier(c) == "low"

    def test_monotone_in_risk_score(self):
        tiers = [determine_search_tier(_c(risk_score=s / 20)) for s in range(21)]
        ranks = [_RANK[t] for t in tiers]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("score", [0.8, 0.9, 1.0])
    @pytest.mark.parametrize("force_high", [False, True])
    @pytest.mark.parametrize("factors", [(), ("opinion",), ("volatile_data",)])
    @pytest.mark.parametrize("recency", [False, True])
    @pytest.mark.parametrize("evolving", [False, True])
    def test_high_score_is_always_high(self, score, force_high, factors, recency, evolving):
        flags = dict(
            risk_score=score, force_high=force_high, risk_factors=factors,
            has_recency_request=recency, is_evolving_domain=evolving,
        )
        assert determine_search_tier(_c(**flags)) == "high"
        assert determine_search_tier(_c(web_helpful=False, **flags)) == "low"


class TestExplanation:
    def test_messages_follow_decision(self):
        assert get_tier_explanation(_c(web_helpful=False), "low") == (
            "No external information needed for this query"
        )
        assert get_tier_explanation(_c(force_high=True), "high") == (
            "High-stakes domain requires verification"
        )
        assert get_tier_explanation(_c(risk_score=0.85), "high") == (
            "High risk score (0.85) requires verification"
        )
        assert get_tier_explanation(_c(risk_score=0.6), "medium") == (
            "Risk score (0.60) warrants search augmentation"
        )
        assert get_tier_explanation(_c(risk_score=0.2), "low") == (
            "Risk score (0.20) below threshold for search"
        )

    def test_forced_factors_listed_sorted(self):
        c = _c(risk_factors=("volatile_data", "opinion", "breaking_news"))
        assert get_tier_explanation(c, "high") == (
            "High-risk factors detected: breaking_news, volatile_data"
        )

    def test_recency_message(self):
        c = _c(has_recency_request=True, is_evolving_domain=True)
        assert "Recency request" in get_tier_explanation(c, "medium")

    def test_mismatched_tier_is_reported(self):
        assert get_tier_explanation(_c(risk_score=0.1), "high") == "Tier high supplied externally"

    @pytest.mark.parametrize("kwargs", [
        {"web_helpful": False},
        {"force_high": True},
        {"risk_factors": ("high_stakes",)},
        {"risk_score": 0.9},
        {"risk_score": 0.55},
        {"risk_score": 0.1, "has_recency_request": True, "is_evolving_domain": True},
        {"risk_score": 0.1},
    ])
    def test_lockstep_never_external(self, kwargs):
        c = _c(**kwargs)
        explanation = get_tier_explanation(c, determine_search_tier(c))
        assert "supplied externally" not in explanation


class TestSkipDecision:
    def test_not_applicable_when_web_not_helpful(self):
        decision = should_skip_search(_c(web_helpful=False), "low")
        assert decision.skip is True
        assert decision.reason == "not_applicable"

    def test_skipped_when_useful_but_low_risk(self):
        decision = should_skip_search(_c(risk_score=0.1), "low")
        assert decision.skip is True
        assert decision.reason == "skipped"

    def test_search_runs_above_low(self):
        decision = should_skip_search(_c(risk_score=0.6), "medium")
        assert decision.skip is False
        assert decision.reason == "not_applicable"

    def test_explain_tier_bundle(self):
        decision = explain_tier(_c(risk_score=0.9))
        assert isinstance(decision, TierDecision)
        assert decision.tier == "high"
        assert decision.skip.skip is False
        assert "0.90" in decision.explanation


class TestClassificationModel:
    def test_accepts_camel_case(self):
        c = TopicClassification.model_validate({
            "webHelpful": True,
            "riskScore": 0.6,
            "riskFactors": ["opinion"],
            "hasRecencyRequest": False,
        })
        assert c.risk_score == 0.6
        assert determine_search_tier(c) == "medium"

    def test_rejects_out_of_range_score(self):
        with pytest.raises(ValidationError):
            TopicClassification(web_helpful=True, risk_score=1.5)

    def test_frozen(self):
        c = _c(risk_score=0.3)
        with pytest.raises(ValidationError):
            c.risk_score = 0.9
