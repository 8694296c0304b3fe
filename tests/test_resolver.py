"""
Tests for the async resolver and the provider factory.

Providers here are in-memory fakes; nothing touches the network.
"""

import asyncio
import logging

import pytest

from leakguard.constraints import build_multi_provider_constraints
from leakguard.errors import UnknownProviderError
from leakguard.providers import LiveDataProvider, ProviderResult
from leakguard.providers.factory import get_provider
from leakguard.resolver import fetch_all, resolve_categories
from leakguard.scanner import check_numeric_leak
from leakguard.semantics import ConstraintLevel, ProviderOutcome

L = ConstraintLevel
O = ProviderOutcome
NOW = 1_700_000_000_000.0


class FakeProvider(LiveDataProvider):
    """Returns fixed data, or raises, and records concurrency."""

    def __init__(self, name, data=None, exc=None, age_ms=1_000, state=None):
        self.name = name
        self.data = data or {}
        self.exc = exc
        self.age_ms = age_ms
        self.calls = 0
        self.state = state if state is not None else {"active": 0, "max_active": 0}

    async def fetch(self, query: str) -> ProviderResult:
        self.calls += 1
        self.state["active"] += 1
        self.state["max_active"] = max(self.state["max_active"], self.state["active"])
        try:
            await asyncio.sleep(0.01)
            if self.exc is not None:
                raise self.exc
            return ProviderResult.success(
                self.name, self.data, fetched_at=NOW - self.age_ms, max_age_ms=60_000,
            )
        finally:
            self.state["active"] -= 1


def _crypto(**kwargs):
    return FakeProvider("coingecko", {"price": 67890.12, "change_percent": -2.5}, **kwargs)


class TestFetchAll:
    @pytest.mark.asyncio
    async def test_fetches_concurrently(self):
        state = {"active": 0, "max_active": 0}
        providers = {
            "crypto": _crypto(state=state),
            "fx": FakeProvider("ecb", {"rate": 0.9234}, state=state),
        }
        results = await fetch_all(["crypto", "fx"], providers, "btc and eur")
        assert state["max_active"] == 2
        assert results["crypto"].ok and results["fx"].ok

    @pytest.mark.asyncio
    async def test_missing_provider_is_none(self):
        results = await fetch_all(["crypto", "weather"], {"crypto": _crypto()}, "q")
        assert results["weather"] is None
        assert list(results) == ["crypto", "weather"]

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self, caplog):
        providers = {"crypto": _crypto(exc=RuntimeError("connection reset"))}
        with caplog.at_level(logging.WARNING, logger="leakguard.resolver"):
            results = await fetch_all(["crypto"], providers, "q")
        result = results["crypto"]
        assert result.ok is False
        assert result.provider == "coingecko"
        assert result.error == "RuntimeError: connection reset"
        assert caplog.records[0].error_type == "RuntimeError"

    @pytest.mark.asyncio
    async def test_duplicate_categories_fetched_once(self):
        provider = _crypto()
        await fetch_all(["crypto", "crypto"], {"crypto": provider}, "q")
        assert provider.calls == 1


class TestResolveCategories:
    @pytest.mark.asyncio
    async def test_high_tier_verified(self):
        resolved = await resolve_categories(["crypto"], "high", {"crypto": _crypto()}, "q", now_ms=NOW)
        entry = resolved["crypto"]
        assert entry.semantics.outcome == O.VERIFIED_FRESH
        assert entry.semantics.constraint_level == L.QUOTE_EVIDENCE_ONLY
        assert entry.provider_result.ok

    @pytest.mark.asyncio
    async def test_high_tier_failure(self):
        providers = {"crypto": _crypto(exc=RuntimeError("boom"))}
        resolved = await resolve_categories(["crypto"], "high", providers, "q", now_ms=NOW)
        entry = resolved["crypto"]
        assert entry.semantics.outcome == O.FETCH_FAILED
        assert entry.semantics.constraint_level == L.FORBID_NUMERIC_CLAIMS
        assert "RuntimeError" in entry.provider_result.error

    @pytest.mark.asyncio
    async def test_stale(self):
        providers = {"crypto": _crypto(age_ms=120_000)}
        resolved = await resolve_categories(["crypto"], "high", providers, "q", now_ms=NOW)
        assert resolved["crypto"].semantics.outcome == O.VERIFIED_STALE
        assert resolved["crypto"].semantics.freshness_warning is True

    @pytest.mark.asyncio
    async def test_low_tier_skips_fetch(self):
        provider = _crypto()
        resolved = await resolve_categories(["crypto"], "low", {"crypto": provider}, "q")
        assert provider.calls == 0
        assert resolved["crypto"].semantics.outcome == O.NOT_ATTEMPTED
        assert resolved["crypto"].semantics.constraint_level == L.PERMISSIVE
        assert resolved["crypto"].provider_result is None

    @pytest.mark.asyncio
    async def test_no_provider_is_not_attempted(self):
        resolved = await resolve_categories(["fx"], "medium", {}, "q")
        assert resolved["fx"].semantics.outcome == O.NOT_ATTEMPTED
        assert resolved["fx"].semantics.constraint_level == L.QUALITATIVE_ONLY

    @pytest.mark.asyncio
    async def test_unknown_category_unresolved(self, caplog):
        with caplog.at_level(logging.WARNING, logger="leakguard.resolver"):
            resolved = await resolve_categories(["sports"], "medium", {}, "q")
        assert resolved == {"sports": None}
        assert any("unresolved" in r.getMessage() for r in caplog.records)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_resolve_build_scan(self):
        providers = {
            "crypto": _crypto(),
            "fx": FakeProvider("ecb", {"rate": 0.9234}),
        }
        resolved = await resolve_categories(["crypto", "fx"], "high", providers, "q", now_ms=NOW)
        built = build_multi_provider_constraints(resolved, now_ms=NOW)
        assert built.valid
        constraints = built.constraints
        assert constraints.constraint_level == L.QUOTE_EVIDENCE_ONLY

        good = "BTC trades at $67,890.12 and the euro rate is 0.9234, per coingecko and ecb."
        assert check_numeric_leak(good, constraints).passed

        bad = "BTC trades at $71,000, per coingecko and ecb."
        assert not check_numeric_leak(bad, constraints).passed

    @pytest.mark.asyncio
    async def test_one_failure_degrades_everything(self):
        providers = {
            "crypto": _crypto(),
            "fx": FakeProvider("ecb", exc=TimeoutError("slow")),
        }
        resolved = await resolve_categories(["crypto", "fx"], "high", providers, "q", now_ms=NOW)
        constraints = build_multi_provider_constraints(resolved, now_ms=NOW).constraints
        assert constraints.constraint_level == L.FORBID_NUMERIC_CLAIMS
        assert not check_numeric_leak("BTC trades at $67,890.12.", constraints).passed

    @pytest.mark.asyncio
    async def test_unresolved_category_flows_through(self):
        resolved = await resolve_categories(["crypto", "sports"], "high", {"crypto": _crypto()}, "q", now_ms=NOW)
        built = build_multi_provider_constraints(resolved, now_ms=NOW)
        assert built.valid is False
        assert "sports" in built.constraints.triggered_by_categories


class TestProviderFactory:
    def test_builds_registered_provider(self):
        registry = {"coingecko": lambda: _crypto()}
        provider = get_provider("coingecko", registry)
        assert isinstance(provider, LiveDataProvider)
        assert provider.name == "coingecko"

    def test_fresh_instance_each_call(self):
        registry = {"coingecko": lambda: _crypto()}
        assert get_provider("coingecko", registry) is not get_provider("coingecko", registry)

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError) as exc:
            get_provider("nope", {})
        assert isinstance(exc.value, ValueError)
        assert "nope" in str(exc.value)

    def test_abstract_interface(self):
        with pytest.raises(TypeError):
            LiveDataProvider()
