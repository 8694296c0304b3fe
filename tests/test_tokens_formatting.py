"""
Tests for deterministic formatting and numeric token extraction.

Token fidelity is the property that matters: a token's value is the
payload value, bit for bit.
"""

import math

import pytest

from leakguard.formatting import (
    format_crypto_price,
    format_currency,
    format_currency_change,
    format_exchange_rate,
    format_large_number,
    format_percent,
    format_rate,
    format_temperature,
    format_with_commas,
    get_decimal_places,
    round_half_up,
)
from leakguard.tokens import (
    NumericToken,
    build_token_set,
    build_token_set_from_data,
    create_token_key,
    extract_tokens_from_data,
    infer_context_key,
    merge_token_sets,
    normalize_field_name,
    numeric_leaves,
    surface_forms,
    token_values,
)

FETCHED = 1_700_000_000_000.0

CRYPTO_PAYLOAD = {
    "symbol": "BTC",
    "price": 67890.12,
    "change_percent": -2.5,
    "volume": 123456,
    "active": True,
    "nested": {"high": 68000},
}


class TestFormatting:
    def test_commas(self):
        assert format_with_commas(1234567.891, 2) == "1,234,567.89"
        assert format_with_commas(1234567.891, 0) == "1,234,568"
        assert format_with_commas(-1234.5, 2) == "-1,234.50"
        assert format_with_commas(12, 0) == "12"

    def test_non_finite(self):
        assert format_with_commas(float("nan")) == "N/A"
        assert format_currency(float("inf")) == "N/A"
        assert format_percent(float("nan")) == "N/A"

    def test_currency(self):
        assert format_currency(1234.56, "EUR") == "€1,234.56"
        assert format_currency(-5, "USD") == "-$5.00"
        assert format_currency(1234.5, "JPY") == "¥1,235"
        assert format_currency(10, "SEK") == "SEK 10.00"

    def test_currency_change(self):
        assert format_currency_change(2.3) == "+$2.30"
        assert format_currency_change(-1.5) == "-$1.50"

    def test_percent(self):
        assert format_percent(1.5, 2, show_sign=True) == "+1.50%"
        assert format_percent(-0.25, 1) == "-0.3%"
        assert format_percent(0, 0) == "0%"

    def test_crypto_price_scales_decimals(self):
        assert format_crypto_price(67890.123) == "$67,890.12"
        assert format_crypto_price(0.05123) == "$0.0512"

    def test_rates(self):
        assert format_rate(0.92341) == "0.9234"
        assert format_exchange_rate(0.9234, "USD", "EUR") == "1 USD = 0.9234 EUR"

    def test_temperature(self):
        assert format_temperature(21.6) == "22°C"
        assert format_temperature(70.25, "f", 1) == "70.3°F"

    def test_large_number(self):
        assert format_large_number(1_500_000_000) == "1.50B"
        assert format_large_number(-2_500_000, 1) == "-2.5M"
        assert format_large_number(999, 0) == "999"

    def test_decimal_places(self):
        assert get_decimal_places(1.25) == 2
        assert get_decimal_places(3.0) == 0
        assert get_decimal_places(67890.12) == 2

    def test_round_half_up(self):
        assert round_half_up(2.675, 2) == 2.68
        assert round_half_up(67890.12, 0) == 67890.0


class TestContextKeys:
    def test_normalize_field_name(self):
        assert normalize_field_name("changePercent") == "change_percent"
        assert normalize_field_name("market-cap") == "market_cap"

    @pytest.mark.parametrize("field,category,expected", [
        ("price", "crypto", "usd:price"),
        ("changePercent", "market", "percent:change_percent"),
        ("humidity", "weather", "percent:humidity"),
        ("temperature", "weather", "temperature:c"),
        ("temp_f", "weather", "temperature:f"),
        ("windSpeed", "weather", "speed:wind_speed"),
        ("pressure", "weather", "pressure:pressure"),
        ("rate", "fx", "rate:rate"),
        ("volume", "market", "count:volume"),
        ("timestamp", "time", "time:timestamp"),
        ("elevation", "weather", "number:elevation"),
    ])
    def test_infer_context_key(self, field, category, expected):
        assert infer_context_key(field, category) == expected

    def test_payload_currency_and_unit(self):
        tokens = extract_tokens_from_data({"price": 100.0, "currency": "eur"}, FETCHED, "p")
        assert tokens[0].context_key == "eur:price"
        tokens = extract_tokens_from_data({"temperature": 70.0, "unit": "fahrenheit"}, FETCHED, "p")
        assert tokens[0].context_key == "temperature:f"


class TestExtraction:
    def test_one_token_per_numeric_leaf(self):
        tokens = extract_tokens_from_data(CRYPTO_PAYLOAD, FETCHED, "coingecko", "crypto")
        assert [t.source_field for t in tokens] == ["price", "change_percent", "volume", "nested.high"]

    def test_values_are_exact(self):
        tokens = extract_tokens_from_data(CRYPTO_PAYLOAD, FETCHED, "coingecko", "crypto")
        by_field = {t.source_field: t for t in tokens}
        assert by_field["price"].value == 67890.12
        assert by_field["change_percent"].value == -2.5
        assert by_field["nested.high"].context_key == "usd:high"
        assert all(t.provider == "coingecko" and t.fetched_at == FETCHED for t in tokens)

    def test_skips_booleans_and_non_finite(self):
        tokens = extract_tokens_from_data(
            {"price": float("nan"), "bid": 1.0, "halted": False, "ask": math.inf},
            FETCHED, "p",
        )
        assert [t.source_field for t in tokens] == ["bid"]

    def test_list_items_inherit_field_name(self):
        tokens = extract_tokens_from_data({"prices": [1.0, 2.0]}, FETCHED, "p")
        assert [t.source_field for t in tokens] == ["prices[0]", "prices[1]"]
        assert {t.context_key for t in tokens} == {"usd:prices"}

    def test_numeric_leaves(self):
        assert numeric_leaves(CRYPTO_PAYLOAD) == [67890.12, -2.5, 123456.0, 68000.0]


class TestTokenKeys:
    def test_create_token_key(self):
        assert create_token_key(100.0) == "100"
        assert create_token_key(1.5) == "1.5"
        assert create_token_key(1.234, 2) == "1.23"
        assert create_token_key(1234.5, 2) == "1234.50"

    def test_currency_surface_forms(self):
        token = NumericToken(67890.12, "usd:price", "price", "p", FETCHED)
        forms = surface_forms(token)
        assert "$67,890.12" in forms
        assert "67,890.12" in forms
        assert "67890.12" in forms

    def test_percent_surface_forms(self):
        token = NumericToken(-2.5, "percent:change_percent", "change_percent", "p", FETCHED)
        forms = surface_forms(token)
        assert "-2.5%" in forms
        assert "-2.50%" in forms

    def test_temperature_surface_forms(self):
        token = NumericToken(21.6, "temperature:c", "temperature", "p", FETCHED)
        assert "22°C" in surface_forms(token)
        assert "21.6°C" in surface_forms(token)

    def test_count_surface_forms(self):
        token = NumericToken(123456.0, "count:volume", "volume", "p", FETCHED)
        assert "123,456" in surface_forms(token)
        assert "123.46K" in surface_forms(token)


class TestTokenSet:
    def test_three_indexes(self):
        ts = build_token_set_from_data(CRYPTO_PAYLOAD, FETCHED, "coingecko", "crypto")
        price = ts.lookup_key("$67,890.12")
        assert price is not None and price.source_field == "price"
        assert ts.lookup_key("67890.12") is price
        assert ts.lookup_value(67890.12) == (price,)
        assert ts.lookup_context("usd:price") == (price,)
        assert len(ts.lookup_unit("usd")) == 2
        assert len(ts) == 4

    def test_token_values(self):
        ts = build_token_set_from_data(CRYPTO_PAYLOAD, FETCHED, "coingecko", "crypto")
        assert token_values(ts) == [67890.12, -2.5, 123456.0, 68000.0]

    def test_merge(self):
        a = build_token_set_from_data({"price": 10.0}, FETCHED, "a", "market")
        b = build_token_set_from_data({"rate": 0.9234}, FETCHED, "b", "fx")
        merged = merge_token_sets(a, None, b)
        assert len(merged) == 2
        assert merged.lookup_key("0.9234").provider == "b"
        assert merged.lookup_key("$10.00").provider == "a"

    def test_empty_set(self):
        ts = build_token_set([])
        assert len(ts) == 0
        assert ts.lookup_value(1.0) == ()
