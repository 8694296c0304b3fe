"""
Numeric Tokens — The Unit of Permission to State a Figure

A NumericToken is a number taken verbatim from a provider payload, with the
provenance that justifies stating it. Tokens are never synthesized or
rounded: `value` is exactly the payload value. The surface forms under
which a token may appear in text ("$67,890.12", "67890.12", ...) are
derived deterministically by leakguard.formatting.

A NumericTokenSet indexes tokens three ways, one per lookup the leak guard
performs: by formatted key (exact phrase), by value (bare-number fallback),
and by context key (semantic fallback).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from leakguard.formatting import (
    CURRENCY_DECIMALS,
    crypto_decimals,
    format_currency,
    format_large_number,
    format_percent,
    format_rate,
    format_temperature,
    format_with_commas,
    get_decimal_places,
)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class NumericToken:
    """A verified number and where it came from."""
    value: float
    context_key: str       # e.g. "usd:price", "percent:change", "temperature:c"
    source_field: str      # dotted path into the payload, e.g. "quote.price"
    provider: str
    fetched_at: float      # epoch ms

    @property
    def unit(self) -> str:
        return self.context_key.split(":", 1)[0]


@dataclass(frozen=True)
class NumericTokenSet:
    """Tokens indexed by formatted key, by value, and by context key."""
    tokens: dict[str, NumericToken] = field(default_factory=dict)
    by_value: dict[float, tuple[NumericToken, ...]] = field(default_factory=dict)
    by_context: dict[str, tuple[NumericToken, ...]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.unique_tokens())

    def unique_tokens(self) -> list[NumericToken]:
        seen: dict[NumericToken, None] = {}
        for tokens in self.by_value.values():
            for t in tokens:
                seen.setdefault(t, None)
        return list(seen)

    def lookup_key(self, key: str) -> Optional[NumericToken]:
        return self.tokens.get(key)

    def lookup_value(self, value: float) -> tuple[NumericToken, ...]:
        return self.by_value.get(float(value), ())

    def lookup_context(self, context_key: str) -> tuple[NumericToken, ...]:
        return self.by_context.get(context_key, ())

    def lookup_unit(self, unit: str) -> list[NumericToken]:
        """All tokens whose context key starts with `unit:`."""
        prefix = f"{unit}:"
        found: list[NumericToken] = []
        for key, tokens in self.by_context.items():
            if key.startswith(prefix):
                found.extend(tokens)
        return found


# ============================================================
# CONTEXT KEYS
# ============================================================

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_WORD = re.compile(r"[^a-z0-9]+")

_CURRENCY_FIELDS = (
    "price", "open", "close", "high", "low", "change", "market_cap", "marketcap",
    "cap", "bid", "ask", "value", "amount", "previous_close", "prev_close",
)
_RATE_FIELDS = ("rate", "bid", "ask", "mid")
_COUNT_FIELDS = ("volume", "supply", "shares", "count")
_TIME_FIELDS = ("timestamp", "epoch", "unix", "time")


def normalize_field_name(name: str) -> str:
    """'changePercent' -> 'change_percent'."""
    snake = _CAMEL_BOUNDARY.sub("_", name).lower()
    return _NON_WORD.sub("_", snake).strip("_")


def _payload_currency(data: dict[str, Any]) -> str:
    for key in ("currency", "quoteCurrency", "quote_currency"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value.upper()
    return "USD"


def _payload_temperature_unit(data: dict[str, Any]) -> str:
    for key in ("unit", "units", "temperatureUnit", "temperature_unit"):
        value = data.get(key)
        if isinstance(value, str) and value:
            v = value.strip().lower()
            if v in ("f", "fahrenheit", "imperial"):
                return "f"
            if v in ("c", "celsius", "metric"):
                return "c"
    return "c"


def infer_context_key(
    field_name: str,
    category: Optional[str] = None,
    currency: str = "USD",
    temperature_unit: str = "c",
) -> str:
    """Canonical "<unit>:<field>" key for a payload field."""
    f = normalize_field_name(field_name)

    if "percent" in f or "pct" in f.split("_") or f.endswith("_pct"):
        return f"percent:{f}"
    if f in ("humidity", "relative_humidity", "precipitation_probability", "cloud_cover"):
        return f"percent:{f}"
    if "temp" in f or f in ("feels_like", "dew_point", "dewpoint", "heat_index", "wind_chill"):
        unit = temperature_unit
        if f.endswith("_f") or f.endswith("fahrenheit"):
            unit = "f"
        elif f.endswith("_c") or f.endswith("celsius"):
            unit = "c"
        return f"temperature:{unit}"
    if "wind" in f or "speed" in f:
        return f"speed:{f}"
    if "pressure" in f:
        return f"pressure:{f}"
    if category == "fx" and any(part in _RATE_FIELDS for part in f.split("_")):
        return f"rate:{f}"
    if "rate" in f.split("_"):
        return f"rate:{f}"
    if any(part in _COUNT_FIELDS for part in f.split("_")):
        return f"count:{f}"
    if any(part in _TIME_FIELDS for part in f.split("_")) or f.endswith("_at"):
        return f"time:{f}"
    if f in _CURRENCY_FIELDS or any(f.startswith(c) or f.endswith(c) for c in _CURRENCY_FIELDS):
        return f"{currency.lower()}:{f}"
    return f"number:{f}"


# ============================================================
# TOKEN KEYS (SURFACE FORMS)
# ============================================================

def create_token_key(value: float, decimals: Optional[int] = None) -> str:
    """Plain (no separators) rendering of a value, shortest form by default."""
    if decimals is None:
        if float(value).is_integer():
            return str(int(value))
        return repr(float(value))
    return format_with_commas(value, decimals).replace(",", "")


def surface_forms(token: NumericToken) -> list[str]:
    """Every formatted string under which this token may be quoted."""
    v = token.value
    native = get_decimal_places(v)
    forms = [
        create_token_key(v),
        format_with_commas(v, native),
    ]

    unit = token.unit
    if unit == "percent":
        for d in sorted({native, 2}):
            forms.append(format_percent(v, d))
            forms.append(format_percent(v, d, show_sign=True))
    elif unit == "temperature":
        forms.append(format_temperature(v, token.context_key[-1], 0))
        forms.append(format_temperature(v, token.context_key[-1], native))
    elif unit == "rate":
        forms.append(format_rate(v, 4))
        forms.append(format_rate(v, native))
    elif unit == "count":
        forms.append(format_with_commas(v, 0))
        forms.append(format_large_number(v, 2))
    elif unit not in ("number", "time", "speed", "pressure"):
        currency = unit.upper()
        places = {native, CURRENCY_DECIMALS.get(currency, 2)}
        if "price" in token.context_key:
            places.add(crypto_decimals(v))
        for d in sorted(places):
            forms.append(format_currency(v, currency, d))
            forms.append(format_with_commas(v, d))
        if abs(v) >= 1_000_000:
            forms.append(format_large_number(v, 2))

    return list(dict.fromkeys(f for f in forms if f and f != "N/A"))


# ============================================================
# EXTRACTION
# ============================================================

def _walk_numeric(
    data: Any, path: str = "", leaf: str = "",
) -> Iterable[tuple[str, str, float]]:
    """Yield (dotted_path, leaf_name, value) for every numeric leaf."""
    if isinstance(data, dict):
        for key, value in data.items():
            child = f"{path}.{key}" if path else str(key)
            yield from _walk_numeric(value, child, str(key))
    elif isinstance(data, (list, tuple)):
        # List items inherit the list's field name for context
        for i, value in enumerate(data):
            yield from _walk_numeric(value, f"{path}[{i}]", leaf)
    elif isinstance(data, bool):
        return
    elif isinstance(data, (int, float)) and math.isfinite(data):
        yield path, leaf, float(data)


def extract_tokens_from_data(
    data: dict[str, Any],
    fetched_at: float,
    provider: str,
    category: Optional[str] = None,
) -> list[NumericToken]:
    """
    Extract one token per numeric leaf of a provider payload.

    Booleans and non-finite values are skipped. Values are copied as-is.
    """
    currency = _payload_currency(data)
    temperature_unit = _payload_temperature_unit(data)

    tokens = []
    for path, leaf, value in _walk_numeric(data):
        tokens.append(NumericToken(
            value=value,
            context_key=infer_context_key(leaf, category, currency, temperature_unit),
            source_field=path,
            provider=provider,
            fetched_at=fetched_at,
        ))
    return tokens


def build_token_set(tokens: Iterable[NumericToken]) -> NumericTokenSet:
    keys: dict[str, NumericToken] = {}
    by_value: dict[float, list[NumericToken]] = {}
    by_context: dict[str, list[NumericToken]] = {}

    for token in tokens:
        for form in surface_forms(token):
            keys[form] = token
        by_value.setdefault(token.value, [])
        if token not in by_value[token.value]:
            by_value[token.value].append(token)
        by_context.setdefault(token.context_key, [])
        if token not in by_context[token.context_key]:
            by_context[token.context_key].append(token)

    return NumericTokenSet(
        tokens=keys,
        by_value={k: tuple(v) for k, v in by_value.items()},
        by_context={k: tuple(v) for k, v in by_context.items()},
    )


def build_token_set_from_data(
    data: dict[str, Any],
    fetched_at: float,
    provider: str,
    category: Optional[str] = None,
) -> NumericTokenSet:
    return build_token_set(extract_tokens_from_data(data, fetched_at, provider, category))


def merge_token_sets(*token_sets: Optional[NumericTokenSet]) -> NumericTokenSet:
    """Union of several token sets (None entries ignored)."""
    tokens: list[NumericToken] = []
    for ts in token_sets:
        if ts is not None:
            tokens.extend(ts.unique_tokens())
    return build_token_set(tokens)


def numeric_leaves(data: dict[str, Any]) -> list[float]:
    """All numeric values literally present in a payload."""
    return [value for _, _, value in _walk_numeric(data)]


def token_values(token_set: NumericTokenSet) -> list[float]:
    """Distinct token values, in insertion order."""
    return list(token_set.by_value)
