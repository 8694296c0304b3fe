"""
Leak Patterns — Frozen Numeric Pattern Library

This module defines every numeric surface form the leak guard looks for in
model output. Any numeric format that escapes these patterns is a potential
leak, so the catalog is deliberately exhaustive.

The catalog is FROZEN:
  - compiled once at import, never re-parsed per scan
  - immutable (frozen dataclasses in a read-only mapping)
  - stateless: compiled Python patterns keep no cursor, so one
    instance is safely shared across concurrent scans
  - versioned; any change to a source is a new PATTERN_LIBRARY_VERSION

Patterns are tagged with a category and bucketed into three scan tiers:
priority (cheap, catches the bulk of real leaks), secondary, tertiary.
A small always-exempt set (version strings, IPv4 addresses, phone numbers)
is carved out: numeric, but never decision-relevant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from leakguard.config import settings

PATTERN_LIBRARY_VERSION = settings.PATTERN_LIBRARY_VERSION

CATEGORIES: tuple[str, ...] = (
    "currency", "percentage", "time", "date", "decimal", "integer",
    "spelled", "range", "financial", "measurement", "misc",
)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class LeakPattern:
    """One catalog entry: a compiled numeric surface-form pattern."""
    key: str
    source: str
    category: str
    description: str
    ignore_case: bool = False

    @property
    def regex(self) -> re.Pattern:
        return _COMPILED[self.key]

    @property
    def requires_digit(self) -> bool:
        """Every non-spelled pattern must capture at least one digit."""
        return self.category != "spelled"


@dataclass(frozen=True)
class PatternMatch:
    """A single pattern hit in scanned text."""
    pattern: str
    matched_text: str
    index: int
    end: int
    category: str


# ============================================================
# SPELLED NUMBER VOCABULARY
# ============================================================

CARDINAL_VALUES: Mapping[str, int] = MappingProxyType({
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
    "hundred": 100, "thousand": 1_000, "million": 1_000_000,
    "billion": 1_000_000_000, "trillion": 1_000_000_000_000,
})

ORDINAL_WORDS: tuple[str, ...] = (
    "first", "second", "third", "fourth", "fifth", "sixth", "seventh",
    "eighth", "ninth", "tenth", "eleventh", "twelfth", "thirteenth",
    "fourteenth", "fifteenth", "sixteenth", "seventeenth", "eighteenth",
    "nineteenth", "twentieth", "thirtieth", "fortieth", "fiftieth",
    "sixtieth", "seventieth", "eightieth", "ninetieth", "hundredth",
    "thousandth", "millionth",
)

# Whole-number multipliers only; "half" and "quarter" have no integer value
MULTIPLIER_VALUES: Mapping[str, int | None] = MappingProxyType({
    "once": 1, "twice": 2, "thrice": 3, "double": 2, "triple": 3,
    "quadruple": 4, "half": None, "quarter": None,
})


def _word_alternation(words: Iterable[str]) -> str:
    return r"\b(?:" + "|".join(words) + r")\b"


# ============================================================
# PATTERN CATALOG
# ============================================================

_PATTERN_DEFS: tuple[LeakPattern, ...] = (
    # --- Currency ---
    LeakPattern(
        key="currency_usd",
        source=r"\$\s*-?[\d,]+(?:\.\d{1,2})?(?:\s*(?:USD|dollars?))?",
        category="currency", ignore_case=True,
        description="US Dollar amounts: $100, $1,234.56, $100 USD",
    ),
    LeakPattern(
        key="currency_eur",
        source=r"€\s*-?[\d,.\s]*\d(?:\.\d{1,2})?|\d[\d,.\s]*\s*(?:EUR|euros?)\b",
        category="currency", ignore_case=True,
        description="Euro amounts: €100, 100 EUR, 1.234,56 euros",
    ),
    LeakPattern(
        key="currency_gbp",
        source=r"£\s*-?[\d,]+(?:\.\d{1,2})?|\d[\d,]*\s*(?:GBP|pounds?\s*sterling)",
        category="currency", ignore_case=True,
        description="British Pound amounts: £100, 100 GBP",
    ),
    LeakPattern(
        key="currency_jpy",
        source=r"¥\s*-?[\d,]+|\d[\d,]*\s*(?:JPY|yen)\b",
        category="currency", ignore_case=True,
        description="Japanese Yen amounts: ¥10000, 10000 JPY",
    ),
    LeakPattern(
        key="currency_generic",
        source=(
            r"(?:₹|₽|₩|฿|₫|₴|₱|₦|₺|₵|CHF|CAD|AUD|NZD|SGD|HKD|CNY|INR|RUB|KRW|BRL|MXN|ZAR)"
            r"\s*-?[\d,]+(?:\.\d{1,2})?"
        ),
        category="currency", ignore_case=True,
        description="Other currency symbols and codes: ₹500, CHF 20",
    ),
    LeakPattern(
        key="currency_crypto",
        source=(
            r"(?:\b(?:BTC|ETH|SOL|ADA|DOT|XRP|DOGE|LTC|AVAX|MATIC)|₿|Ξ)\s*-?[\d,]+(?:\.\d{1,8})?"
            r"|\d[\d,]*(?:\.\d{1,8})?\s*(?:BTC|ETH|SOL|satoshis?|gwei|wei)\b"
        ),
        category="currency", ignore_case=True,
        description="Cryptocurrency amounts with up to 8 decimal places",
    ),

    # --- Percentage ---
    LeakPattern(
        key="percent_symbol",
        source=r"-?\d[\d,]*(?:\.\d+)?\s*%",
        category="percentage",
        description="Percentage with symbol: 50%, -3.5%",
    ),
    LeakPattern(
        key="percent_word",
        source=r"-?\d[\d,]*(?:\.\d+)?\s*(?:percent|percentage|pct)\b",
        category="percentage", ignore_case=True,
        description="Percentage with word: 50 percent",
    ),
    LeakPattern(
        key="basis_points",
        source=r"-?\d+\s*(?:bps|basis\s*points?)\b",
        category="percentage", ignore_case=True,
        description="Basis points: 25 bps, 50 basis points",
    ),

    # --- Time ---
    LeakPattern(
        key="time_12h",
        source=r"\b(?:1[0-2]|0?[1-9]):[0-5]\d(?::[0-5]\d)?\s*(?:AM|PM|a\.m\.|p\.m\.)",
        category="time", ignore_case=True,
        description="12-hour time: 3:45 PM, 11:30:00 am",
    ),
    LeakPattern(
        key="time_24h",
        source=r"\b(?:[01]?\d|2[0-3]):[0-5]\d(?::[0-5]\d)?\b",
        category="time",
        description="24-hour time: 15:45, 23:59:59",
    ),
    LeakPattern(
        key="time_with_seconds",
        source=r"\b(?:[01]?\d|2[0-3]):[0-5]\d:[0-5]\d(?:\.\d{1,6})?\b",
        category="time",
        description="Time with seconds/milliseconds: 15:45:30.123",
    ),
    LeakPattern(
        key="time_timezone",
        source=(
            r"\b(?:[01]?\d|2[0-3]):[0-5]\d(?::[0-5]\d)?\s*"
            r"(?:UTC|GMT|EST|PST|CST|MST|EDT|PDT|CDT|MDT|[A-Z]{2,4})"
            r"(?:[+-]\d{1,2}(?::\d{2})?)?\b"
        ),
        category="time",
        description="Time with timezone: 15:45 UTC, 09:00 CET",
    ),
    LeakPattern(
        key="unix_timestamp",
        source=r"\b1\d{9,12}\b",
        category="time",
        description="Unix timestamps (seconds or milliseconds since epoch)",
    ),
    LeakPattern(
        key="iso_timestamp",
        source=r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?(?:Z|[+-]\d{2}:?\d{2})?",
        category="time",
        description="ISO 8601 timestamps: 2024-01-15T10:30:00Z",
    ),

    # --- Date ---
    LeakPattern(
        key="date_mdy",
        source=r"\b(?:0?[1-9]|1[0-2])[/\-.](?:0?[1-9]|[12]\d|3[01])[/\-.](?:19|20)?\d{2}\b",
        category="date",
        description="MM/DD/YYYY or MM-DD-YY: 01/15/2024",
    ),
    LeakPattern(
        key="date_dmy",
        source=r"\b(?:0?[1-9]|[12]\d|3[01])[/\-.](?:0?[1-9]|1[0-2])[/\-.](?:19|20)?\d{2}\b",
        category="date",
        description="DD/MM/YYYY: 15/01/2024 (European)",
    ),
    LeakPattern(
        key="date_ymd",
        source=r"\b(?:19|20)\d{2}[/\-.](?:0?[1-9]|1[0-2])[/\-.](?:0?[1-9]|[12]\d|3[01])\b",
        category="date",
        description="YYYY-MM-DD: 2024-01-15",
    ),
    LeakPattern(
        key="date_iso",
        source=r"\b\d{4}-\d{2}-\d{2}\b",
        category="date",
        description="ISO date only: 2024-01-15",
    ),
    LeakPattern(
        key="date_written",
        source=(
            r"\b(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|Jun(?:e)?|Jul(?:y)?|"
            r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
            r"\s+\d{1,2}(?:st|nd|rd|th)?,?\s+(?:19|20)\d{2}\b"
        ),
        category="date", ignore_case=True,
        description="Written dates: January 15, 2024",
    ),

    # --- Decimal ---
    LeakPattern(
        key="decimal_us",
        source=r"-?\d{1,3}(?:,\d{3})*\.\d+|-?\d+\.\d+",
        category="decimal",
        description="US decimals: 1,234.56 or 123.456",
    ),
    LeakPattern(
        key="decimal_eu",
        source=r"-?\d{1,3}(?:\.\d{3})*,\d+",
        category="decimal",
        description="European decimals: 1.234,56",
    ),
    LeakPattern(
        key="scientific_notation",
        source=r"-?\d+(?:\.\d+)?[eE][+-]?\d+",
        category="decimal",
        description="Scientific notation: 1.23e10, 5E-3",
    ),

    # --- Integer ---
    LeakPattern(
        key="integer_plain",
        source=r"\b-?\d+\b",
        category="integer",
        description="Plain integers: 123, -456",
    ),
    LeakPattern(
        key="integer_thousands_comma",
        source=r"-?\d{1,3}(?:,\d{3})+",
        category="integer",
        description="Integers with comma separators: 1,234,567",
    ),
    LeakPattern(
        key="integer_thousands_space",
        source=r"-?\d{1,3}(?: \d{3})+\b",
        category="integer",
        description="Integers with space separators: 1 234 567",
    ),
    LeakPattern(
        key="integer_thousands_dot",
        source=r"-?\d{1,3}(?:\.\d{3})+(?!,)",
        category="integer",
        description="Integers with dot separators (European): 1.234.567",
    ),

    # --- Spelled numbers ---
    LeakPattern(
        key="spelled_cardinal",
        source=_word_alternation(CARDINAL_VALUES),
        category="spelled", ignore_case=True,
        description="Spelled cardinal numbers: one, twenty, million",
    ),
    LeakPattern(
        key="spelled_ordinal",
        source=_word_alternation(ORDINAL_WORDS),
        category="spelled", ignore_case=True,
        description="Spelled ordinal numbers: first, second, hundredth",
    ),
    LeakPattern(
        key="spelled_multiplier",
        source=_word_alternation(MULTIPLIER_VALUES),
        category="spelled", ignore_case=True,
        description="Spelled multipliers: twice, double, half",
    ),

    # --- Range ---
    LeakPattern(
        key="range_dash",
        source=r"-?\d[\d,]*(?:\.\d+)?\s*[-–—]\s*-?\d[\d,]*(?:\.\d+)?",
        category="range",
        description="Dash ranges: 10-20, 1.5–2.5",
    ),
    LeakPattern(
        key="range_to",
        source=r"-?\d[\d,]*(?:\.\d+)?\s+to\s+-?\d[\d,]*(?:\.\d+)?",
        category="range", ignore_case=True,
        description="Word ranges: 10 to 20",
    ),
    LeakPattern(
        key="range_between",
        source=r"\bbetween\s+-?\d[\d,]*(?:\.\d+)?\s+and\s+-?\d[\d,]*(?:\.\d+)?",
        category="range", ignore_case=True,
        description="Between ranges: between 10 and 20",
    ),
    LeakPattern(
        key="approximate",
        source=r"(?:\babout|\baround|\bapproximately|\bapprox\.?|\broughly|\bnearly|\balmost|~)\s*-?\d[\d,]*(?:\.\d+)?",
        category="range", ignore_case=True,
        description="Approximate values: about 100, ~50",
    ),

    # --- Financial ---
    LeakPattern(
        key="stock_change",
        source=r"(?<![\w.])[+-]\s*\d[\d,]*(?:\.\d+)?(?:\s*(?:\(|%)|\s*points?)?",
        category="financial",
        description="Stock changes: +2.5%, -10 points",
    ),
    LeakPattern(
        key="market_cap",
        source=r"\$?\d[\d,]*(?:\.\d+)?\s*(?:B|billion|M|million|K|thousand|T|trillion)\b",
        category="financial", ignore_case=True,
        description="Market cap: $2.5B, 500 million",
    ),
    LeakPattern(
        key="volume",
        source=r"\d[\d,]*(?:\.\d+)?\s*(?:shares?|units?|contracts?|lots?)\b",
        category="financial", ignore_case=True,
        description="Trading volume: 1,000,000 shares",
    ),
    LeakPattern(
        key="ratio",
        source=r"\d+(?:\.\d+)?\s*[:/]\s*\d+(?:\.\d+)?",
        category="financial",
        description="Ratios: 2:1, 1.5/1",
    ),
    LeakPattern(
        key="multiplier",
        source=r"\d+(?:\.\d+)?[xX]\b|\b[xX]\d+(?:\.\d+)?",
        category="financial",
        description="Multipliers: 2x, 10X, x5",
    ),

    # --- Measurement ---
    LeakPattern(
        key="temperature_c",
        source=r"-?\d+(?:\.\d+)?\s*°?\s*[Cc](?:elsius)?\b",
        category="measurement",
        description="Celsius: 25°C, 25 celsius",
    ),
    LeakPattern(
        key="temperature_f",
        source=r"-?\d+(?:\.\d+)?\s*°?\s*[Ff](?:ahrenheit)?\b",
        category="measurement",
        description="Fahrenheit: 77°F, 77 fahrenheit",
    ),
    LeakPattern(
        key="speed_mph",
        source=r"\d+(?:\.\d+)?\s*(?:mph|miles?\s*(?:per|/)\s*h(?:our)?)\b",
        category="measurement", ignore_case=True,
        description="Speed in mph: 60 mph",
    ),
    LeakPattern(
        key="speed_kph",
        source=r"\d+(?:\.\d+)?\s*(?:kph|km/?h|kilometers?\s*(?:per|/)\s*h(?:our)?)\b",
        category="measurement", ignore_case=True,
        description="Speed in kph: 100 km/h",
    ),
    LeakPattern(
        key="pressure",
        source=r"\d+(?:\.\d+)?\s*(?:mbar|mb|hPa|psi|atm|bar|mmHg|inHg)\b",
        category="measurement", ignore_case=True,
        description="Pressure: 1013 mb, 29.92 inHg",
    ),
    LeakPattern(
        key="distance",
        source=(
            r"\d+(?:\.\d+)?\s*(?:kilometers?|km|miles?|mi|meters?|m|feet|ft|yards?|yd|"
            r"cm|mm|inches|in)\b"
        ),
        category="measurement", ignore_case=True,
        description="Distance: 5 km, 10 miles",
    ),
    LeakPattern(
        key="weight",
        source=r"\d+(?:\.\d+)?\s*(?:kilograms?|kg|pounds?|lbs?|grams?|g|ounces?|oz|mg)\b",
        category="measurement", ignore_case=True,
        description="Weight: 70 kg, 150 lbs",
    ),

    # --- Misc ---
    LeakPattern(
        key="phone_number",
        source=r"(?:\+?1[-.\s]?)?(?:\(\d{3}\)\s?|\b\d{3}[-.])\d{3}[-.]\d{4}\b",
        category="misc",
        description="Phone numbers with separators: (555) 123-4567, 555-123-4567",
    ),
    LeakPattern(
        key="ip_address",
        source=r"\b(?:25[0-5]|2[0-4]\d|1?\d{1,2})(?:\.(?:25[0-5]|2[0-4]\d|1?\d{1,2})){3}\b",
        category="misc",
        description="IPv4 addresses: 192.168.1.1",
    ),
    LeakPattern(
        key="version_number",
        source=(
            r"\bv\d+(?:\.\d+){1,3}(?:-[a-zA-Z0-9.]+)?(?:\+[a-zA-Z0-9.]+)?\b"
            r"|\b(?!\d{1,3}(?:\.\d{3})+\b)\d+\.\d+\.\d+(?:\.\d+)?(?:-[a-zA-Z0-9.]+)?(?:\+[a-zA-Z0-9.]+)?\b"
        ),
        category="misc", ignore_case=True,
        description="Version numbers: v1.2, 2.0.0-beta (not bare decimals or dotted thousands)",
    ),
    LeakPattern(
        key="fraction",
        source=r"\b\d+\s*/\s*\d+\b",
        category="misc",
        description="Fractions: 1/2, 3/4",
    ),
    LeakPattern(
        key="negative_parens",
        source=r"\(\d[\d,]*(?:\.\d+)?\)",
        category="misc",
        description="Negative in parentheses: (100.50)",
    ),
    LeakPattern(
        key="ordinal_suffix",
        source=r"\b\d+(?:st|nd|rd|th)\b",
        category="misc", ignore_case=True,
        description="Ordinal suffixes: 1st, 2nd, 3rd, 4th",
    ),
)

LEAK_PATTERNS: Mapping[str, LeakPattern] = MappingProxyType(
    {p.key: p for p in _PATTERN_DEFS}
)

_COMPILED: Mapping[str, re.Pattern] = MappingProxyType({
    p.key: re.compile(p.source, re.IGNORECASE if p.ignore_case else 0)
    for p in _PATTERN_DEFS
})

PATTERN_CATEGORIES: Mapping[str, str] = MappingProxyType(
    {p.key: p.category for p in _PATTERN_DEFS}
)


# ============================================================
# SCAN TIERS
# ============================================================

# Cheap and catches the overwhelming majority of real leaks
PRIORITY_PATTERNS: tuple[str, ...] = (
    "currency_usd",
    "currency_eur",
    "currency_gbp",
    "currency_crypto",
    "percent_symbol",
    "percent_word",
    "decimal_us",
    "decimal_eu",
    "integer_plain",
    "integer_thousands_comma",
    "time_12h",
    "time_24h",
    "temperature_c",
    "temperature_f",
)

SECONDARY_PATTERNS: tuple[str, ...] = (
    "currency_jpy",
    "currency_generic",
    "basis_points",
    "time_with_seconds",
    "time_timezone",
    "unix_timestamp",
    "iso_timestamp",
    "scientific_notation",
    "integer_thousands_space",
    "integer_thousands_dot",
    "stock_change",
    "market_cap",
    "volume",
    "ratio",
    "multiplier",
    "speed_mph",
    "speed_kph",
    "pressure",
    "distance",
    "weight",
)

TERTIARY_PATTERNS: tuple[str, ...] = (
    "spelled_cardinal",
    "spelled_ordinal",
    "spelled_multiplier",
    "range_dash",
    "range_to",
    "range_between",
    "approximate",
    "date_mdy",
    "date_dmy",
    "date_ymd",
    "date_iso",
    "date_written",
    "fraction",
    "negative_parens",
    "ordinal_suffix",
)

ALWAYS_EXEMPT_PATTERNS: tuple[str, ...] = (
    "version_number",
    "ip_address",
    "phone_number",
)

# Full sweep order for scanning
SCAN_ORDER: tuple[str, ...] = PRIORITY_PATTERNS + SECONDARY_PATTERNS + TERTIARY_PATTERNS


# ============================================================
# FAST PATH
# ============================================================

# Every non-spelled pattern must capture a digit (enforced in
# find_all_matches), so a single digit is the exact precondition.
ANY_NUMERIC_PATTERN = re.compile(r"\d")

SPELLED_NUMBER_PATTERN = re.compile(
    _word_alternation(
        list(CARDINAL_VALUES) + list(ORDINAL_WORDS) + list(MULTIPLIER_VALUES)
    ),
    re.IGNORECASE,
)

_DIGIT = ANY_NUMERIC_PATTERN


def has_any_numeric(text: str) -> bool:
    """
    Quick first pass. False guarantees that no catalog pattern will
    report a match, so the full sweep can be skipped.
    """
    return bool(ANY_NUMERIC_PATTERN.search(text) or SPELLED_NUMBER_PATTERN.search(text))


# ============================================================
# PATTERN ACCESS
# ============================================================

def get_pattern(key: str) -> re.Pattern:
    """Compiled pattern for a key. Raises KeyError for unknown keys."""
    return _COMPILED[key]


def get_pattern_description(key: str) -> str:
    return LEAK_PATTERNS[key].description


def get_all_pattern_keys() -> list[str]:
    return list(LEAK_PATTERNS)


def get_patterns_by_category(category: str) -> list[str]:
    return [key for key, cat in PATTERN_CATEGORIES.items() if cat == category]


def is_always_exempt_pattern(key: str) -> bool:
    return key in ALWAYS_EXEMPT_PATTERNS


def find_all_matches(
    text: str,
    patterns: Iterable[str] = PRIORITY_PATTERNS,
) -> list[PatternMatch]:
    """
    Every match of the given patterns, sorted left to right.

    Ties at the same index keep the order of `patterns`, so the output is
    deterministic for a given (text, patterns) pair. Matched text is
    trimmed of surrounding whitespace and trailing commas; index/end
    follow the trim.
    """
    results: list[PatternMatch] = []
    for key in patterns:
        pattern = LEAK_PATTERNS[key]
        for m in pattern.regex.finditer(text):
            raw = m.group(0)
            stripped = raw.strip().rstrip(",").rstrip()
            if not stripped:
                continue
            if pattern.requires_digit and not _DIGIT.search(stripped):
                continue
            start = m.start() + (len(raw) - len(raw.lstrip()))
            results.append(PatternMatch(
                pattern=key,
                matched_text=stripped,
                index=start,
                end=start + len(stripped),
                category=pattern.category,
            ))

    results.sort(key=lambda r: r.index)
    return results


def get_patterns_summary() -> list[dict]:
    """The full detection surface, for documentation and debugging."""
    tier_of = {k: "priority" for k in PRIORITY_PATTERNS}
    tier_of.update({k: "secondary" for k in SECONDARY_PATTERNS})
    tier_of.update({k: "tertiary" for k in TERTIARY_PATTERNS})
    tier_of.update({k: "always_exempt" for k in ALWAYS_EXEMPT_PATTERNS})
    return [
        {
            "key": p.key,
            "category": p.category,
            "tier": tier_of[p.key],
            "description": p.description,
        }
        for p in _PATTERN_DEFS
    ]
