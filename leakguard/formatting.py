"""
Formatting — Deterministic Number Formatting

All functions here are locale-independent: comma for thousands, period for
decimals, regardless of system settings. Token surface forms are derived
from these, so the leak guard sees exactly the strings the evidence shows.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal


CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "CHF": "CHF ",
    "CAD": "C$",
    "AUD": "A$",
    "INR": "₹",
    "KRW": "₩",
    "BTC": "₿",
    "ETH": "Ξ",
}

CURRENCY_DECIMALS: dict[str, int] = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "CNY": 2,
    "CHF": 2,
    "CAD": 2,
    "AUD": 2,
    "INR": 2,
    "KRW": 0,
    "BTC": 8,
    "ETH": 8,
}

NOT_AVAILABLE = "N/A"


def _fixed(value: float, decimals: int) -> str:
    """Half-up fixed-point rendering (float repr, not binary, decides ties)."""
    quant = Decimal(1).scaleb(-decimals) if decimals > 0 else Decimal(1)
    return str(Decimal(repr(value)).quantize(quant, rounding=ROUND_HALF_UP))


def format_with_commas(value: float, decimals: int = 2) -> str:
    """
    Format a number with comma separators.

        format_with_commas(1234567.891, 2) -> "1,234,567.89"
        format_with_commas(1234567.891, 0) -> "1,234,568"
    """
    if not math.isfinite(value):
        return NOT_AVAILABLE

    fixed = _fixed(value, decimals)
    negative = fixed.startswith("-")
    if negative:
        fixed = fixed[1:]
    int_part, _, dec_part = fixed.partition(".")

    groups = []
    while len(int_part) > 3:
        groups.insert(0, int_part[-3:])
        int_part = int_part[:-3]
    groups.insert(0, int_part)
    result = ",".join(groups)

    if dec_part and decimals > 0:
        result = f"{result}.{dec_part}"
    if negative and result.strip("0,.") != "":
        result = f"-{result}"
    return result


def format_currency(value: float, currency: str = "USD", decimals: int | None = None) -> str:
    """format_currency(1234.56, "EUR") -> "€1,234.56"."""
    if not math.isfinite(value):
        return NOT_AVAILABLE

    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    places = decimals if decimals is not None else CURRENCY_DECIMALS.get(currency, 2)
    formatted = format_with_commas(abs(value), places)
    return f"-{symbol}{formatted}" if value < 0 else f"{symbol}{formatted}"


def format_percent(value: float, decimals: int = 2, show_sign: bool = False) -> str:
    """format_percent(1.5, 2, True) -> "+1.50%"."""
    if not math.isfinite(value):
        return NOT_AVAILABLE

    formatted = _fixed(abs(value), decimals)
    if value > 0 and show_sign:
        return f"+{formatted}%"
    if value < 0:
        return f"-{formatted}%"
    return f"{formatted}%"


def format_currency_change(value: float, currency: str = "USD", decimals: int | None = None) -> str:
    """Signed currency amount: "+$2.30", "-$1.50"."""
    if not math.isfinite(value):
        return NOT_AVAILABLE
    formatted = format_currency(abs(value), currency, decimals)
    if value > 0:
        return f"+{formatted}"
    if value < 0:
        return f"-{formatted}"
    return formatted


def crypto_decimals(value: float) -> int:
    """Decimal places for a crypto price, by magnitude."""
    magnitude = abs(value)
    if magnitude >= 1:
        return 2
    if magnitude >= 0.01:
        return 4
    if magnitude >= 0.0001:
        return 6
    return 8


def format_crypto_price(value: float, currency: str = "USD") -> str:
    if not math.isfinite(value):
        return NOT_AVAILABLE
    return format_currency(value, currency, crypto_decimals(value))


def format_rate(rate: float, decimals: int = 4) -> str:
    """Bare FX rate: format_rate(0.92341) -> "0.9234"."""
    if not math.isfinite(rate):
        return NOT_AVAILABLE
    return _fixed(rate, decimals)


def format_exchange_rate(rate: float, base: str, quote: str, decimals: int = 4) -> str:
    """format_exchange_rate(0.9234, "USD", "EUR") -> "1 USD = 0.9234 EUR"."""
    if not math.isfinite(rate):
        return NOT_AVAILABLE
    return f"1 {base} = {format_rate(rate, decimals)} {quote}"


def format_temperature(value: float, unit: str = "C", decimals: int = 0) -> str:
    """format_temperature(21.6) -> "22°C"."""
    if not math.isfinite(value):
        return NOT_AVAILABLE
    return f"{_fixed(value, decimals)}°{unit.upper()}"


_LARGE_SUFFIXES = (
    (1_000_000_000_000, "T"),
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def format_large_number(value: float, decimals: int = 2) -> str:
    """format_large_number(1_500_000_000) -> "1.50B"."""
    if not math.isfinite(value):
        return NOT_AVAILABLE

    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    for threshold, suffix in _LARGE_SUFFIXES:
        if magnitude >= threshold:
            return f"{sign}{_fixed(magnitude / threshold, decimals)}{suffix}"
    return f"{sign}{_fixed(magnitude, decimals)}"


def get_decimal_places(value: float) -> int:
    """Decimal places in the shortest repr of a value (0 for integers)."""
    if not math.isfinite(value) or float(value).is_integer():
        return 0
    text = repr(abs(float(value)))
    if "e" in text or "E" in text:
        return max(0, -Decimal(text).as_tuple().exponent)
    _, _, dec = text.partition(".")
    return len(dec)


def round_half_up(value: float, decimals: int) -> float:
    """Half-up on the shortest repr: round_half_up(2.675, 2) -> 2.68."""
    return float(_fixed(value, decimals))
