"""
Leak Guard — Post-Generation Numeric Scanner

The second, independent layer. Whatever the prompt said, this scans the
raw generated text and proves that every stated number stays inside the
ResponseConstraints allowance.

Three modes, chosen from the constraints alone:
  - passthrough: permissive policy without tokens, nothing to enforce
  - forbid:      numeric precision not allowed; every catalog match is a
                 violation unless an active exemption covers it
  - allowlist:   precision allowed against a token set; every digit-bearing
                 match must be traced back to a verified token

Constraints that fail validation put the scanner in invalid state: the
forbid sweep runs with no exemptions and the result never passes.

Deterministic. Stateless. One shared instance.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from leakguard.config import settings
from leakguard.constraints import (
    NO_EXEMPTIONS,
    NumericExemptions,
    ResponseConstraints,
    validate_constraints,
)
from leakguard.formatting import round_half_up
from leakguard.patterns import (
    ALWAYS_EXEMPT_PATTERNS,
    CARDINAL_VALUES,
    LEAK_PATTERNS,
    MULTIPLIER_VALUES,
    SCAN_ORDER,
    PatternMatch,
    find_all_matches,
    has_any_numeric,
)
from leakguard.tokens import NumericTokenSet

logger = logging.getLogger(__name__)

ScanMode = Literal["passthrough", "forbid", "allowlist"]


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class LeakViolation:
    """A number in the text that the policy does not allow."""
    pattern: str
    category: str
    matched_text: str
    index: int
    end: int
    context: str           # surrounding text, for logs and review
    reason: str


@dataclass
class ExemptedMatch:
    pattern: str
    matched_text: str
    index: int
    reason: str            # "year", "code_block", "small_integer", ...


@dataclass
class ScanTrace:
    """Counters describing how a verdict was reached."""
    patterns_checked: int = 0
    matches_found: int = 0
    matches_exempted: int = 0
    overlaps_deduplicated: int = 0
    always_exempt_skipped: int = 0
    tokens_checked: int = 0
    tokens_matched: int = 0
    exemption_reasons: list[str] = field(default_factory=list)


@dataclass
class LeakGuardResult:
    """Result of one leak-guard scan."""
    passed: bool
    mode: ScanMode
    violations: list[LeakViolation]
    exempted: list[ExemptedMatch]
    banned_phrases_found: list[str]
    missing_citations: list[str]
    missing_required_phrases: list[str]
    invalid_state: bool
    invalid_state_reasons: list[str]
    trace: ScanTrace
    processing_time_ms: float
    core_version: str = settings.CORE_VERSION


# ============================================================
# TEXT REGIONS
# ============================================================

_CODE_SPANS = (
    re.compile(r"```.*?```", re.DOTALL),
    re.compile(r"`[^`\n]+`"),
)

_QUOTE_SPANS = (
    re.compile(r'"[^"\n]*"'),
    re.compile(r"“[^”]*”"),
)

# Hypothetical framing that makes a percentage illustrative, not a claim
_EXPLANATORY_CUES = re.compile(
    r"\bfor example\b|\bfor instance\b|\be\.g\.|\bif\b|\bsay\b|\bsuppose\b|\bhypothetically\b",
    re.IGNORECASE,
)

_YEAR = re.compile(r"(?:19|20)\d{2}")
_PLAIN_INT = re.compile(r"-?\d+")

# A small count stops being incidental once a unit follows it
_QUANTITY_UNIT = re.compile(
    r"\s*(?:percent(?:age\s+points?)?|per\s*cent|pct|basis\s+points?|bps|points?|pts?"
    r"|dollars?|bucks|euros?|pounds?|yen|cents?)\b",
    re.IGNORECASE,
)

# One figure, most specific layout first; the layout decides the separators
_NUMBER = re.compile(
    r"\d{1,3}(?:\.\d{3})+,\d+"              # 1.234,56
    r"|\d{1,3}(?:\.\d{3}){2,}(?!\d)"        # 1.234.567
    r"|\d{1,3}(?:,\d{3})+(?!\d)(?:\.\d+)?"  # 1,234.56
    r"|\d+,\d{1,2}(?!\d)"                   # 1234,56
    r"|\d+(?:\.\d+)?"
)
_AMBIGUOUS_DOT = re.compile(r"\d{1,3}\.\d{3}")  # 1.234: decimal, or 1234 with a dot separator
_GROUP_SPACE = re.compile(r"(?<=\d)[ \u00a0\u202f](?=\d{3}(?!\d))")
_SCALE_SUFFIX = re.compile(r"(?:T|trillion|B|billion|M|million|K|thousand)$", re.IGNORECASE)
_SCALES = {"t": 1e12, "b": 1e9, "m": 1e6, "k": 1e3}

_TRAILING_UNIT_WORDS = re.compile(
    r"\s*(?:USD|dollars?|EUR|euros?|GBP|pounds?\s*sterling|JPY|yen)$", re.IGNORECASE,
)
_SYMBOL_GAP = re.compile(r"(?<=[$€£¥₿Ξ])\s+|\s+(?=[%°])|(?<=°)\s+")

_ORDINAL_PATTERNS = frozenset({"ordinal_suffix", "spelled_ordinal"})

# Spelled words carry no digit, so there is nothing to look up in allowlist mode
_ALLOWLIST_ORDER: tuple[str, ...] = tuple(
    key for key in SCAN_ORDER if LEAK_PATTERNS[key].category != "spelled"
)


def _spans(regexes, text: str) -> list[tuple[int, int]]:
    return [(m.start(), m.end()) for r in regexes for m in r.finditer(text)]


def _inside(match: PatternMatch, spans: list[tuple[int, int]]) -> bool:
    return any(start <= match.index and match.end <= end for start, end in spans)


# ============================================================
# THE LEAK GUARD
# ============================================================

class LeakGuard:
    """
    Post-generation numeric scanner.

    Holds no mutable state; the pattern catalog it sweeps is compiled
    once at import in leakguard.patterns.
    """

    def __init__(self):
        self._context_chars = settings.VIOLATION_CONTEXT_CHARS
        self._cue_window = settings.EXPLANATORY_CUE_WINDOW

    def check(self, text: str, constraints: ResponseConstraints) -> LeakGuardResult:
        """
        Scan text against a response policy.

        Args:
            text: Raw generated text.
            constraints: The policy the text must satisfy.

        Returns:
            LeakGuardResult with violations, exemptions and phrase checks.
        """
        start = time.perf_counter()
        trace = ScanTrace()
        violations: list[LeakViolation] = []
        exempted: list[ExemptedMatch] = []

        # --- Phase 1: Mode selection ---
        invalid_reasons = validate_constraints(constraints)
        if invalid_reasons:
            mode: ScanMode = "forbid"
            logger.warning(
                "Invalid constraints reached the leak guard: %s",
                "; ".join(invalid_reasons),
                extra={"constraint_level": constraints.constraint_level.value, "mode": mode},
            )
        else:
            mode = self._select_mode(constraints)

        # --- Phase 2: Numeric sweep ---
        if mode == "forbid":
            exemptions = NO_EXEMPTIONS if invalid_reasons else constraints.numeric_exemptions
            self._sweep_forbid(text, exemptions, trace, violations, exempted)
        elif mode == "allowlist":
            self._sweep_allowlist(text, constraints.allowed_tokens, trace, violations)

        # --- Phase 3: Phrase checks ---
        lowered = text.lower()
        banned = [p for p in constraints.banned_phrases if p.lower() in lowered]
        missing_citations = [c for c in constraints.required_citations if c.lower() not in lowered]
        missing_phrases = [p for p in constraints.required_phrases if p.lower() not in lowered]

        passed = not violations and not banned and not invalid_reasons
        duration_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            "Leak guard scan complete",
            extra={
                "mode": mode,
                "constraint_level": constraints.constraint_level.value,
                "violations_count": len(violations),
                "duration_ms": round(duration_ms, 3),
            },
        )

        return LeakGuardResult(
            passed=passed,
            mode=mode,
            violations=violations,
            exempted=exempted,
            banned_phrases_found=banned,
            missing_citations=missing_citations,
            missing_required_phrases=missing_phrases,
            invalid_state=bool(invalid_reasons),
            invalid_state_reasons=invalid_reasons,
            trace=trace,
            processing_time_ms=duration_ms,
        )

    @staticmethod
    def _select_mode(constraints: ResponseConstraints) -> ScanMode:
        if not constraints.numeric_precision_allowed:
            return "forbid"
        if constraints.allowed_tokens is None:
            return "passthrough"
        return "allowlist"

    # --- Match collection ---

    def _collect(self, text: str, keys: tuple[str, ...], trace: ScanTrace) -> list[PatternMatch]:
        """Catalog matches minus always-exempt regions, earliest first, then longest."""
        trace.patterns_checked = len(keys)
        if not has_any_numeric(text):
            return []

        matches = find_all_matches(text, keys)
        trace.matches_found = len(matches)

        carve_outs = [(m.index, m.end) for m in find_all_matches(text, ALWAYS_EXEMPT_PATTERNS)]
        if carve_outs:
            kept = [m for m in matches if not _inside(m, carve_outs)]
            trace.always_exempt_skipped = len(matches) - len(kept)
            matches = kept

        matches.sort(key=lambda m: (m.index, -(m.end - m.index)))
        return matches

    @staticmethod
    def _judge_each(
        matches: list[PatternMatch],
        trace: ScanTrace,
        clears: Callable[[PatternMatch], bool],
    ) -> None:
        """
        Walk sorted matches, judging each one not covered by an earlier match.

        A match overlapping the previous winner is dropped, unless that winner
        was cleared and the match runs past it: a cleared span must not hide
        the tail of a figure that starts inside it ("May 3 50%").
        """
        reach = -1
        cleared = False
        for m in matches:
            if m.index < reach and not (cleared and m.end > reach):
                trace.overlaps_deduplicated += 1
                continue
            cleared = clears(m)
            reach = max(reach, m.end)

    def _violation(self, text: str, m: PatternMatch, reason: str) -> LeakViolation:
        lo = max(0, m.index - self._context_chars)
        hi = min(len(text), m.end + self._context_chars)
        return LeakViolation(
            pattern=m.pattern,
            category=m.category,
            matched_text=m.matched_text,
            index=m.index,
            end=m.end,
            context=text[lo:hi],
            reason=reason,
        )

    # --- Forbid mode ---

    def _sweep_forbid(
        self,
        text: str,
        exemptions: NumericExemptions,
        trace: ScanTrace,
        violations: list[LeakViolation],
        exempted: list[ExemptedMatch],
    ) -> None:
        matches = self._collect(text, SCAN_ORDER, trace)
        if not matches:
            return

        code_spans = _spans(_CODE_SPANS, text) if exemptions.allow_in_code_blocks else []
        quote_spans = _spans(_QUOTE_SPANS, text) if exemptions.allow_in_quotes else []
        custom_spans = [
            (m.start(), m.end())
            for source in exemptions.custom_patterns
            for m in re.finditer(source, text)
        ]

        def exempt(m: PatternMatch) -> bool:
            reason = self._exemption_reason(
                text, m, exemptions, code_spans, quote_spans, custom_spans,
            )
            if reason is None:
                violations.append(self._violation(text, m, "numeric claim not allowed"))
                return False
            exempted.append(ExemptedMatch(m.pattern, m.matched_text, m.index, reason))
            trace.matches_exempted += 1
            if reason not in trace.exemption_reasons:
                trace.exemption_reasons.append(reason)
            return True

        self._judge_each(matches, trace, exempt)

    def _exemption_reason(
        self,
        text: str,
        m: PatternMatch,
        ex: NumericExemptions,
        code_spans: list[tuple[int, int]],
        quote_spans: list[tuple[int, int]],
        custom_spans: list[tuple[int, int]],
    ) -> Optional[str]:
        """The first exemption that covers this match, or None."""
        if code_spans and _inside(m, code_spans):
            return "code_block"
        if quote_spans and _inside(m, quote_spans):
            return "quoted"
        if custom_spans and _inside(m, custom_spans):
            return "custom_pattern"
        if ex.allow_dates and m.category == "date":
            return "date"
        if ex.allow_years and _YEAR.fullmatch(m.matched_text):
            return "year"
        if ex.allow_ordinals and m.pattern in _ORDINAL_PATTERNS:
            return "ordinal"
        if ex.allow_small_integers and not _QUANTITY_UNIT.match(text, m.end):
            value = _small_integer_value(m)
            if value is not None and 0 <= value <= ex.small_integer_max:
                return "small_integer"
        if ex.allow_explanatory_percentages and m.category == "percentage":
            window = text[max(0, m.index - self._cue_window):m.index]
            if _EXPLANATORY_CUES.search(window):
                return "explanatory_percentage"
        return None

    # --- Allowlist mode ---

    def _sweep_allowlist(
        self,
        text: str,
        tokens: NumericTokenSet,
        trace: ScanTrace,
        violations: list[LeakViolation],
    ) -> None:
        def verified(m: PatternMatch) -> bool:
            trace.tokens_checked += 1
            if _verify_against_tokens(m, tokens):
                trace.tokens_matched += 1
                return True
            violations.append(self._violation(text, m, "not found in verified evidence"))
            return False

        self._judge_each(self._collect(text, _ALLOWLIST_ORDER, trace), trace, verified)


# ============================================================
# NUMBER HELPERS
# ============================================================

def _small_integer_value(m: PatternMatch) -> Optional[int]:
    """Integer value of a plain or spelled integer match, else None."""
    word = m.matched_text.lower()
    if m.pattern == "spelled_cardinal":
        return CARDINAL_VALUES.get(word)
    if m.pattern == "spelled_multiplier":
        return MULTIPLIER_VALUES.get(word)
    if m.pattern == "integer_plain" and _PLAIN_INT.fullmatch(m.matched_text):
        return int(m.matched_text)
    return None


def _normalize_key(text: str) -> str:
    """'$ 67,890.12 USD' -> '$67,890.12'."""
    stripped = _TRAILING_UNIT_WORDS.sub("", text.strip())
    return _SYMBOL_GAP.sub("", stripped)


def _reading(plain: str) -> tuple[float, int]:
    _, _, dec = plain.partition(".")
    return float(plain), len(dec)


def _readings(figure: str) -> list[tuple[float, int]]:
    """
    Every plausible (value, decimals shown) for one figure, decided by its
    own separators: '1.234,56' -> 1234.56, '1,234.56' -> 1234.56,
    '12,5' -> 12.5. A lone '1.234' is read both ways.
    """
    if "," in figure and "." in figure:
        if figure.index(".") < figure.index(","):
            return [_reading(figure.replace(".", "").replace(",", "."))]
        return [_reading(figure.replace(",", ""))]
    if figure.count(".") > 1:
        return [_reading(figure.replace(".", ""))]
    if "," in figure:
        if re.fullmatch(r"\d{1,3}(?:,\d{3})+", figure):
            return [_reading(figure.replace(",", ""))]
        return [_reading(figure.replace(",", "."))]
    if _AMBIGUOUS_DOT.fullmatch(figure):
        return [_reading(figure), _reading(figure.replace(".", ""))]
    return [_reading(figure)]


# (shown value, decimals shown, scale): '$67.9K' -> (67.9, 1, 1000.0)
Reading = tuple[float, int, float]


def _components(m: PatternMatch) -> list[list[Reading]]:
    """Candidate readings for each number inside a match."""
    raw = _GROUP_SPACE.sub("", m.matched_text)

    scale = 1.0
    if m.pattern == "market_cap":
        suffix = _SCALE_SUFFIX.search(raw)
        if suffix:
            scale = _SCALES[suffix.group(0)[0].lower()]

    return [
        [(value, decimals, scale) for value, decimals in _readings(n.group(0))]
        for n in _NUMBER.finditer(raw)
    ]


def _context_unit(m: PatternMatch) -> Optional[str]:
    """Unit prefix implied by the surface form of a match."""
    text = m.matched_text.lower()
    if m.category == "percentage":
        return "percent"
    if m.pattern in ("temperature_c", "temperature_f"):
        return "temperature"
    if "$" in text or "usd" in text or "dollar" in text:
        return "usd"
    if "€" in text or "eur" in text:
        return "eur"
    if "£" in text or "gbp" in text:
        return "gbp"
    if "¥" in text or "jpy" in text or "yen" in text:
        return "jpy"
    return None


def _value_matches(reading: Reading, token_value: float) -> bool:
    """Token rounded half-up to the precision shown, in the units shown."""
    shown, decimals, scale = reading
    return round_half_up(abs(token_value) / scale, decimals) == shown


def _reading_verified(reading: Reading, tokens: NumericTokenSet, candidates) -> bool:
    shown, _, scale = reading
    value = shown * scale
    if tokens.lookup_value(value) or tokens.lookup_value(-value):
        return True
    return any(_value_matches(reading, t.value) for t in candidates)


def _verify_against_tokens(m: PatternMatch, tokens: NumericTokenSet) -> bool:
    """
    Trace a match back to a verified token, in three tiers:
      1. exact formatted key
      2. bare value (magnitude), per component
      3. context unit with the token rounded to the precision shown
    Multi-number matches (ranges, ratios) pass only if every number does.
    """
    if tokens.lookup_key(m.matched_text) or tokens.lookup_key(_normalize_key(m.matched_text)):
        return True

    parts = _components(m)
    if not parts:
        return False

    unit = _context_unit(m)
    candidates = tokens.lookup_unit(unit) if unit else []

    return all(
        any(_reading_verified(r, tokens, candidates) for r in readings)
        for readings in parts
    )


# ============================================================
# MODULE API
# ============================================================

leak_guard = LeakGuard()


def check_numeric_leak(text: str, constraints: ResponseConstraints) -> LeakGuardResult:
    return leak_guard.check(text, constraints)


def would_pass(text: str, constraints: ResponseConstraints) -> bool:
    return leak_guard.check(text, constraints).passed


def is_forbid_mode(constraints: ResponseConstraints) -> bool:
    return not constraints.numeric_precision_allowed


def is_allowlist_mode(constraints: ResponseConstraints) -> bool:
    return constraints.numeric_precision_allowed and constraints.allowed_tokens is not None


def get_result_summary(result: LeakGuardResult) -> str:
    """One-line verdict for logs."""
    if result.invalid_state:
        return f"INVALID STATE: {'; '.join(result.invalid_state_reasons)}"

    verdict = "PASSED" if result.passed else "FAILED"
    parts = [f"{verdict} ({result.mode}): {len(result.violations)} violation(s)"]
    if result.violations:
        shown = ", ".join(v.matched_text for v in result.violations[:5])
        parts.append(f"[{shown}]")
    if result.exempted:
        parts.append(f"{len(result.exempted)} exempted")
    if result.banned_phrases_found:
        parts.append(f"banned phrases: {', '.join(result.banned_phrases_found)}")
    return " ".join(parts)
