"""
Date-of-birth normalization for typed and voice-transcribed input.

Strategies run from most to least specific and the first plausible date wins.
Nothing in here raises for bad input: an unreadable answer comes back as
``unable_to_normalize`` so the agent can ask again.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple

import structlog
from dateutil import parser as dateutil_parser

from . import vocabulary
from .models import NormalizedDOB
from .preprocess import collapse_whitespace, preprocess_dob_text
from .spoken_numbers import words_to_numbers

LOGGER = structlog.get_logger(__name__)

VALIDATION_LEVELS = ("strict", "standard", "loose")
MAX_AGE_YEARS = 120

_MONTH = "|".join(sorted(vocabulary.MONTHS, key=len, reverse=True))
_YEAR = r"\d{4}|\d{2}"

# (label, pattern); every pattern is matched against the whole text.
STRICT_FORMATS: Sequence[Tuple[str, re.Pattern]] = (
    ("iso", re.compile(r"(?P<y>\d{4})([-/.])(?P<m>\d{1,2})\2(?P<d>\d{1,2})")),
    ("us", re.compile(rf"(?P<m>\d{{1,2}})([-/])(?P<d>\d{{1,2}})\2(?P<y>{_YEAR})")),
    ("eu", re.compile(rf"(?P<d>\d{{1,2}})\.(?P<m>\d{{1,2}})\.(?P<y>{_YEAR})")),
    ("month_day_year", re.compile(rf"(?P<mon>{_MONTH}) (?P<d>\d{{1,2}}) (?P<y>{_YEAR})")),
    ("day_month_year", re.compile(rf"(?P<d>\d{{1,2}}) (?P<mon>{_MONTH}) (?P<y>{_YEAR})")),
    ("year_month_day", re.compile(rf"(?P<y>\d{{4}}) (?P<mon>{_MONTH}) (?P<d>\d{{1,2}})")),
)

# Digit-grouping templates for unseparated voice input, most specific first.
DIGIT_TEMPLATES = {
    8: (("MMDDYYYY", (("m", 2), ("d", 2), ("y", 4))), ("YYYYMMDD", (("y", 4), ("m", 2), ("d", 2)))),
    7: (("MDDYYYY", (("m", 1), ("d", 2), ("y", 4))), ("MMDYYYY", (("m", 2), ("d", 1), ("y", 4)))),
    6: (("MMDDYY", (("m", 2), ("d", 2), ("y", 2))), ("MDYYYY", (("m", 1), ("d", 1), ("y", 4)))),
    5: (("MDDYY", (("m", 1), ("d", 2), ("y", 2))), ("MMDYY", (("m", 2), ("d", 1), ("y", 2)))),
}

_SPACED_DIGITS_RE = re.compile(r"\d(?: \d){4,7}")
_CONTINUOUS_DIGITS_RE = re.compile(r"\d{5,8}")

_VOICE_PATTERNS: Sequence[Tuple[str, re.Pattern]] = (
    ("triplet", re.compile(rf"\b(?P<m>\d{{1,2}})[ /-](?P<d>\d{{1,2}})[ /-](?P<y>{_YEAR})\b")),
    ("month_day", re.compile(rf"\b(?P<mon>{_MONTH}) (?P<d>\d{{1,2}})(?: (?P<y>{_YEAR}))?\b")),
    ("day_month", re.compile(rf"\b(?P<d>\d{{1,2}}) (?P<mon>{_MONTH})(?: (?P<y>{_YEAR}))?\b")),
)

# Two fixed defaults, one a leap year; a component that differs between the
# two parses was filled from the default rather than read from the text.
_DEFAULT_A = datetime(1904, 1, 1)
_DEFAULT_B = datetime(1905, 2, 2)


def expand_two_digit_year(two_digit: int, today: date) -> int:
    """``yy <= (current % 100) + 20`` reads as 20yy, anything else as 19yy."""
    pivot = today.year % 100 + 20
    return 2000 + two_digit if two_digit <= pivot else 1900 + two_digit


def is_plausible_dob(candidate: date, today: date) -> bool:
    return today.year - MAX_AGE_YEARS <= candidate.year <= today.year and candidate <= today


class DOBNormalizer:
    """Runs the date-of-birth strategies for one validation level."""

    def __init__(self, validation_level: str = "standard"):
        if validation_level not in VALIDATION_LEVELS:
            raise ValueError(f"validation_level must be one of {VALIDATION_LEVELS}, got {validation_level!r}")
        self.validation_level = validation_level

    def normalize(self, text: str, *, today: Optional[date] = None) -> NormalizedDOB:
        today = today or date.today()
        cleaned = preprocess_dob_text(text)
        if not cleaned:
            LOGGER.info("dob.empty_input")
            return NormalizedDOB.failure()

        converted = _strip_fillers(words_to_numbers(cleaned))
        steps: Iterable[Tuple[str, Callable[[str, date], Optional[Tuple[date, str]]], str]] = (
            ("strict", _match_strict, cleaned),
            ("digits", _match_digits, cleaned),
            ("words", _match_strict, converted),
            ("words", _match_digits, converted),
            ("voice", _match_voice, converted),
        )
        for prefix, matcher, candidate_text in steps:
            found = matcher(candidate_text, today)
            if found is not None:
                value, label = found
                LOGGER.info("dob.normalized", method=f"{prefix}:{label}")
                return NormalizedDOB.success(value, f"{prefix}:{label}")

        if self.validation_level != "strict":
            value = _parse_with_dateutil(converted, today, fuzzy=self.validation_level == "loose")
            if value is not None:
                LOGGER.info("dob.normalized", method="dateutil", level=self.validation_level)
                return NormalizedDOB.success(value, "dateutil")

        LOGGER.info("dob.unable_to_normalize", cleaned=cleaned, level=self.validation_level)
        return NormalizedDOB.failure()


def normalize_dob(text: str, *, validation_level: str = "standard", today: Optional[date] = None) -> NormalizedDOB:
    """Normalize a spoken or typed date of birth to ``YYYY-MM-DD``."""
    return DOBNormalizer(validation_level).normalize(text, today=today)


def _strip_fillers(text: str) -> str:
    return collapse_whitespace(" ".join(word for word in text.split() if word not in vocabulary.DOB_FILLER_WORDS))


def _build(year: str, month: int, day: int, today: date, *, year_given: bool = True) -> Optional[date]:
    """Calendar-checked, plausibility-checked date, or None. Never rolls over."""
    two_digit = len(year) == 2
    numeric_year = expand_two_digit_year(int(year), today) if two_digit else int(year)
    try:
        candidate = date(numeric_year, month, day)
    except ValueError:
        return None

    if candidate > today:
        if not year_given:
            candidate = _shift_year(candidate, -1)
        elif two_digit:
            candidate = _shift_year(candidate, -100)
        else:
            return None
    if candidate is None or not is_plausible_dob(candidate, today):
        return None
    return candidate


def _shift_year(value: date, years: int) -> Optional[date]:
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        # Feb 29 in a year that has none.
        return None


def _month_of(groups: dict) -> Optional[int]:
    if groups.get("mon"):
        return vocabulary.MONTHS.get(groups["mon"])
    return int(groups["m"])


def _match_strict(text: str, today: date) -> Optional[Tuple[date, str]]:
    for label, pattern in STRICT_FORMATS:
        match = pattern.fullmatch(text)
        if not match:
            continue
        groups = match.groupdict()
        month = _month_of(groups)
        if month is None:
            continue
        value = _build(groups["y"], month, int(groups["d"]), today)
        if value is not None:
            return value, label
    return None


def _match_digits(text: str, today: date) -> Optional[Tuple[date, str]]:
    if _SPACED_DIGITS_RE.fullmatch(text):
        text = text.replace(" ", "")
    if not _CONTINUOUS_DIGITS_RE.fullmatch(text):
        return None
    for label, layout in DIGIT_TEMPLATES[len(text)]:
        parts = {}
        cursor = 0
        for field, width in layout:
            parts[field] = text[cursor:cursor + width]
            cursor += width
        value = _build(parts["y"], int(parts["m"]), int(parts["d"]), today)
        if value is not None:
            return value, label
    return None


def _match_voice(text: str, today: date) -> Optional[Tuple[date, str]]:
    for label, pattern in _VOICE_PATTERNS:
        for match in pattern.finditer(text):
            groups = match.groupdict()
            month = _month_of(groups)
            if month is None:
                continue
            year = groups.get("y")
            value = _build(year or str(today.year), month, int(groups["d"]), today, year_given=year is not None)
            if value is not None:
                return value, label
    return None


def _parse_with_dateutil(text: str, today: date, *, fuzzy: bool) -> Optional[date]:
    if not text:
        return None
    try:
        first = dateutil_parser.parse(text, default=_DEFAULT_A, fuzzy=fuzzy)
        second = dateutil_parser.parse(text, default=_DEFAULT_B, fuzzy=fuzzy)
    except (ValueError, OverflowError) as exc:
        LOGGER.debug("dob.dateutil_failed", text=text, error=str(exc))
        return None
    if first.date() != second.date():
        # Year, month or day was not in the text.
        return None
    candidate = first.date()
    return candidate if is_plausible_dob(candidate, today) else None
