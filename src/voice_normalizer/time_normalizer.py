"""
Natural-language appointment time normalization.

A phrase is cleaned up once (see ``preprocess``) and then handed to an
ordered list of strategies. Each strategy either returns a result or passes;
the first result wins:

1. ``StrictFormatStrategy``      unambiguous numeric dates
2. ``NaturalLanguageStrategy``   relative days, explicit dates, ``dateparser``, weekdays
3. ``PhraseFallbackStrategy``    curated scheduling idioms ("any time next week")
4. ``PartialInformationStrategy`` standalone hints, or a clarification request
"""

from __future__ import annotations

import dataclasses
import re
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence

import dateparser
import structlog
from dateutil.relativedelta import relativedelta

from voice_common.timeutils import DEFAULT_TIMEZONE, load_zone, parse_clock

from . import vocabulary
from .models import Confidence, DateRange, NormalizedDateTime, ParseContext, TimeOfDay
from .preprocess import collapse_whitespace, preprocess_time_text

LOGGER = structlog.get_logger(__name__)

MAX_YEARS_AHEAD = 2
MAX_YEARS_BEHIND = 1


def is_plausible_appointment_date(candidate: date, today: date) -> bool:
    """Reject misparses: more than two years ahead or one year behind."""
    return today - relativedelta(years=MAX_YEARS_BEHIND) <= candidate <= today + relativedelta(years=MAX_YEARS_AHEAD)


def week_start(day: date) -> date:
    """Sunday on or before ``day``."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def this_week(today: date) -> DateRange:
    """Remaining days of the current Sunday-Saturday week, today included."""
    return DateRange(today, week_start(today) + timedelta(days=6))


def next_week(today: date) -> DateRange:
    start = week_start(today) + timedelta(days=7)
    return DateRange(start, start + timedelta(days=6))


class ParsingStrategy(Protocol):
    name: str

    def attempt(self, context: ParseContext) -> Optional[NormalizedDateTime]:
        ...


# --- 1. strict formats ------------------------------------------------------


class StrictFormatStrategy:
    """Exact numeric templates; M/D/YYYY is covered by %m/%d/%Y."""

    name = "strict"
    formats: Sequence[str] = ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y")

    def attempt(self, context: ParseContext) -> Optional[NormalizedDateTime]:
        for fmt in self.formats:
            try:
                parsed = datetime.strptime(context.cleaned, fmt).date()
            except ValueError:
                continue
            if is_plausible_appointment_date(parsed, context.today):
                return NormalizedDateTime(date=parsed, confidence=Confidence.HIGH, method=self.name)
            LOGGER.debug("time.strict.out_of_window", candidate=parsed.isoformat(), format=fmt)
        return None


# --- 2. natural language ----------------------------------------------------

_MONTH_NAMES = "|".join(sorted(vocabulary.MONTHS, key=len, reverse=True))
_MONTHS_WITHOUT_MAY = "|".join(sorted((m for m in vocabulary.MONTHS if m != "may"), key=len, reverse=True))
_WEEKDAY_NAMES = "|".join(vocabulary.WEEKDAYS)

_RELATIVE_DAY_OFFSETS = {"today": 0, "tonight": 0, "tomorrow": 1, "yesterday": -1}
_DAY_AFTER_TOMORROW_RE = re.compile(r"\bday after tomorrow\b")
_RELATIVE_DAY_RE = re.compile(r"\b(today|tonight|tomorrow|yesterday)\b")
_IN_N_UNITS_RE = re.compile(r"\bin (\d{1,3}) (days?|weeks?)\b")
_WEEKDAY_RE = re.compile(rf"\b(?:(this|next|last|on|coming)\s+)?({_WEEKDAY_NAMES})\b")
_CLOCK_TOKEN_RE = re.compile(r"\b\d{1,2}(?::\d{2})?(?:am|pm)\b|\b\d{1,2}:\d{2}\b")

_DATE_SPAN_RES = (
    re.compile(rf"\b(?:{_MONTH_NAMES})\.? \d{{1,2}}(?:,? \d{{4}})?\b"),
    re.compile(rf"\b\d{{1,2}} (?:of )?(?:{_MONTH_NAMES})(?:,? \d{{4}})?\b"),
    re.compile(r"\b\d{1,4}[/-]\d{1,2}(?:[/-]\d{2,4})?\b"),
    re.compile(rf"\b(?:{_MONTHS_WITHOUT_MAY})(?: \d{{4}})?\b"),
)
_FULL_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_NUMERIC_FULL_DATE_RE = re.compile(r"^\d{1,4}[/-]\d{1,2}[/-]\d{2,4}$")
_DAY_NUMBER_RE = re.compile(r"\b\d{1,2}\b")
_DAY_OF_MONTH_RE = re.compile(r"\bthe (\d{1,2})\b(?![:\d])")
_STRAY_PREPOSITION_RE = re.compile(r"\b(?:at|on|around|by)\b")
_COARSE_OFFSET_RE = re.compile(r"\b(?:months?|years?)\b")


class NaturalLanguageStrategy:
    """
    Relative days, explicit dates, free-form phrases and weekdays, biased
    toward the future.

    Deterministic resolvers run first. Explicit calendar dates are located
    with a regex, then the whole phrase is handed to ``dateparser`` with
    ``PREFER_DATES_FROM=future``. Weekday names only decide the date when no
    explicit date is present; otherwise they are checked against it and a
    mismatch drops the grade to medium.
    """

    name = "natural_language"

    def attempt(self, context: ParseContext) -> Optional[NormalizedDateTime]:
        for resolver in (
            self._relative_day,
            self._in_n_units,
            self._date_span,
            self._day_of_month,
            self._free_text,
            self._weekday,
            self._bare_clock,
        ):
            outcome = resolver(context)
            if outcome is None:
                continue
            candidate, confidence, label = outcome
            if not is_plausible_appointment_date(candidate, context.today):
                LOGGER.debug("time.natural.out_of_window", candidate=candidate.isoformat(), resolver=label)
                return None
            if label != "weekday" and not _agrees_with_weekday(candidate, context.cleaned):
                LOGGER.debug("time.natural.weekday_mismatch", candidate=candidate.isoformat())
                confidence = Confidence.MEDIUM
            return NormalizedDateTime(date=candidate, confidence=confidence, method=f"{self.name}:{label}")
        return None

    @staticmethod
    def _relative_day(context: ParseContext):
        if _DAY_AFTER_TOMORROW_RE.search(context.cleaned):
            return context.today + timedelta(days=2), Confidence.HIGH, "relative_day"
        match = _RELATIVE_DAY_RE.search(context.cleaned)
        if match:
            offset = _RELATIVE_DAY_OFFSETS[match.group(1)]
            return context.today + timedelta(days=offset), Confidence.HIGH, "relative_day"
        return None

    @staticmethod
    def _in_n_units(context: ParseContext):
        match = _IN_N_UNITS_RE.search(context.cleaned)
        if not match:
            return None
        amount = int(match.group(1))
        days = amount * 7 if match.group(2).startswith("week") else amount
        return context.today + timedelta(days=days), Confidence.HIGH, "relative_offset"

    @staticmethod
    def _date_span(context: ParseContext):
        for pattern in _DATE_SPAN_RES:
            match = pattern.search(context.cleaned)
            if not match:
                continue
            span = match.group(0).replace(" of ", " ")
            parsed = dateparser.parse(span, languages=["en"], settings=_dateparser_settings(context))
            if parsed is None:
                LOGGER.debug("time.natural.dateparser_miss", span=span)
                continue
            confidence = Confidence.HIGH if _is_fully_explicit(span) else Confidence.MEDIUM
            return parsed.date(), confidence, "dateparser"
        return None

    @staticmethod
    def _day_of_month(context: ParseContext):
        """A bare day of the month ("the 20th"), on or after today."""
        match = _DAY_OF_MONTH_RE.search(context.cleaned)
        if not match or _names_an_idiom(context.cleaned):
            return None
        day = int(match.group(1))
        first_of_month = context.today.replace(day=1)
        for months_ahead in range(3):
            try:
                candidate = (first_of_month + relativedelta(months=months_ahead)).replace(day=day)
            except ValueError:
                continue
            if candidate >= context.today:
                return candidate, Confidence.MEDIUM, "day_of_month"
        return None

    @staticmethod
    def _free_text(context: ParseContext):
        """Whole phrase through ``dateparser`` once weekday names and clock times are set aside."""
        if _names_an_idiom(context.cleaned):
            return None
        remainder = _CLOCK_TOKEN_RE.sub(" ", _WEEKDAY_RE.sub(" ", context.cleaned))
        remainder = collapse_whitespace(_STRAY_PREPOSITION_RE.sub(" ", remainder))
        if not remainder:
            return None
        settings = _dateparser_settings(context)
        parsed = dateparser.parse(remainder, languages=["en"], settings=settings)
        if parsed is None:
            LOGGER.debug("time.natural.free_text_miss", text=remainder)
            return None
        # REQUIRE_PARTS only constrains absolute dates; relative offsets pass it.
        certain = dateparser.parse(
            remainder,
            languages=["en"],
            settings={**settings, "REQUIRE_PARTS": ["day", "month", "year"]},
        )
        if certain is not None and not _COARSE_OFFSET_RE.search(remainder):
            confidence = Confidence.HIGH
        else:
            confidence = Confidence.MEDIUM
        return parsed.date(), confidence, "free_text"

    @staticmethod
    def _weekday(context: ParseContext):
        match = _WEEKDAY_RE.search(context.cleaned)
        if not match:
            return None
        modifier, name = match.group(1), match.group(2)
        today = context.today
        target = vocabulary.WEEKDAYS.index(name)
        if modifier == "next":
            # The named day inside the following Sunday-Saturday week.
            candidate = week_start(today) + timedelta(days=7 + (target + 1) % 7)
        elif modifier == "last":
            back = (today.weekday() - target) % 7 or 7
            candidate = today - timedelta(days=back)
        else:
            candidate = today + timedelta(days=(target - today.weekday()) % 7)
        return candidate, Confidence.MEDIUM, "weekday"

    @staticmethod
    def _bare_clock(context: ParseContext):
        match = _CLOCK_TOKEN_RE.search(context.cleaned)
        if not match:
            return None
        minutes = parse_clock(match.group(0))
        if minutes is None:
            return None
        now_minutes = context.now.hour * 60 + context.now.minute
        offset = 0 if minutes > now_minutes else 1
        return context.today + timedelta(days=offset), Confidence.MEDIUM, "clock"


def _dateparser_settings(context: ParseContext) -> dict:
    return {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": context.now.replace(tzinfo=None),
        "DATE_ORDER": "MDY",
        "PREFER_DAY_OF_MONTH": "first",
        "RETURN_AS_TIMEZONE_AWARE": False,
    }


def _names_an_idiom(cleaned: str) -> bool:
    """Scheduling idioms belong to the phrase fallback, not the general parser."""
    return any(rule.pattern.search(cleaned) for rule in PHRASE_RULES)


def _agrees_with_weekday(candidate: date, cleaned: str) -> bool:
    """True unless the phrase names a weekday other than the candidate's."""
    named = {match.group(2) for match in _WEEKDAY_RE.finditer(cleaned)}
    return not named or vocabulary.WEEKDAYS[candidate.weekday()] in named


def _is_fully_explicit(span: str) -> bool:
    """Year, month and day all spelled out in the span itself."""
    if _NUMERIC_FULL_DATE_RE.match(span):
        return True
    year = _FULL_YEAR_RE.search(span)
    if not year:
        return False
    without_year = span[: year.start()] + span[year.end():]
    return bool(_DAY_NUMBER_RE.search(without_year)) and bool(re.search(rf"\b(?:{_MONTH_NAMES})\b", span))


# --- 3. phrase fallback -----------------------------------------------------


@dataclasses.dataclass(frozen=True)
class PhraseRule:
    """One curated scheduling idiom."""

    pattern: re.Pattern
    resolve: Callable[[date], DateRange]
    confidence: Confidence
    exact: bool = True
    flexible: bool = False
    urgent: bool = False


def _through_next_week(today: date) -> DateRange:
    return DateRange(today, next_week(today).end)


def _next_seven_days(today: date) -> DateRange:
    return DateRange(today, today + timedelta(days=6))


PHRASE_RULES: Sequence[PhraseRule] = (
    PhraseRule(
        re.compile(r"(?:(?:any|some) ?time |any day )?this week"),
        this_week,
        Confidence.HIGH,
        flexible=True,
    ),
    PhraseRule(
        re.compile(r"(?:(?:any|some) ?time |any day )?next week"),
        next_week,
        Confidence.HIGH,
        flexible=True,
    ),
    PhraseRule(
        re.compile(r"whenever(?: works)?|any ?time|any day|(?:i'?m )?flexible|whatever works"),
        _through_next_week,
        Confidence.HIGH,
        flexible=True,
    ),
    PhraseRule(
        re.compile(r"(?:the )?(?:next|first|1|earliest|soonest) available(?: appointment| slot| time| one)?"),
        _next_seven_days,
        Confidence.HIGH,
        flexible=True,
        urgent=True,
    ),
    PhraseRule(
        re.compile(r"\b(?:morning|afternoon|evening) appointment\b"),
        this_week,
        Confidence.MEDIUM,
        exact=False,
        flexible=True,
    ),
    PhraseRule(
        re.compile(r"\bthis week\b"),
        this_week,
        Confidence.MEDIUM,
        exact=False,
        flexible=True,
    ),
    PhraseRule(
        re.compile(r"\bnext week\b"),
        next_week,
        Confidence.MEDIUM,
        exact=False,
        flexible=True,
    ),
)


class PhraseFallbackStrategy:
    """Idioms the general parser does not resolve, matched exactly or by regex."""

    name = "phrase"

    def __init__(self, rules: Sequence[PhraseRule] = PHRASE_RULES):
        self._rules = rules

    def attempt(self, context: ParseContext) -> Optional[NormalizedDateTime]:
        candidates = (context.cleaned, context.lowered.strip())
        for rule in self._rules:
            for text in candidates:
                matched = rule.pattern.fullmatch(text) if rule.exact else rule.pattern.search(text)
                if not matched:
                    continue
                window = rule.resolve(context.today)
                return NormalizedDateTime(
                    date=window.start,
                    confidence=rule.confidence,
                    method=f"{self.name}:{'exact' if rule.exact else 'partial'}",
                    date_range=window,
                    flexible=rule.flexible,
                    urgent=rule.urgent,
                )
        return None


# --- 4. partial information -------------------------------------------------


class PartialInformationStrategy:
    """Terminal strategy: report whatever hints exist, or ask for clarification."""

    name = "partial"

    def attempt(self, context: ParseContext) -> Optional[NormalizedDateTime]:
        tokens = set(context.cleaned.split()) | set(re.findall(r"[a-z']+", context.lowered))
        time_of_day = derive_time_of_day(context.cleaned, context.lowered)
        urgent = bool(tokens & vocabulary.URGENCY_WORDS)
        flexible = bool(tokens & vocabulary.FLEXIBILITY_WORDS)
        weekday = next((day for day in vocabulary.WEEKDAYS if day in tokens), None)

        if time_of_day is not TimeOfDay.ANY or urgent or flexible or weekday:
            return NormalizedDateTime(
                date=None,
                confidence=Confidence.LOW,
                method=self.name,
                time_of_day=time_of_day,
                urgent=urgent,
                flexible=flexible,
                day_of_week=weekday,
            )
        return NormalizedDateTime(
            date=None,
            confidence=Confidence.NONE,
            method="none",
            needs_clarification=True,
        )


# --- time of day ------------------------------------------------------------

_MIDDAY_RE = re.compile(r"\b(?:noon|midday)\b")
_AM_RE = re.compile(r"\d\s*am\b")
_PM_RE = re.compile(r"\d\s*pm\b")
_EXPLICIT_CLOCK_RE = re.compile(r"\b\d{1,2}:\d{2}\b")


def derive_time_of_day(cleaned: str, lowered: str = "") -> TimeOfDay:
    """Explicit words first, then the hour of an explicit clock time."""
    words = set(cleaned.split())
    if _MIDDAY_RE.search(lowered):
        return TimeOfDay.MIDDAY
    if "morning" in words or _AM_RE.search(cleaned):
        return TimeOfDay.MORNING
    if "afternoon" in words or (_PM_RE.search(cleaned) and "evening" not in words):
        return TimeOfDay.AFTERNOON
    if words & {"evening", "night", "tonight"}:
        return TimeOfDay.EVENING

    clock = _EXPLICIT_CLOCK_RE.search(cleaned)
    minutes = parse_clock(clock.group(0)) if clock else None
    if minutes is not None:
        hour = minutes // 60
        if 5 <= hour < 12:
            return TimeOfDay.MORNING
        if 12 <= hour < 17:
            return TimeOfDay.AFTERNOON
        if hour >= 17:
            return TimeOfDay.EVENING
    return TimeOfDay.ANY


# --- orchestration ----------------------------------------------------------

DEFAULT_STRATEGIES: Sequence[ParsingStrategy] = (
    StrictFormatStrategy(),
    NaturalLanguageStrategy(),
    PhraseFallbackStrategy(),
    PartialInformationStrategy(),
)


class TimeNormalizer:
    """Runs the strategy chain for one phrase."""

    def __init__(self, strategies: Sequence[ParsingStrategy] = DEFAULT_STRATEGIES):
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> Sequence[ParsingStrategy]:
        return self._strategies

    def parse(self, text: str, timezone: str = DEFAULT_TIMEZONE, *, now: Optional[datetime] = None) -> NormalizedDateTime:
        zone = load_zone(timezone)
        if now is None:
            now = datetime.now(tz=zone)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=zone)
        else:
            now = now.astimezone(zone)

        context = ParseContext(raw=text or "", cleaned=preprocess_time_text(text), now=now, timezone=timezone)
        LOGGER.debug("time.preprocessed", raw=context.raw, cleaned=context.cleaned)

        for strategy in self._strategies:
            result = strategy.attempt(context)
            if result is None:
                continue
            LOGGER.info(
                "time.parse.strategy_matched",
                strategy=strategy.name,
                method=result.method,
                confidence=result.confidence.value,
            )
            return self._finalize(result, context)

        LOGGER.info("time.parse.no_match", cleaned=context.cleaned)
        return NormalizedDateTime(date=None, confidence=Confidence.NONE, method="none", needs_clarification=True)

    @staticmethod
    def _finalize(result: NormalizedDateTime, context: ParseContext) -> NormalizedDateTime:
        tokens = set(re.findall(r"[a-z']+", context.lowered)) | set(context.cleaned.split())
        time_of_day = result.time_of_day
        if time_of_day is TimeOfDay.ANY:
            time_of_day = derive_time_of_day(context.cleaned, context.lowered)
        return dataclasses.replace(
            result,
            time_of_day=time_of_day,
            urgent=result.urgent or bool(tokens & vocabulary.URGENCY_WORDS),
            flexible=result.flexible or bool(tokens & vocabulary.FLEXIBILITY_WORDS),
        )


_DEFAULT_NORMALIZER = TimeNormalizer()


def parse_natural_time(text: str, timezone: str = DEFAULT_TIMEZONE, *, now: Optional[datetime] = None) -> NormalizedDateTime:
    """Normalize a spoken scheduling phrase into a date, time of day and confidence."""
    return _DEFAULT_NORMALIZER.parse(text, timezone, now=now)
