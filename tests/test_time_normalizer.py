"""Tests for the natural-language appointment time pipeline."""

from datetime import date, datetime

import pytest

from voice_common.timeutils import InvalidTimezoneError
from voice_normalizer.models import Confidence, DateRange, NormalizedDateTime, TimeOfDay
from voice_normalizer.time_normalizer import (
    NaturalLanguageStrategy,
    PartialInformationStrategy,
    PhraseFallbackStrategy,
    StrictFormatStrategy,
    TimeNormalizer,
    derive_time_of_day,
    is_plausible_appointment_date,
    next_week,
    parse_natural_time,
    this_week,
    week_start,
)


@pytest.fixture
def parse(reference_now):
    def _parse(text, timezone="America/New_York"):
        return parse_natural_time(text, timezone, now=reference_now)

    return _parse


@pytest.mark.unit
class TestStrictFormats:
    @pytest.mark.parametrize("text", ["03/20/2025", "2025-03-20", "3/20/25", "3/20/2025"])
    def test_exact_formats_are_high_confidence(self, parse, text):
        result = parse(text)
        assert result.date == date(2025, 3, 20)
        assert result.confidence is Confidence.HIGH
        assert result.method == "strict"

    def test_strict_parse_round_trips_through_its_own_format(self, parse):
        first = parse("04/02/2025")
        second = parse(first.date.strftime("%m/%d/%Y"))
        assert first.date == second.date == date(2025, 4, 2)

    def test_date_beyond_two_years_is_rejected(self, parse):
        result = parse("03/20/2030")
        assert result.date is None
        assert result.confidence is Confidence.NONE
        assert result.needs_clarification is True

    def test_date_more_than_a_year_back_is_rejected(self, parse):
        assert parse("2023-01-05").confidence is Confidence.NONE


@pytest.mark.unit
class TestNaturalLanguage:
    def test_tomorrow_morning(self, parse):
        result = parse("tomorrow morning")
        assert result.date == date(2025, 3, 13)
        assert result.time_of_day is TimeOfDay.MORNING
        assert result.confidence is Confidence.HIGH

    def test_today_and_tonight(self, parse):
        assert parse("today").date == date(2025, 3, 12)
        tonight = parse("tonight")
        assert tonight.date == date(2025, 3, 12)
        assert tonight.time_of_day is TimeOfDay.EVENING

    def test_day_after_tomorrow(self, parse):
        assert parse("the day after tomorrow").date == date(2025, 3, 14)

    @pytest.mark.parametrize("text, expected", [("in 3 days", date(2025, 3, 15)), ("in two weeks", date(2025, 3, 26))])
    def test_relative_offsets(self, parse, text, expected):
        result = parse(text)
        assert result.date == expected
        assert result.confidence is Confidence.HIGH

    def test_bare_weekday_is_next_occurrence(self, parse):
        result = parse("friday")
        assert result.date == date(2025, 3, 14)
        assert result.confidence is Confidence.MEDIUM
        assert result.method == "natural_language:weekday"

    def test_next_weekday_is_in_the_following_week(self, parse):
        assert parse("next friday").date == date(2025, 3, 21)

    def test_weekday_matching_today_is_today(self, parse):
        assert parse("wendsday afternoon").date == date(2025, 3, 12)

    def test_month_and_day_without_year_is_medium(self, parse):
        result = parse("march twentieth")
        assert result.date == date(2025, 3, 20)
        assert result.confidence is Confidence.MEDIUM

    def test_full_written_date_is_high(self, parse):
        result = parse("december 25, 2025")
        assert result.date == date(2025, 12, 25)
        assert result.confidence is Confidence.HIGH

    def test_date_inside_sentence(self, parse):
        result = parse("on the 5th of april")
        assert result.date == date(2025, 4, 5)

    def test_bare_clock_later_today(self, parse):
        result = parse("3pm")
        assert result.date == date(2025, 3, 12)
        assert result.time_of_day is TimeOfDay.AFTERNOON

    def test_bare_clock_already_passed_is_tomorrow(self, parse):
        assert parse("8am").date == date(2025, 3, 13)

    def test_asap_is_today_and_urgent(self, parse):
        result = parse("ASAP")
        assert result.date == date(2025, 3, 12)
        assert result.urgent is True
        assert result.confidence is Confidence.HIGH


@pytest.mark.unit
class TestFreeTextDates:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("in a week", date(2025, 3, 19)),
            ("2 weeks from now", date(2025, 3, 26)),
            ("in a week at 3pm", date(2025, 3, 19)),
        ],
    )
    def test_relative_phrases_are_high(self, parse, text, expected):
        result = parse(text)
        assert result.date == expected
        assert result.confidence is Confidence.HIGH
        assert result.method == "natural_language:free_text"

    def test_next_month_leaves_the_day_implied(self, parse):
        result = parse("next month")
        assert result.date == date(2025, 4, 12)
        assert result.confidence is Confidence.MEDIUM

    def test_day_of_month_later_this_month(self, parse):
        result = parse("the 20th")
        assert result.date == date(2025, 3, 20)
        assert result.confidence is Confidence.MEDIUM
        assert result.method == "natural_language:day_of_month"

    def test_day_of_month_already_passed_rolls_forward(self, parse):
        assert parse("the 5th").date == date(2025, 4, 5)

    def test_explicit_date_beats_weekday(self, parse):
        result = parse("friday march 28 2025")
        assert result.date == date(2025, 3, 28)
        assert result.confidence is Confidence.HIGH

    def test_conflicting_weekday_keeps_date_but_lowers_grade(self, parse):
        result = parse("monday march 28 2025")
        assert result.date == date(2025, 3, 28)
        assert result.confidence is Confidence.MEDIUM

    def test_weekday_with_day_of_month(self, parse):
        assert parse("friday the 28th").date == date(2025, 3, 28)

    def test_idioms_are_left_to_the_phrase_table(self, parse):
        assert parse("next week").method == "phrase:exact"
        assert parse("the first available").method == "phrase:exact"


@pytest.mark.unit
class TestPhraseFallback:
    def test_concatenated_this_week(self, parse):
        result = parse("anytimethisweek")
        assert result.confidence is Confidence.HIGH
        assert result.date_range == DateRange(date(2025, 3, 12), date(2025, 3, 15))
        assert result.date == date(2025, 3, 12)
        assert result.flexible is True

    def test_next_week_is_full_sunday_to_saturday(self, parse):
        result = parse("any time next week")
        assert result.date_range == DateRange(date(2025, 3, 16), date(2025, 3, 22))

    def test_whenever_is_flexible(self, parse):
        result = parse("whenever")
        assert result.flexible is True
        assert result.date_range.start == date(2025, 3, 12)
        assert result.date_range.end == date(2025, 3, 22)

    @pytest.mark.parametrize("text", ["next available", "first available", "the earliest available appointment"])
    def test_next_available_is_urgent(self, parse, text):
        result = parse(text)
        assert result.confidence is Confidence.HIGH
        assert result.urgent is True
        assert result.date == date(2025, 3, 12)

    def test_partial_appointment_phrase_is_medium(self, parse):
        result = parse("I'd like an afternoon appointment")
        assert result.confidence is Confidence.MEDIUM
        assert result.time_of_day is TimeOfDay.AFTERNOON
        assert result.method == "phrase:partial"


@pytest.mark.unit
class TestPartialInformation:
    def test_time_of_day_only_is_low(self, parse):
        result = parse("morning")
        assert result.confidence is Confidence.LOW
        assert result.date is None
        assert result.time_of_day is TimeOfDay.MORNING

    def test_urgency_only_is_low(self, parse):
        result = parse("it's urgent")
        assert result.confidence is Confidence.LOW
        assert result.urgent is True

    def test_gibberish_needs_clarification(self, parse):
        result = parse("blue elephant")
        assert result.confidence is Confidence.NONE
        assert result.needs_clarification is True
        assert result.to_dict()["needs_clarification"] is True

    def test_empty_text(self, parse):
        assert parse("").confidence is Confidence.NONE


@pytest.mark.unit
class TestTimeOfDay:
    @pytest.mark.parametrize(
        "cleaned, lowered, expected",
        [
            ("tomorrow 9am", "", TimeOfDay.MORNING),
            ("tomorrow at 3pm", "", TimeOfDay.AFTERNOON),
            ("tomorrow evening at 7pm", "", TimeOfDay.EVENING),
            ("friday night", "", TimeOfDay.EVENING),
            ("tomorrow at 12:00pm", "tomorrow at noon", TimeOfDay.MIDDAY),
            ("tomorrow at 14:30", "", TimeOfDay.AFTERNOON),
            ("tomorrow at 08:15", "", TimeOfDay.MORNING),
            ("tomorrow at 18:00", "", TimeOfDay.EVENING),
            ("tomorrow", "", TimeOfDay.ANY),
        ],
    )
    def test_derivation(self, cleaned, lowered, expected):
        assert derive_time_of_day(cleaned, lowered) is expected

    def test_pronoun_am_is_not_a_morning_marker(self):
        assert derive_time_of_day("i am free tomorrow") is TimeOfDay.ANY


@pytest.mark.unit
class TestWeekHelpers:
    def test_week_starts_on_sunday(self):
        assert week_start(date(2025, 3, 12)) == date(2025, 3, 9)
        assert week_start(date(2025, 3, 9)) == date(2025, 3, 9)

    def test_this_week_on_saturday_is_one_day(self):
        saturday = date(2025, 3, 15)
        assert this_week(saturday) == DateRange(saturday, saturday)

    def test_next_week_from_sunday(self):
        assert next_week(date(2025, 3, 9)) == DateRange(date(2025, 3, 16), date(2025, 3, 22))

    def test_plausibility_window(self):
        today = date(2025, 3, 12)
        assert is_plausible_appointment_date(date(2027, 3, 12), today)
        assert not is_plausible_appointment_date(date(2027, 3, 13), today)
        assert is_plausible_appointment_date(date(2024, 3, 12), today)
        assert not is_plausible_appointment_date(date(2024, 3, 11), today)


@pytest.mark.unit
class TestOrchestration:
    def test_default_strategy_order(self):
        names = [strategy.name for strategy in TimeNormalizer().strategies]
        assert names == ["strict", "natural_language", "phrase", "partial"]

    def test_first_strategy_result_wins(self, reference_now):
        class Always:
            name = "always"

            def attempt(self, context):
                return NormalizedDateTime(date=context.today, confidence=Confidence.HIGH, method="always")

        normalizer = TimeNormalizer([Always(), StrictFormatStrategy()])
        assert normalizer.parse("03/20/2025", now=reference_now).method == "always"

    def test_no_strategy_matches(self, reference_now):
        normalizer = TimeNormalizer([StrictFormatStrategy(), NaturalLanguageStrategy(), PhraseFallbackStrategy()])
        result = normalizer.parse("blue elephant", now=reference_now)
        assert result.confidence is Confidence.NONE
        assert result.needs_clarification is True

    def test_partial_strategy_is_terminal(self, reference_now):
        normalizer = TimeNormalizer([PartialInformationStrategy()])
        assert normalizer.parse("tomorrow", now=reference_now).confidence is Confidence.NONE

    def test_invalid_timezone_raises(self, reference_now):
        with pytest.raises(InvalidTimezoneError):
            parse_natural_time("tomorrow", "Mars/Olympus_Mons", now=reference_now)

    def test_reference_time_is_converted_to_callers_zone(self):
        # 02:00 UTC on the 13th is still the 12th in Los Angeles.
        now = datetime.fromisoformat("2025-03-13T02:00:00+00:00")
        result = parse_natural_time("tomorrow", "America/Los_Angeles", now=now)
        assert result.date == date(2025, 3, 13)

    def test_naive_reference_time_is_read_in_callers_zone(self):
        result = parse_natural_time("today", "America/Chicago", now=datetime(2025, 3, 12, 23, 30))
        assert result.date == date(2025, 3, 12)


@pytest.mark.unit
class TestResultInvariants:
    def test_none_confidence_cannot_carry_date(self):
        with pytest.raises(ValueError):
            NormalizedDateTime(date=date(2025, 3, 12), confidence=Confidence.NONE, method="x")

    def test_high_confidence_requires_date(self):
        with pytest.raises(ValueError):
            NormalizedDateTime(date=None, confidence=Confidence.HIGH, method="x")

    def test_serialisation(self, parse):
        payload = parse("anytimethisweek").to_dict()
        assert payload["date"] == "2025-03-12"
        assert payload["date_range"] == {"start": "2025-03-12", "end": "2025-03-15"}
        assert payload["confidence"] == "high"
