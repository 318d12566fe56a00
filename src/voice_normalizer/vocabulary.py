"""
Lookup tables used by the normalizers.

Everything here is read-only data: swapping vocabularies per locale means
swapping this module, not touching the parsing code.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

WEEKDAYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

MONTHS: Mapping[str, int] = MappingProxyType(
    {
        "january": 1,
        "february": 2,
        "march": 3,
        "april": 4,
        "may": 5,
        "june": 6,
        "july": 7,
        "august": 8,
        "september": 9,
        "october": 10,
        "november": 11,
        "december": 12,
        "jan": 1,
        "feb": 2,
        "mar": 3,
        "apr": 4,
        "jun": 6,
        "jul": 7,
        "aug": 8,
        "sep": 9,
        "sept": 9,
        "oct": 10,
        "nov": 11,
        "dec": 12,
    }
)

# Words that may be glued to a neighbour by the transcriber ("anytimethisweek").
TEMPORAL_KEYWORDS: frozenset = frozenset(
    WEEKDAYS
    + tuple(name for name in MONTHS if len(name) > 3 and name != "sept")
    + (
        "today",
        "tomorrow",
        "yesterday",
        "tonight",
        "morning",
        "afternoon",
        "evening",
        "night",
        "next",
        "this",
        "last",
        "week",
        "month",
        "year",
        "any",
        "anytime",
        "time",
    )
)

# Real words that happen to start or end with a keyword.
UNSPLITTABLE_WORDS: frozenset = frozenset(
    {
        "anything",
        "anyone",
        "anybody",
        "anyway",
        "anywhere",
        "something",
        "sometimes",
        "someday",
        "weekend",
        "weekends",
        "weekday",
        "weekdays",
        "meantime",
        "lastly",
        "nightly",
        "monthly",
        "yearly",
        "timely",
        "timeline",
        "thistle",
        "marches",
        "mayday",
    }
)

TYPO_CORRECTIONS: Mapping[str, str] = MappingProxyType(
    {
        "tomorow": "tomorrow",
        "tommorow": "tomorrow",
        "tommorrow": "tomorrow",
        "tmrw": "tomorrow",
        "tmr": "tomorrow",
        "2morrow": "tomorrow",
        "wendsday": "wednesday",
        "wensday": "wednesday",
        "wednsday": "wednesday",
        "thrusday": "thursday",
        "thurday": "thursday",
        "thursdy": "thursday",
        "tuesay": "tuesday",
        "teusday": "tuesday",
        "saterday": "saturday",
        "satuday": "saturday",
        "firday": "friday",
        "febuary": "february",
        "feburary": "february",
        "januray": "january",
        "agust": "august",
        "septmber": "september",
        "tonite": "tonight",
        "mornin": "morning",
        "afternon": "afternoon",
        "evenin": "evening",
    }
)

# Ordered: longer phrases must be rewritten before their sub-phrases.
SYNONYMS: Tuple[Tuple[str, str], ...] = (
    (r"as soon as possible", "today"),
    (r"assoonaspossible", "today"),
    (r"asap", "today"),
    (r"end of (?:the )?day", "5:00pm"),
    (r"eod", "5:00pm"),
    (r"end of (?:the )?week", "friday"),
    (r"midnight", "12:00am"),
    (r"noon", "12:00pm"),
    (r"midday", "12:00pm"),
    (r"this coming", "this"),
    (r"anytime", "any time"),
)

URGENCY_WORDS: frozenset = frozenset({"urgent", "asap", "emergency", "soon", "soonest", "immediately"})

FLEXIBILITY_WORDS: frozenset = frozenset({"any", "anytime", "flexible", "whenever", "open"})

# Words that carry no date information in a spoken date of birth.
DOB_FILLER_WORDS: frozenset = frozenset(
    {
        "the",
        "of",
        "on",
        "in",
        "my",
        "i",
        "was",
        "born",
        "birthday",
        "birth",
        "date",
        "dob",
        "is",
        "its",
        "it's",
        "uh",
        "um",
        "and",
    }
)
