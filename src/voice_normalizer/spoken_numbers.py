"""
Spoken number conversion for transcribed dates and times.

Converts runs of number words into digits while leaving every other token
alone: ``"march twenty-first nineteen ninety eight"`` becomes
``"march 21 1998"`` and ``"the eleventh of nov two thousand"`` becomes
``"the 11 of nov 2000"``.

Year grammar understood inside a run:

* ``nineteen|twenty`` followed by a cardinal two-digit group
  (``nineteen ninety eight`` -> 1998, ``twenty ten`` -> 2010,
  ``nineteen oh five`` -> 1905)
* ``two thousand [and] N`` -> 2000 + N
* ``<n> hundred [and] N`` -> n * 100 + N
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

ONES = {
    "zero": 0,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
}
TEENS = {
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
}
TENS = {
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fourty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}
ORDINAL_ONES = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
}
ORDINAL_TEENS = {
    "tenth": 10,
    "eleventh": 11,
    "twelfth": 12,
    "thirteenth": 13,
    "fourteenth": 14,
    "fifteenth": 15,
    "sixteenth": 16,
    "seventeenth": 17,
    "eighteenth": 18,
    "nineteenth": 19,
}
ORDINAL_TENS = {"twentieth": 20, "thirtieth": 30}

ZERO_WORDS = {"oh", "o"}
CENTURY_WORDS = {"nineteen": 19, "twenty": 20}

_ALL_WORDS = sorted(
    set(ONES)
    | set(TEENS)
    | set(TENS)
    | set(ORDINAL_ONES)
    | set(ORDINAL_TEENS)
    | set(ORDINAL_TENS)
    | ZERO_WORDS
    | {"hundred", "thousand"},
    key=len,
    reverse=True,
)
_WORD = r"\b(?:%s)\b" % "|".join(_ALL_WORDS)
_RUN_RE = re.compile(rf"{_WORD}(?:(?:\s+|-)(?:and\s+)?{_WORD})*")
_ORDINAL_SUFFIX_RE = re.compile(r"\b(\d+)(?:st|nd|rd|th)\b")


def strip_ordinal_suffixes(text: str) -> str:
    """``"18th"`` -> ``"18"``."""
    return _ORDINAL_SUFFIX_RE.sub(r"\1", text)


def words_to_numbers(text: str) -> str:
    """Replace runs of spoken number words with digits; other tokens pass through."""
    if not text:
        return ""
    return _RUN_RE.sub(lambda match: " ".join(_convert_run(re.split(r"[\s-]+", match.group(0)))), text.lower())


def _convert_run(words: List[str]) -> List[str]:
    out: List[str] = []
    index = 0
    while index < len(words):
        consumed = _read_year(words, index) or _read_number(words, index)
        if consumed is None:
            out.append(words[index])
            index += 1
            continue
        rendered, index = consumed
        out.append(rendered)
    return out


def _read_number(words: List[str], index: int) -> Optional[Tuple[str, int]]:
    word = words[index]
    if word in ZERO_WORDS and index + 1 < len(words) and words[index + 1] in ONES:
        return f"0{ONES[words[index + 1]]}", index + 2
    small = _read_small(words, index)
    if small is None:
        return None
    value, next_index, _ = small
    return str(value), next_index


def _read_small(words: List[str], index: int) -> Optional[Tuple[int, int, bool]]:
    """Read a value in 0..99 as (value, next_index, is_ordinal)."""
    if index >= len(words):
        return None
    word = words[index]
    following = words[index + 1] if index + 1 < len(words) else None
    if word in TENS:
        if following in ONES and ONES[following] > 0:
            return TENS[word] + ONES[following], index + 2, False
        if following in ORDINAL_ONES:
            return TENS[word] + ORDINAL_ONES[following], index + 2, True
        return TENS[word], index + 1, False
    for table, is_ordinal in (
        (ORDINAL_TENS, True),
        (TEENS, False),
        (ORDINAL_TEENS, True),
        (ONES, False),
        (ORDINAL_ONES, True),
    ):
        if word in table:
            return table[word], index + 1, is_ordinal
    return None


def _read_two_digit_group(words: List[str], index: int) -> Optional[Tuple[str, int]]:
    """Cardinal group that can close a spoken year: ``ninety eight``, ``ten``, ``oh five``."""
    if index >= len(words):
        return None
    word = words[index]
    if word in ZERO_WORDS | {"zero"}:
        if index + 1 < len(words) and words[index + 1] in ONES and ONES[words[index + 1]] > 0:
            return f"0{ONES[words[index + 1]]}", index + 2
        return None
    if word not in TENS and word not in TEENS:
        return None
    small = _read_small(words, index)
    if small is None or small[2]:
        return None
    return f"{small[0]:02d}", small[1]


def _read_year(words: List[str], index: int) -> Optional[Tuple[str, int]]:
    word = words[index]
    following = words[index + 1] if index + 1 < len(words) else None

    if word == "two" and following == "thousand":
        return _with_remainder(2000, words, index + 2)

    if following == "hundred" and (word in ONES or word in TEENS):
        base = (ONES[word] if word in ONES else TEENS[word]) * 100
        return _with_remainder(base, words, index + 2)

    if word in CENTURY_WORDS:
        group = _read_two_digit_group(words, index + 1)
        if group is not None:
            digits, next_index = group
            return str(CENTURY_WORDS[word] * 100 + int(digits)), next_index
    return None


def _with_remainder(base: int, words: List[str], index: int) -> Tuple[str, int]:
    cursor = index
    if cursor < len(words) and words[cursor] == "and":
        cursor += 1
    small = _read_small(words, cursor)
    if small is not None and not small[2]:
        return str(base + small[0]), small[1]
    return str(base), index
