"""Text clean-up applied before any date parsing strategy runs."""

from __future__ import annotations

import re
from typing import List

from . import vocabulary
from .spoken_numbers import strip_ordinal_suffixes, words_to_numbers

_MIN_FREE_PIECE = 4
_KEYWORDS_BY_LENGTH = sorted(vocabulary.TEMPORAL_KEYWORDS, key=lambda keyword: (-len(keyword), keyword))

_TYPO_RE = re.compile(r"\b(%s)\b" % "|".join(map(re.escape, vocabulary.TYPO_CORRECTIONS)))
_SYNONYM_RES = tuple((re.compile(rf"\b{pattern}\b"), replacement) for pattern, replacement in vocabulary.SYNONYMS)

# "three thirty pm" arrives here as "3 30 pm".
_SPOKEN_CLOCK_RE = re.compile(
    r"(?:\b(?P<before>[a-z]+)\s+)?\b(?P<hour>\d{1,2})\s+(?P<minute>[0-5]\d)\s*(?P<meridiem>am|pm)\b"
)


def _join_spoken_clock(match: re.Match) -> str:
    before = match.group("before")
    if before in vocabulary.MONTHS:
        # "march 5 10 am" is a day followed by an hour.
        return match.group(0)
    prefix = f"{before} " if before else ""
    return f"{prefix}{match.group('hour')}:{match.group('minute')}{match.group('meridiem')}"


_CLOCK_REWRITES = (
    (re.compile(r"\b([ap])\.\s?m\b\.?"), r"\1m"),
    (re.compile(r"\b(\d{1,2})\s*o'?\s?clock\b"), r"\1:00"),
    (_SPOKEN_CLOCK_RE, _join_spoken_clock),
    (re.compile(r"\bat (\d{1,2})\s+([0-5]\d)\b"), r"at \1:\2"),
    (re.compile(r"\b(\d{1,2}(?::\d{2})?)\s+(am|pm)\b"), r"\1\2"),
)
_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def split_concatenated_words(text: str) -> str:
    """Insert spaces inside tokens glued together around temporal keywords."""
    return " ".join(" ".join(_segment(token)) for token in text.split())


def _segment(token: str) -> List[str]:
    if (
        token in vocabulary.TEMPORAL_KEYWORDS
        or token in vocabulary.UNSPLITTABLE_WORDS
        or not token.isalpha()
    ):
        return [token]
    for keyword in _KEYWORDS_BY_LENGTH:
        if len(keyword) >= len(token):
            continue
        if token.startswith(keyword):
            rest = token[len(keyword):]
            if _is_free_piece(rest):
                return [keyword] + _segment(rest)
        if token.endswith(keyword):
            head = token[: -len(keyword)]
            if _is_free_piece(head):
                return _segment(head) + [keyword]
    return [token]


def _is_free_piece(piece: str) -> bool:
    return piece in vocabulary.TEMPORAL_KEYWORDS or (len(piece) >= _MIN_FREE_PIECE and piece.isalpha())


def correct_typos(text: str) -> str:
    return _TYPO_RE.sub(lambda match: vocabulary.TYPO_CORRECTIONS[match.group(1)], text)


def apply_synonyms(text: str) -> str:
    for pattern, replacement in _SYNONYM_RES:
        text = pattern.sub(replacement, text)
    for pattern, replacement in _CLOCK_REWRITES:
        text = pattern.sub(replacement, text)
    return text


def preprocess_time_text(text: str) -> str:
    """
    Normalize a spoken scheduling phrase.

    Order matters: numbers are converted before concatenated words are split,
    typos are fixed on the split tokens, synonyms see the corrected words.
    """
    if not text or not isinstance(text, str):
        return ""
    cleaned = text.lower()
    cleaned = words_to_numbers(strip_ordinal_suffixes(cleaned))
    cleaned = split_concatenated_words(cleaned)
    cleaned = correct_typos(cleaned)
    cleaned = apply_synonyms(cleaned)
    return collapse_whitespace(cleaned)


_DOB_PUNCTUATION_RE = re.compile(r"[,;]|(?<=[a-z])\.|\.(?=[a-z])")


def preprocess_dob_text(text: str) -> str:
    """Lowercase, fix typos and drop punctuation that never separates date parts."""
    if not text or not isinstance(text, str):
        return ""
    cleaned = correct_typos(text.lower())
    cleaned = strip_ordinal_suffixes(cleaned)
    cleaned = _DOB_PUNCTUATION_RE.sub(" ", cleaned)
    return collapse_whitespace(cleaned)
