"""US state names, abbreviations and default timezones."""

from __future__ import annotations

from types import MappingProxyType
from typing import List, Mapping, Optional

from voice_common.timeutils import DEFAULT_TIMEZONE

STATE_ABBREVIATIONS: Mapping[str, str] = MappingProxyType(
    {
        "Alabama": "AL",
        "Alaska": "AK",
        "Arizona": "AZ",
        "Arkansas": "AR",
        "California": "CA",
        "Colorado": "CO",
        "Connecticut": "CT",
        "Delaware": "DE",
        "District of Columbia": "DC",
        "Florida": "FL",
        "Georgia": "GA",
        "Hawaii": "HI",
        "Idaho": "ID",
        "Illinois": "IL",
        "Indiana": "IN",
        "Iowa": "IA",
        "Kansas": "KS",
        "Kentucky": "KY",
        "Louisiana": "LA",
        "Maine": "ME",
        "Maryland": "MD",
        "Massachusetts": "MA",
        "Michigan": "MI",
        "Minnesota": "MN",
        "Mississippi": "MS",
        "Missouri": "MO",
        "Montana": "MT",
        "Nebraska": "NE",
        "Nevada": "NV",
        "New Hampshire": "NH",
        "New Jersey": "NJ",
        "New Mexico": "NM",
        "New York": "NY",
        "North Carolina": "NC",
        "North Dakota": "ND",
        "Ohio": "OH",
        "Oklahoma": "OK",
        "Oregon": "OR",
        "Pennsylvania": "PA",
        "Rhode Island": "RI",
        "South Carolina": "SC",
        "South Dakota": "SD",
        "Tennessee": "TN",
        "Texas": "TX",
        "Utah": "UT",
        "Vermont": "VT",
        "Virginia": "VA",
        "Washington": "WA",
        "West Virginia": "WV",
        "Wisconsin": "WI",
        "Wyoming": "WY",
    }
)

STATE_NAMES: Mapping[str, str] = MappingProxyType({abbr: name for name, abbr in STATE_ABBREVIATIONS.items()})

_BY_LOWER_NAME = {name.lower(): abbr for name, abbr in STATE_ABBREVIATIONS.items()}

_PACIFIC = ("CA", "NV", "OR", "WA")
_MOUNTAIN = ("CO", "ID", "MT", "NM", "UT", "WY")
_CENTRAL = ("AL", "AR", "IA", "IL", "KS", "LA", "MN", "MO", "MS", "ND", "NE", "OK", "SD", "TN", "TX", "WI")

STATE_TIMEZONES: Mapping[str, str] = MappingProxyType(
    {
        **{abbr: DEFAULT_TIMEZONE for abbr in STATE_NAMES},
        **{abbr: "America/Los_Angeles" for abbr in _PACIFIC},
        **{abbr: "America/Denver" for abbr in _MOUNTAIN},
        **{abbr: "America/Chicago" for abbr in _CENTRAL},
        "AZ": "America/Phoenix",
        "AK": "America/Anchorage",
        "HI": "Pacific/Honolulu",
    }
)


def canonical_abbreviation(value: Optional[str]) -> Optional[str]:
    """``"new york"``, ``"NY"`` and ``" ny "`` all resolve to ``"NY"``; unknown values to None."""
    if not value or not isinstance(value, str):
        return None
    text = " ".join(value.split())
    if text.upper() in STATE_NAMES:
        return text.upper()
    return _BY_LOWER_NAME.get(text.lower())


def resolve_state(state: Optional[str], state_abbr: Optional[str] = None) -> Optional[str]:
    """Canonical abbreviation from whichever of the two inputs is recognised."""
    return canonical_abbreviation(state_abbr) or canonical_abbreviation(state)


def state_query_variants(state: Optional[str], state_abbr: Optional[str] = None) -> List[str]:
    """
    Ordered values to try against the store's state field.

    Canonical abbreviation and full name come first; the raw inputs and their
    upper-cased forms follow for records written with non-canonical values.
    """
    candidates: List[str] = []
    canonical = resolve_state(state, state_abbr)
    if canonical:
        candidates.extend([canonical, STATE_NAMES[canonical]])
    for raw in (state, state_abbr):
        if raw and isinstance(raw, str) and raw.strip():
            candidates.extend([raw.strip(), raw.strip().upper()])

    seen = set()
    ordered = []
    for candidate in candidates:
        if candidate not in seen:
            seen.add(candidate)
            ordered.append(candidate)
    return ordered


def timezone_for_state(value: Optional[str]) -> str:
    abbr = canonical_abbreviation(value)
    return STATE_TIMEZONES.get(abbr, DEFAULT_TIMEZONE) if abbr else DEFAULT_TIMEZONE
