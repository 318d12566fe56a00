"""
Open-slot listing for ``/api/available-slots``.

Callers send one date, or a list of dates with ``is_multi_day``, plus
optional start-time filters. Every open slot on those dates that passes the
filters is listed in date and start-time order. Voice-flow variables arrive
half-filled more often than not, so every field is read leniently.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from voice_common.timeutils import parse_clock

from .matcher import SlotMatcher
from .states import canonical_abbreviation
from .store import SlotStore
from .zip_lookup import lookup_zip

LOGGER = structlog.get_logger(__name__)

# Inclusive start-time bounds, minutes after midnight.
TIME_OF_DAY_WINDOWS: Mapping[str, Tuple[int, int]] = MappingProxyType(
    {
        "morning": (8 * 60, 12 * 60 - 1),
        "afternoon": (12 * 60, 17 * 60 - 1),
        "evening": (17 * 60, 21 * 60 - 1),
        "night": (21 * 60, 23 * 60),
        "midday": (12 * 60, 12 * 60),
    }
)
FILTER_TYPES = ("after", "before", "between", "around")
DEFAULT_TOLERANCE_MINUTES = 30

_PLACEHOLDER_WORDS = frozenset({"any", "null", "undefined"})
_TEMPLATE_RE = re.compile(rb"\{\{[^}]*\}\}")
_NON_DIGITS_RE = re.compile(r"\D")


def is_placeholder(value: Any) -> bool:
    """Unfilled flow variables such as ``"{{state}}"`` or the literal ``"null"``."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    return "{{" in text or "}}" in text or text.lower() in _PLACEHOLDER_WORDS


def blank_placeholders(body: bytes) -> bytes:
    """Replace bare ``{{variable}}`` tokens with ``null`` so the body parses as JSON."""
    return _TEMPLATE_RE.sub(b"null", body)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")


def normalize_days(value: Any) -> List[str]:
    """Day list from an array, a JSON array string or a comma-separated string."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = (str(item).strip() for item in value)
        return [item for item in items if item]
    if not isinstance(value, str):
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return normalize_days(parsed)
    pieces = (piece.strip().strip("\"'").strip() for piece in value.strip().lstrip("[").rstrip("]").split(","))
    return [piece for piece in pieces if piece]


def normalize_object(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def to_minutes(value: Any) -> Optional[int]:
    """Minutes after midnight from a number (``540``) or a clock label (``"9:00 AM"``)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return parse_clock(text)


def parse_time_window(value: Any) -> Optional[Tuple[int, int]]:
    data = normalize_object(value)
    if not data:
        return None
    start, end = to_minutes(data.get("start")), to_minutes(data.get("end"))
    if start is None or end is None:
        return None
    return start, end


@dataclass(frozen=True)
class TimeFilter:
    """Relative start-time constraint; a missing bound leaves that side open."""

    type: str
    start: Optional[int] = None
    end: Optional[int] = None
    exact: Optional[int] = None
    tolerance: int = DEFAULT_TOLERANCE_MINUTES

    @classmethod
    def from_payload(cls, value: Any) -> Optional["TimeFilter"]:
        data = normalize_object(value)
        if not data or data.get("type") not in FILTER_TYPES:
            return None
        tolerance = to_minutes(data.get("tolerance"))
        return cls(
            type=data["type"],
            start=to_minutes(data.get("start")),
            end=to_minutes(data.get("end")),
            exact=to_minutes(data.get("exact")),
            tolerance=DEFAULT_TOLERANCE_MINUTES if tolerance is None else tolerance,
        )

    def admits(self, minutes: int) -> bool:
        if self.type == "around":
            return self.exact is None or abs(minutes - self.exact) <= self.tolerance
        if self.start is not None and self.type in ("after", "between") and minutes < self.start:
            return False
        if self.end is not None and self.type in ("before", "between") and minutes > self.end:
            return False
        return True


def within_preference(
    minutes: Optional[int],
    time_of_day: Optional[str],
    window: Optional[Tuple[int, int]] = None,
    time_filter: Optional[TimeFilter] = None,
) -> bool:
    """An explicit window overrides the named part of day; unreadable times always pass."""
    if minutes is None:
        return True
    bounds = window or TIME_OF_DAY_WINDOWS.get((time_of_day or "").strip().lower())
    if bounds and not bounds[0] <= minutes <= bounds[1]:
        return False
    return time_filter is None or time_filter.admits(minutes)


def _valid_dates(candidates: Sequence[Any]) -> List[str]:
    valid = []
    for candidate in candidates:
        try:
            valid.append(date.fromisoformat(str(candidate).strip()).isoformat())
        except ValueError:
            LOGGER.info("availability.date_skipped", value=candidate)
    return sorted(set(valid))


def _text_or(value: Any, default: str) -> str:
    if not isinstance(value, str) or not value.strip() or is_placeholder(value):
        return default
    return value.strip().lower()


@dataclass(frozen=True)
class AvailabilityQuery:
    dates: Tuple[str, ...]
    is_multi_day: bool = False
    request_type: str = "specific"
    time_of_day: str = "any"
    time_window: Optional[Tuple[int, int]] = None
    time_filter: Optional[TimeFilter] = None

    @classmethod
    def from_fields(
        cls,
        *,
        date: Any = None,
        days_to_check: Any = None,
        is_multi_day: Any = None,
        request_type: Any = None,
        time_of_day: Any = None,
        time_window: Any = None,
        time_filter: Any = None,
    ) -> "AvailabilityQuery":
        multi_day = to_bool(is_multi_day)
        days = normalize_days(days_to_check)
        candidates = days if multi_day and days else [date]
        return cls(
            dates=tuple(_valid_dates([value for value in candidates if value and not is_placeholder(value)])),
            is_multi_day=multi_day,
            request_type=_text_or(request_type, "specific"),
            time_of_day=_text_or(time_of_day, "any"),
            time_window=parse_time_window(time_window),
            time_filter=TimeFilter.from_payload(time_filter),
        )


async def resolve_patient_state(
    store: SlotStore,
    patient_state: Any = None,
    auto_state: Any = None,
    auto_state_abbreviation: Any = None,
    patient_zipcode: Any = None,
) -> Optional[str]:
    """
    First usable state among the caller's answer, the flow's auto-detected
    state and abbreviation, and the state of the caller's ZIP code.
    """
    for source, value in (("patient_state", patient_state), ("auto_state", auto_state)):
        if isinstance(value, str) and value.strip() and not is_placeholder(value):
            if source != "patient_state":
                LOGGER.info("availability.state.fallback", source=source, state=value)
            return value.strip()

    if isinstance(auto_state_abbreviation, str) and auto_state_abbreviation.strip():
        if not is_placeholder(auto_state_abbreviation):
            LOGGER.info("availability.state.fallback", source="auto_state_abbreviation")
            return auto_state_abbreviation.strip().upper()

    zip_code = _NON_DIGITS_RE.sub("", str(patient_zipcode or ""))[:5]
    if len(zip_code) == 5:
        info = await lookup_zip(store, zip_code)
        derived = info and (info.state_abbreviation or info.state)
        if derived:
            LOGGER.info("availability.state.from_zip", zip_code=zip_code, state=derived)
            return derived
    return None


async def list_available_slots(
    matcher: SlotMatcher,
    state: str,
    query: AvailabilityQuery,
    timezone: str,
    *,
    fresh: bool = False,
) -> List[Dict[str, Any]]:
    """Open slots on the requested dates passing the time filters, earliest first."""
    if not query.dates:
        return []
    slots = await matcher.slots_between(state, None, query.dates[0], query.dates[-1], fresh=fresh)
    wanted = set(query.dates)
    picked = [
        slot
        for slot in slots
        if slot.date in wanted
        and within_preference(slot.start_minutes, query.time_of_day, query.time_window, query.time_filter)
    ]
    picked.sort(key=lambda slot: (str(slot.date), slot.start_minutes is None, slot.start_minutes or 0))
    LOGGER.info("availability.listed", state=state, dates=len(query.dates), found=len(slots), listed=len(picked))
    return [{**slot.describe(timezone), "caller_timezone": timezone} for slot in picked]


def availability_response(
    slots: List[Dict[str, Any]], state: str, timezone: str, query: AvailabilityQuery
) -> Dict[str, Any]:
    return {
        "available_slots": slots,
        "has_slots": bool(slots),
        "total_slots": len(slots),
        "caller_timezone": timezone,
        "patient_state": canonical_abbreviation(state) or state,
        "dates_checked": list(query.dates),
        "is_multi_day": query.is_multi_day,
        "request_type": query.request_type,
    }


NEEDS_STATE_RESPONSE: Mapping[str, Any] = MappingProxyType(
    {
        "available_slots": [],
        "has_slots": False,
        "total_slots": 0,
        "needs_state": True,
        "message": "Patient state is required to check provider licensing",
        "suggestion": "Please capture state from ZIP code and retry",
    }
)
