"""Timezone and clock-label helpers shared by both services."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/New_York"

_CLOCK_RE = re.compile(
    r"^(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?(?::\d{2})?\s*(?P<meridiem>[ap]\.?m\.?)?$",
    re.IGNORECASE,
)


class InvalidTimezoneError(ValueError):
    """Raised when a caller supplies a name that is not an IANA zone."""


def load_zone(timezone_name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name or raise InvalidTimezoneError."""
    if not timezone_name or not isinstance(timezone_name, str):
        raise InvalidTimezoneError(f"Invalid timezone: {timezone_name!r}")
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(f"Invalid timezone: {timezone_name}") from exc


def is_valid_timezone(timezone_name: str) -> bool:
    try:
        load_zone(timezone_name)
    except InvalidTimezoneError:
        return False
    return True


def now_in_timezone(timezone_name: str) -> datetime:
    """Current datetime in the given timezone."""
    return datetime.now(tz=load_zone(timezone_name))


def slot_start_label(label: Optional[str]) -> str:
    """Start portion of a slot label such as ``"9:00 AM - 9:15 AM"``."""
    if not label:
        return ""
    return str(label).split("-")[0].strip()


def parse_clock(label: Optional[str]) -> Optional[int]:
    """
    Minutes after midnight for a clock label, or None when it cannot be read.

    Accepts ``HH:mm`` (24 hour), ``h:mm AM``, ``hAM`` and slot range labels,
    in which case the start of the range is used.
    """
    text = slot_start_label(label)
    if not text:
        return None
    match = _CLOCK_RE.match(text)
    if not match:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = (match.group("meridiem") or "").replace(".", "").lower()
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    elif hour > 23:
        return None
    return hour * 60 + minute


def ordinal(day: int) -> str:
    """Day number with its English ordinal suffix (1st, 2nd, 11th, 23rd)."""
    if day % 100 in (11, 12, 13):
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"
