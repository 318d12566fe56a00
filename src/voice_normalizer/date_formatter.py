"""Spoken-friendly rendering of confirmed appointment dates."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from voice_common.timeutils import DEFAULT_TIMEZONE, load_zone, ordinal, parse_clock

LOGGER = structlog.get_logger(__name__)

# First format that parses wins, so MM/DD beats DD/MM for ambiguous input.
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y")


@dataclass(frozen=True)
class FormattedAppointment:
    formatted_date: Optional[str]
    formatted_time: Optional[str]
    confirmation_text: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        if self.error is None:
            payload.pop("error")
        return payload


@dataclass(frozen=True)
class RelativeTime:
    relative_time: str
    is_past: bool
    exact_date: str
    exact_time: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_appointment_date(value: str) -> Optional[date]:
    text = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_appointment_time(value: Optional[str]) -> Optional[time]:
    minutes = parse_clock(value)
    if minutes is None:
        return None
    return time(minutes // 60, minutes % 60)


def format_spoken_time(value: time) -> str:
    """``3PM`` on the hour, ``3:30 PM`` otherwise."""
    hour = value.hour % 12 or 12
    meridiem = "PM" if value.hour >= 12 else "AM"
    if value.minute == 0:
        return f"{hour}{meridiem}"
    return f"{hour}:{value.minute:02d} {meridiem}"


def format_spoken_date(value: date, today: date) -> str:
    """``Thursday, January 15th``; the year is added outside the current one."""
    text = f"{value:%A}, {value:%B} {ordinal(value.day)}"
    if value.year != today.year:
        text = f"{text}, {value.year}"
    return text


def format_appointment_datetime(
    appointment_date: str,
    appointment_time: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
    *,
    today: Optional[date] = None,
) -> FormattedAppointment:
    zone = load_zone(timezone)
    parsed_date = parse_appointment_date(appointment_date)
    parsed_time = parse_appointment_time(appointment_time) if appointment_time else None
    if parsed_date is None or (appointment_time and parsed_time is None):
        LOGGER.info("format.invalid_input", date=appointment_date, time=appointment_time)
        return FormattedAppointment(
            formatted_date=None,
            formatted_time=None,
            confirmation_text="Unable to parse the provided date",
            error="Invalid date format",
        )

    today = today or datetime.now(tz=zone).date()
    formatted_date = format_spoken_date(parsed_date, today)
    formatted_time = format_spoken_time(parsed_time) if parsed_time else None

    confirmation = f"Your appointment is scheduled for {formatted_date}"
    if formatted_time:
        confirmation = f"{confirmation} at {formatted_time}"
    if timezone != DEFAULT_TIMEZONE:
        moment = datetime.combine(parsed_date, parsed_time or time(0), tzinfo=zone)
        confirmation = f"{confirmation} ({moment.tzname()})"

    return FormattedAppointment(
        formatted_date=formatted_date,
        formatted_time=formatted_time,
        confirmation_text=confirmation,
    )


def format_appointments_batch(
    appointments: Iterable[Mapping[str, Any]],
    timezone: str = DEFAULT_TIMEZONE,
    *,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Format each appointment, keeping the caller's own fields alongside."""
    zone = load_zone(timezone)
    today = today or datetime.now(tz=zone).date()
    formatted = []
    for appointment in appointments:
        result = format_appointment_datetime(
            str(appointment.get("date") or ""),
            appointment.get("time"),
            timezone,
            today=today,
        )
        formatted.append({**appointment, **result.to_dict()})
    return formatted


def describe_relative_time(
    appointment_date: str,
    appointment_time: Optional[str] = None,
    timezone: str = DEFAULT_TIMEZONE,
    *,
    now: Optional[datetime] = None,
) -> Optional[RelativeTime]:
    """Relative wording ("tomorrow", "in 3 weeks") for a date, or None when unreadable."""
    zone = load_zone(timezone)
    target_date = parse_appointment_date(appointment_date)
    target_time = parse_appointment_time(appointment_time) if appointment_time else None
    if target_date is None or (appointment_time and target_time is None):
        return None

    if now is None:
        now = datetime.now(tz=zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=zone)
    else:
        now = now.astimezone(zone)
    target = datetime.combine(target_date, target_time or time(0), tzinfo=zone)
    days = (target_date - now.date()).days

    return RelativeTime(
        relative_time=_relative_phrase(days),
        is_past=target < now,
        exact_date=target_date.isoformat(),
        exact_time=_clock_text(target_time) if target_time else None,
    )


def _clock_text(value: time) -> str:
    """``h:mm AM`` without the on-the-hour shortening."""
    return f"{value.hour % 12 or 12}:{value.minute:02d} {'PM' if value.hour >= 12 else 'AM'}"


def _relative_phrase(days: int) -> str:
    distance = abs(days)
    future = days > 0
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days == -1:
        return "yesterday"
    if distance <= 7:
        return f"in {distance} days" if future else f"{distance} days ago"
    if distance <= 14:
        return "next week" if future else "last week"
    if distance <= 30:
        weeks = round(distance / 7)
        return f"in {weeks} weeks" if future else f"{weeks} weeks ago"
    if distance < 345:
        months = max(1, round(distance / 30.4))
        amount = "a month" if months == 1 else f"{months} months"
    else:
        years = max(1, round(distance / 365.25))
        amount = "a year" if years == 1 else f"{years} years"
    return f"in {amount}" if future else f"{amount} ago"
