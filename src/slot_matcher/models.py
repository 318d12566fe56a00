"""Domain models used by the slot matcher."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from voice_common.timeutils import DEFAULT_TIMEZONE, load_zone, parse_clock, slot_start_label


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class TimeRange:
    """Preferred window, both ends ``HH:mm``."""

    start: str
    end: str

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> Optional["TimeRange"]:
        if not payload:
            return None
        start, end = payload.get("start"), payload.get("end")
        if not start or not end:
            return None
        return cls(start=str(start), end=str(end))

    def minutes(self) -> Optional[tuple]:
        start, end = parse_clock(self.start), parse_clock(self.end)
        if start is None or end is None:
            return None
        return start, end


@dataclass(frozen=True)
class SchedulingPreference:
    """Normalized caller preferences (date ``YYYY-MM-DD``, time ``HH:mm``)."""

    date: Optional[str] = None
    time: Optional[str] = None
    time_range: Optional[TimeRange] = None
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True)
class AppointmentSlot:
    """One bookable slot as stored upstream."""

    slot_id: str
    date: Optional[str]
    time: Optional[str]
    state: Optional[str] = None
    provider: Optional[str] = None
    provider_id: Optional[str] = None
    appointment_id: Optional[str] = None
    available: bool = False
    location: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_record(cls, doc_id: str, data: Mapping[str, Any]) -> "AppointmentSlot":
        """Map a ``doctor_scheduling`` document onto a slot."""
        return cls(
            slot_id=str(doc_id),
            date=_first(data, "scheduledDate", "date"),
            time=_first(data, "scheduledTimeSlot", "time"),
            state=_first(data, "scheduledState", "state"),
            provider=_first(data, "scheduledProvider", "provider"),
            provider_id=_first(data, "scheduledProviderId", "providerId", "provider_id"),
            appointment_id=_first(data, "athenaAppointmentId", "appointmentId", "appointment_id"),
            available=bool(_first(data, "scheduledAvailable", "available")),
            location=_first(data, "location"),
            type=_first(data, "type", "visitType"),
        )

    @property
    def start_label(self) -> str:
        return slot_start_label(self.time)

    @property
    def start_minutes(self) -> Optional[int]:
        return parse_clock(self.time)

    @property
    def calendar_date(self) -> Optional[date]:
        try:
            return date.fromisoformat(str(self.date))
        except (TypeError, ValueError):
            return None

    def starts_at(self, timezone: str) -> Optional[datetime]:
        """Aware start datetime in ``timezone``, or None when date or time is unreadable."""
        day, minutes = self.calendar_date, self.start_minutes
        if day is None or minutes is None:
            return None
        return datetime(day.year, day.month, day.day, minutes // 60, minutes % 60, tzinfo=load_zone(timezone))

    def describe(self, timezone: str) -> Dict[str, Any]:
        """Voice-flow fields shared by the match and summary responses."""
        start = self.starts_at(timezone)
        formatted = None
        weekday = None
        if start is not None:
            hour = start.hour % 12 or 12
            meridiem = "PM" if start.hour >= 12 else "AM"
            formatted = f"{start:%B} {start.day}, {start.year} at {hour}:{start.minute:02d} {meridiem}"
            weekday = f"{start:%A}"
        return {
            "date": self.date,
            "time": self.time,
            "time_slot": self.time,
            "natural_time": self.start_label,
            "formatted_datetime": formatted,
            "day_of_week": weekday,
            "provider": self.provider,
            "provider_id": self.provider_id,
            "appointment_id": self.appointment_id,
            "location": self.location,
            "type": self.type,
            "slot_id": self.slot_id,
        }


@dataclass(frozen=True)
class ScoredSlot:
    slot: AppointmentSlot
    score: float
    rank: int

    def to_dict(self, timezone: str) -> Dict[str, Any]:
        return {"rank": self.rank, **self.slot.describe(timezone), "score": self.score}


@dataclass(frozen=True)
class AvailabilitySummary:
    """Upcoming availability for one state, grouped by date."""

    total_appointments: int
    days_available: int
    available_slots: tuple

    @property
    def has_availability(self) -> bool:
        return self.total_appointments > 0
