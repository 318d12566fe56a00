"""Value objects produced by the normalizers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional


class Confidence(str, Enum):
    """Ordinal grade of how certain a parse is."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def at_least(self, other: "Confidence") -> bool:
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    Confidence.NONE: 0,
    Confidence.LOW: 1,
    Confidence.MEDIUM: 2,
    Confidence.HIGH: 3,
}


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    MIDDAY = "midday"
    ANY = "any"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range."""

    start: date
    end: date

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class NormalizedDateTime:
    """Result of natural-language time normalization."""

    date: Optional[date]
    confidence: Confidence
    method: str
    time_of_day: TimeOfDay = TimeOfDay.ANY
    date_range: Optional[DateRange] = None
    flexible: bool = False
    urgent: bool = False
    day_of_week: Optional[str] = None
    needs_clarification: bool = False

    def __post_init__(self) -> None:
        if self.confidence is Confidence.NONE and self.date is not None:
            raise ValueError("a result without confidence cannot carry a date")
        if self.confidence.at_least(Confidence.MEDIUM) and self.date is None:
            raise ValueError("medium or high confidence requires a date")

    @property
    def date_iso(self) -> Optional[str]:
        return self.date.isoformat() if self.date else None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "date": self.date_iso,
            "time_of_day": self.time_of_day.value,
            "confidence": self.confidence.value,
            "method": self.method,
            "flexible": self.flexible,
            "urgent": self.urgent,
        }
        if self.date_range is not None:
            payload["date_range"] = self.date_range.to_dict()
        if self.day_of_week:
            payload["day_of_week"] = self.day_of_week
        if self.needs_clarification:
            payload["needs_clarification"] = True
        return payload


class DOBResultType(str, Enum):
    SUCCESS = "success"
    UNABLE_TO_NORMALIZE = "unable_to_normalize"


@dataclass(frozen=True)
class NormalizedDOB:
    """Result of date-of-birth normalization."""

    dob_iso: Optional[str]
    type: DOBResultType
    method: str = "none"

    @classmethod
    def success(cls, value: date, method: str) -> "NormalizedDOB":
        return cls(dob_iso=value.isoformat(), type=DOBResultType.SUCCESS, method=method)

    @classmethod
    def failure(cls) -> "NormalizedDOB":
        return cls(dob_iso=None, type=DOBResultType.UNABLE_TO_NORMALIZE)

    @property
    def ok(self) -> bool:
        return self.type is DOBResultType.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {"dob_iso": self.dob_iso, "type": self.type.value}


@dataclass(frozen=True)
class ParseContext:
    """Everything a time parsing strategy may look at for one request."""

    raw: str
    cleaned: str
    now: datetime
    timezone: str

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def lowered(self) -> str:
        return (self.raw or "").lower()
