"""Preference scoring for appointment slots."""

from __future__ import annotations

from datetime import date
from typing import Optional

from voice_common.timeutils import parse_clock

from .models import AppointmentSlot, SchedulingPreference

BASE_SCORE = 100.0

EXACT_DATE_BONUS = 50.0
PER_DAY_PENALTY = 10.0

EXACT_TIME_BONUS = 30.0
CLOSE_TIME_BONUS = 20.0  # within 30 minutes
NEAR_TIME_BONUS = 10.0  # within 60 minutes
MAX_TIME_PENALTY = 50.0

IN_RANGE_BONUS = 25.0
MAX_RANGE_PENALTY = 30.0


def _as_date(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat(str(value)) if value else None
    except ValueError:
        return None


def score_slot(slot: AppointmentSlot, preferences: SchedulingPreference) -> float:
    """
    Score how well a slot fits the caller's preferences.

    Starts at 100. Date: +50 on the requested day, otherwise -10 per day away.
    Time: +30 exact, +20 within 30 minutes, +10 within 60 minutes, otherwise
    minus a tenth of the gap capped at 50. Range: +25 inside the window,
    otherwise minus a tenth of the distance to the nearer edge capped at 30.
    Never below zero. Components whose inputs cannot be read are skipped.
    """
    score = BASE_SCORE

    wanted_day, slot_day = _as_date(preferences.date), slot.calendar_date
    if wanted_day and slot_day:
        days_apart = abs((slot_day - wanted_day).days)
        if days_apart == 0:
            score += EXACT_DATE_BONUS
        else:
            score -= days_apart * PER_DAY_PENALTY

    slot_minutes = slot.start_minutes
    wanted_minutes = parse_clock(preferences.time) if preferences.time else None
    if wanted_minutes is not None and slot_minutes is not None:
        gap = abs(slot_minutes - wanted_minutes)
        if gap == 0:
            score += EXACT_TIME_BONUS
        elif gap <= 30:
            score += CLOSE_TIME_BONUS
        elif gap <= 60:
            score += NEAR_TIME_BONUS
        else:
            score -= min(gap / 10, MAX_TIME_PENALTY)

    window = preferences.time_range.minutes() if preferences.time_range else None
    if window is not None and slot_minutes is not None:
        start, end = window
        if start <= slot_minutes <= end:
            score += IN_RANGE_BONUS
        else:
            distance = min(abs(slot_minutes - start), abs(slot_minutes - end))
            score -= min(distance / 10, MAX_RANGE_PENALTY)

    return max(0.0, score)
