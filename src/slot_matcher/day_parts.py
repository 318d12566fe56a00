"""Day-part selection keeps spoken availability summaries short."""

from __future__ import annotations

from typing import List, Sequence

from .models import AppointmentSlot

NOON = 12 * 60
MAX_PER_DAY = 2


def _start_key(slot: AppointmentSlot) -> int:
    minutes = slot.start_minutes
    # Unreadable times sort last.
    return minutes if minutes is not None else 24 * 60


def pick_day_part_slots(slots: Sequence[AppointmentSlot]) -> List[AppointmentSlot]:
    """
    Earliest morning slot and earliest afternoon slot of one day.

    When neither half has a readable slot the two earliest slots are returned
    instead, so the result never exceeds two entries.
    """
    ordered = sorted(slots, key=_start_key)
    morning = next((s for s in ordered if s.start_minutes is not None and s.start_minutes < NOON), None)
    afternoon = next((s for s in ordered if s.start_minutes is not None and s.start_minutes >= NOON), None)

    picked = [slot for slot in (morning, afternoon) if slot is not None]
    if not picked:
        picked = ordered[:MAX_PER_DAY]
    return picked
