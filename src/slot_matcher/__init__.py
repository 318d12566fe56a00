"""Appointment slot matching for normalized caller preferences."""

from .matcher import SlotMatcher
from .models import AppointmentSlot, AvailabilitySummary, SchedulingPreference, ScoredSlot, TimeRange
from .scoring import score_slot
from .store import InMemorySlotStore, QueryFilter, SlotStore, StoreError

__all__ = [
    "AppointmentSlot",
    "AvailabilitySummary",
    "InMemorySlotStore",
    "QueryFilter",
    "SchedulingPreference",
    "ScoredSlot",
    "SlotMatcher",
    "SlotStore",
    "StoreError",
    "TimeRange",
    "score_slot",
]
