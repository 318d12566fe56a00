"""
Pytest fixtures shared by the normalizer and slot matcher tests.

Date-relative behaviour is pinned to a fixed reference instant so results do
not drift with the calendar.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from slot_matcher.store import SLOTS_COLLECTION, ZIP_CODES_COLLECTION, InMemorySlotStore

NEW_YORK = ZoneInfo("America/New_York")

# Wednesday, 10:00 in New York.
REFERENCE_NOW = datetime(2025, 3, 12, 10, 0, tzinfo=NEW_YORK)
REFERENCE_DAY = date(2025, 3, 12)


def fixed_clock(timezone_name: str) -> datetime:
    return REFERENCE_NOW.astimezone(ZoneInfo(timezone_name))


def slot_record(scheduled_date, time_slot, state="NY", available=True, **extra):
    record = {
        "scheduledDate": scheduled_date,
        "scheduledTimeSlot": time_slot,
        "scheduledState": state,
        "scheduledAvailable": available,
        "scheduledProvider": "Dr. Rivera",
        "scheduledProviderId": "prov-1",
        "athenaAppointmentId": f"athena-{scheduled_date}-{time_slot[:5].strip()}",
    }
    record.update(extra)
    return record


@pytest.fixture
def reference_now():
    return REFERENCE_NOW


@pytest.fixture
def reference_day():
    return REFERENCE_DAY


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def slot_records():
    return {
        "s1": slot_record("2025-03-14", "9:00 AM - 9:15 AM"),
        "s2": slot_record("2025-03-14", "10:00 AM - 10:15 AM"),
        "s3": slot_record("2025-03-14", "2:00 PM - 2:15 PM"),
        "s4": slot_record("2025-03-17", "9:45 AM - 10:00 AM"),
        "s5": slot_record("2025-03-18", "3:30 PM - 3:45 PM", state="New York"),
        "s6": slot_record("2025-03-14", "11:00 AM - 11:15 AM", available=False),
        "s7": slot_record("2025-03-10", "9:00 AM - 9:15 AM"),
        "s8": slot_record("2025-03-14", "9:00 AM - 9:15 AM", state="CA"),
    }


@pytest.fixture
def slot_store(slot_records):
    return InMemorySlotStore(
        {
            SLOTS_COLLECTION: slot_records,
            ZIP_CODES_COLLECTION: {
                "10001": {
                    "city": "New York",
                    "state": "New York",
                    "state_abbreviation": "NY",
                    "timezone": "America/New_York",
                },
                "73301": {"placeName": "Austin", "State": "Texas"},
            },
        }
    )
