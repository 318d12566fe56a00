"""Tests for slot retrieval, ranking and availability summaries."""

from unittest.mock import AsyncMock

import pytest

from slot_matcher.matcher import SlotMatcher
from slot_matcher.models import AppointmentSlot, SchedulingPreference, TimeRange
from slot_matcher.store import SLOTS_COLLECTION, InMemorySlotStore, StoreError

from conftest import slot_record


@pytest.fixture
def matcher(slot_store, clock):
    return SlotMatcher(slot_store, clock=clock)


def ids(best):
    return [scored.slot.slot_id for scored in best]


@pytest.mark.unit
class TestFindBestSlots:
    @pytest.mark.asyncio
    async def test_exact_date_is_ranked_by_score(self, matcher):
        best = await matcher.find_best_slots("NY", None, SchedulingPreference(date="2025-03-14", time="10:00"))
        assert ids(best) == ["s2", "s1", "s3"]
        assert [scored.score for scored in best] == [180.0, 160.0, 126.0]
        assert [scored.rank for scored in best] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_unavailable_and_other_states_are_excluded(self, matcher):
        best = await matcher.find_best_slots("NY", None, SchedulingPreference(date="2025-03-14"))
        assert "s6" not in ids(best)
        assert "s8" not in ids(best)

    @pytest.mark.asyncio
    async def test_no_date_falls_back_to_upcoming_in_store_order(self, matcher):
        best = await matcher.find_best_slots("NY", None, SchedulingPreference())
        assert ids(best) == ["s1", "s2", "s3", "s4"]
        assert {scored.score for scored in best} == {100.0}

    @pytest.mark.asyncio
    async def test_empty_date_falls_back_and_scores_by_distance(self, matcher):
        best = await matcher.find_best_slots("NY", None, SchedulingPreference(date="2025-03-15"))
        assert ids(best) == ["s1", "s2", "s3", "s4"]
        assert [scored.score for scored in best] == [90.0, 90.0, 90.0, 80.0]

    @pytest.mark.asyncio
    async def test_limit(self, matcher):
        best = await matcher.find_best_slots("NY", None, SchedulingPreference(), limit=2)
        assert ids(best) == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_range_preference(self, matcher):
        preferences = SchedulingPreference(date="2025-03-14", time_range=TimeRange("13:00", "17:00"))
        best = await matcher.find_best_slots("NY", None, preferences)
        assert ids(best)[0] == "s3"

    @pytest.mark.asyncio
    async def test_full_state_name(self, matcher):
        best = await matcher.find_best_slots("New York", None, SchedulingPreference(date="2025-03-14"))
        assert ids(best) == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_records_stored_under_full_name(self, clock):
        store = InMemorySlotStore({SLOTS_COLLECTION: {"nj1": slot_record("2025-03-20", "1:00 PM", state="New Jersey")}})
        best = await SlotMatcher(store, clock=clock).find_best_slots(None, "NJ", SchedulingPreference())
        assert ids(best) == ["nj1"]

    @pytest.mark.asyncio
    async def test_state_without_slots(self, matcher):
        assert await matcher.find_best_slots("TX", None, SchedulingPreference()) == []

    @pytest.mark.asyncio
    async def test_no_state(self, matcher):
        assert await matcher.find_best_slots(None, None, SchedulingPreference()) == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, clock):
        store = AsyncMock()
        store.query.side_effect = StoreError("firestore down")
        with pytest.raises(StoreError):
            await SlotMatcher(store, clock=clock).find_best_slots("NY", None, SchedulingPreference())

    @pytest.mark.asyncio
    async def test_fallback_query_shape(self, clock):
        store = AsyncMock()
        store.query.return_value = []
        await SlotMatcher(store, clock=clock, fallback_page_size=7).find_best_slots("NY", None, SchedulingPreference())
        _, kwargs = store.query.call_args
        assert kwargs == {"order_by": "scheduledDate", "limit": 7}
        filters = store.query.call_args.args[1]
        assert [(f.field, f.op, f.value) for f in filters][-1] == ("scheduledDate", ">=", "2025-03-12")

    def test_describe_fields(self, slot_records):
        described = AppointmentSlot.from_record("s1", slot_records["s1"]).describe("America/New_York")
        assert described["formatted_datetime"] == "March 14, 2025 at 9:00 AM"
        assert described["day_of_week"] == "Friday"
        assert described["natural_time"] == "9:00 AM"
        assert described["provider"] == "Dr. Rivera"


@pytest.mark.unit
class TestSlotsBetween:
    @pytest.mark.asyncio
    async def test_merges_every_state_spelling(self, matcher):
        slots = await matcher.slots_between("NY", None, "2025-03-14", "2025-03-18")
        assert [slot.slot_id for slot in slots] == ["s1", "s2", "s3", "s4", "s5"]

    @pytest.mark.asyncio
    async def test_range_query_shape(self, clock):
        store = AsyncMock()
        store.query.return_value = [{"id": "x1", **slot_record("2025-03-14", "9:00 AM")}]
        slots = await SlotMatcher(store, clock=clock, range_page_size=20).slots_between(
            "NY", None, "2025-03-14", "2025-03-15"
        )
        # The same record under both spellings is listed once.
        assert [slot.slot_id for slot in slots] == ["x1"]
        _, kwargs = store.query.call_args
        assert kwargs == {"order_by": "scheduledDate", "limit": 20}
        filters = store.query.call_args.args[1]
        assert [(f.field, f.op, f.value) for f in filters][-2:] == [
            ("scheduledDate", ">=", "2025-03-14"),
            ("scheduledDate", "<=", "2025-03-15"),
        ]


@pytest.mark.unit
class TestSummarizeAvailability:
    @pytest.mark.asyncio
    async def test_few_dates_are_listed_by_day_part(self, matcher):
        summary = await matcher.summarize_availability("New York", "NY", "America/New_York")
        assert summary.total_appointments == 4
        assert summary.days_available == 2
        assert [slot["slot_id"] for slot in summary.available_slots] == ["s1", "s3", "s4"]
        assert summary.has_availability

    @pytest.mark.asyncio
    async def test_many_dates_are_not_listed(self, clock):
        store = InMemorySlotStore(
            {
                SLOTS_COLLECTION: {
                    f"d{day}": slot_record(f"2025-03-{day}", "9:00 AM - 9:15 AM")
                    for day in (13, 14, 17, 18)
                }
            }
        )
        summary = await SlotMatcher(store, clock=clock).summarize_availability("NY", None, "America/New_York")
        assert summary.days_available == 4
        assert summary.available_slots == ()

    @pytest.mark.asyncio
    async def test_no_availability(self, matcher):
        summary = await matcher.summarize_availability("Texas", "TX", "America/Chicago")
        assert summary.total_appointments == 0
        assert summary.days_available == 0
        assert not summary.has_availability
