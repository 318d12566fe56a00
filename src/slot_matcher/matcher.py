"""Slot retrieval, scoring and availability summaries."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from voice_common.timeutils import now_in_timezone

from .day_parts import pick_day_part_slots
from .models import AppointmentSlot, AvailabilitySummary, SchedulingPreference, ScoredSlot
from .scoring import score_slot
from .states import state_query_variants
from .store import SLOTS_COLLECTION, CachingSlotStore, QueryFilter, SlotStore

LOGGER = structlog.get_logger(__name__)

FALLBACK_PAGE_SIZE = 20
SUMMARY_PAGE_SIZE = 500
RANGE_PAGE_SIZE = 500
MAX_SUMMARY_DAYS = 3


class SlotMatcher:
    """Finds and ranks candidate slots for a caller's state and preferences."""

    def __init__(
        self,
        store: SlotStore,
        *,
        collection: str = SLOTS_COLLECTION,
        fallback_page_size: int = FALLBACK_PAGE_SIZE,
        summary_page_size: int = SUMMARY_PAGE_SIZE,
        range_page_size: int = RANGE_PAGE_SIZE,
        clock: Callable[[str], datetime] = now_in_timezone,
    ):
        self._store = store
        self._collection = collection
        self._fallback_page_size = fallback_page_size
        self._summary_page_size = summary_page_size
        self._range_page_size = range_page_size
        self._clock = clock

    async def find_best_slots(
        self,
        state: Optional[str],
        state_abbr: Optional[str],
        preferences: SchedulingPreference,
        limit: int = 5,
    ) -> List[ScoredSlot]:
        variants = state_query_variants(state, state_abbr)
        if not variants:
            return []

        records: List[Dict[str, Any]] = []
        if preferences.date:
            records = await self._first_matching(
                variants,
                [QueryFilter("scheduledDate", "==", preferences.date)],
            )
            LOGGER.info("slots.query.exact_date", date=preferences.date, found=len(records))

        if not records:
            today = self._clock(preferences.timezone).date().isoformat()
            records = await self._first_matching(
                variants,
                [QueryFilter("scheduledDate", ">=", today)],
                order_by="scheduledDate",
                limit=self._fallback_page_size,
            )
            LOGGER.info("slots.query.fallback", from_date=today, found=len(records))

        slots = _available_slots(records)
        scored = [(slot, score_slot(slot, preferences)) for slot in slots]
        # sorted() is stable, so equal scores keep store order.
        ranked = sorted(scored, key=lambda pair: pair[1], reverse=True)[:limit]

        best = [ScoredSlot(slot=slot, score=score, rank=index) for index, (slot, score) in enumerate(ranked, start=1)]
        LOGGER.info(
            "slots.ranked",
            candidates=len(slots),
            returned=len(best),
            top_score=best[0].score if best else None,
        )
        return best

    async def summarize_availability(
        self,
        state: Optional[str],
        state_abbr: Optional[str],
        timezone: str,
    ) -> AvailabilitySummary:
        """Upcoming availability; individual slots are listed only for 1-3 distinct dates."""
        variants = state_query_variants(state, state_abbr)
        today = self._clock(timezone).date().isoformat()
        records = (
            await self._first_matching(
                variants,
                [QueryFilter("scheduledDate", ">=", today)],
                limit=self._summary_page_size,
            )
            if variants
            else []
        )

        by_date: Dict[str, List[AppointmentSlot]] = defaultdict(list)
        for slot in _available_slots(records):
            if slot.date:
                by_date[str(slot.date)].append(slot)

        dates = sorted(by_date)
        listed: List[Dict[str, Any]] = []
        if 0 < len(dates) <= MAX_SUMMARY_DAYS:
            for day in dates:
                listed.extend(slot.describe(timezone) for slot in pick_day_part_slots(by_date[day]))

        LOGGER.info("slots.summary", total=len(records), days=len(dates), listed=len(listed))
        return AvailabilitySummary(
            total_appointments=len(records),
            days_available=len(dates),
            available_slots=tuple(listed),
        )

    async def slots_between(
        self,
        state: Optional[str],
        state_abbr: Optional[str],
        start: str,
        end: str,
        *,
        fresh: bool = False,
    ) -> List[AppointmentSlot]:
        """
        Available slots dated ``start``..``end`` inclusive, in store order.

        Unlike ranking, every state spelling is queried and the results
        merged, since one range can hold records written either way.
        """
        seen = set()
        records: List[Dict[str, Any]] = []
        for variant in state_query_variants(state, state_abbr):
            filters = [
                QueryFilter("scheduledState", "==", variant),
                QueryFilter("scheduledAvailable", "==", True),
                QueryFilter("scheduledDate", ">=", start),
                QueryFilter("scheduledDate", "<=", end),
            ]
            found = await self._query(filters, order_by="scheduledDate", limit=self._range_page_size, fresh=fresh)
            for record in found:
                if record.get("id") not in seen:
                    seen.add(record.get("id"))
                    records.append(record)
        LOGGER.info("slots.query.range", start=start, end=end, found=len(records), fresh=fresh)
        return _available_slots(records)

    async def _query(
        self,
        filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        fresh: bool = False,
    ) -> List[Dict[str, Any]]:
        if fresh and isinstance(self._store, CachingSlotStore):
            return await self._store.query(self._collection, filters, order_by=order_by, limit=limit, refresh=True)
        return await self._store.query(self._collection, filters, order_by=order_by, limit=limit)

    async def _first_matching(
        self,
        variants: Sequence[str],
        extra_filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Query each state spelling in turn; the first non-empty answer wins."""
        for variant in variants:
            filters = [
                QueryFilter("scheduledState", "==", variant),
                QueryFilter("scheduledAvailable", "==", True),
                *extra_filters,
            ]
            records = await self._query(filters, order_by=order_by, limit=limit)
            if records:
                LOGGER.debug("slots.query.state_matched", state=variant, found=len(records))
                return records
        return []


def _available_slots(records: Sequence[Dict[str, Any]]) -> List[AppointmentSlot]:
    slots = (AppointmentSlot.from_record(record.get("id", ""), record) for record in records)
    return [slot for slot in slots if slot.available]
