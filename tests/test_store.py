"""Tests for the in-memory and caching stores."""

import pytest

from slot_matcher.store import (
    SLOTS_COLLECTION,
    ZIP_CODES_COLLECTION,
    CachingSlotStore,
    InMemorySlotStore,
    QueryFilter,
)
from voice_common.cache import TTLCache


@pytest.mark.unit
class TestQueryFilter:
    def test_operators(self):
        record = {"scheduledDate": "2025-03-14"}
        assert QueryFilter("scheduledDate", "==", "2025-03-14").matches(record)
        assert QueryFilter("scheduledDate", ">=", "2025-03-12").matches(record)
        assert not QueryFilter("scheduledDate", "<", "2025-03-14").matches(record)

    def test_missing_field_never_matches(self):
        assert not QueryFilter("scheduledDate", "==", None).matches({})

    def test_incomparable_values_do_not_match(self):
        assert not QueryFilter("scheduledDate", ">=", "2025-03-12").matches({"scheduledDate": 5})

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            QueryFilter("scheduledDate", "array-contains", "x")


@pytest.mark.unit
class TestInMemorySlotStore:
    @pytest.mark.asyncio
    async def test_filters_and_ids(self, slot_store):
        records = await slot_store.query(
            SLOTS_COLLECTION,
            [QueryFilter("scheduledState", "==", "NY"), QueryFilter("scheduledDate", "==", "2025-03-14")],
        )
        assert [record["id"] for record in records] == ["s1", "s2", "s3", "s6"]

    @pytest.mark.asyncio
    async def test_order_and_limit(self, slot_store):
        records = await slot_store.query(
            SLOTS_COLLECTION,
            [QueryFilter("scheduledState", "==", "NY")],
            order_by="scheduledDate",
            limit=2,
        )
        assert [record["id"] for record in records] == ["s7", "s1"]

    @pytest.mark.asyncio
    async def test_get(self, slot_store):
        record = await slot_store.get(ZIP_CODES_COLLECTION, "10001")
        assert record["id"] == "10001"
        assert record["city"] == "New York"
        assert await slot_store.get(ZIP_CODES_COLLECTION, "99999") is None

    @pytest.mark.asyncio
    async def test_add(self):
        store = InMemorySlotStore()
        store.add(SLOTS_COLLECTION, "new", {"scheduledState": "NJ"})
        assert await store.query(SLOTS_COLLECTION, [QueryFilter("scheduledState", "==", "NJ")]) == [
            {"id": "new", "scheduledState": "NJ"}
        ]

    @pytest.mark.asyncio
    async def test_unknown_collection_is_empty(self):
        assert await InMemorySlotStore().query("missing", []) == []


@pytest.mark.unit
class TestCachingSlotStore:
    @pytest.mark.asyncio
    async def test_query_is_served_from_cache(self, slot_store):
        store = CachingSlotStore(slot_store, TTLCache())
        filters = [QueryFilter("scheduledState", "==", "CA")]
        first = await store.query(SLOTS_COLLECTION, filters)

        slot_store.add(SLOTS_COLLECTION, "s9", {"scheduledState": "CA"})
        second = await store.query(SLOTS_COLLECTION, filters)
        assert [record["id"] for record in second] == [record["id"] for record in first] == ["s8"]

    @pytest.mark.asyncio
    async def test_refresh_replaces_cached_answer(self, slot_store):
        store = CachingSlotStore(slot_store, TTLCache())
        filters = [QueryFilter("scheduledState", "==", "CA")]
        await store.query(SLOTS_COLLECTION, filters)

        slot_store.add(SLOTS_COLLECTION, "s9", {"scheduledState": "CA"})
        refreshed = await store.query(SLOTS_COLLECTION, filters, refresh=True)
        assert [record["id"] for record in refreshed] == ["s8", "s9"]
        cached = await store.query(SLOTS_COLLECTION, filters)
        assert [record["id"] for record in cached] == ["s8", "s9"]

    @pytest.mark.asyncio
    async def test_cached_records_are_copies(self, slot_store):
        store = CachingSlotStore(slot_store, TTLCache())
        filters = [QueryFilter("scheduledState", "==", "CA")]
        first = await store.query(SLOTS_COLLECTION, filters)
        first[0]["scheduledState"] = "mutated"
        second = await store.query(SLOTS_COLLECTION, filters)
        assert second[0]["scheduledState"] == "CA"

    @pytest.mark.asyncio
    async def test_different_filters_are_different_entries(self, slot_store):
        cache = TTLCache()
        store = CachingSlotStore(slot_store, cache)
        await store.query(SLOTS_COLLECTION, [QueryFilter("scheduledState", "==", "CA")])
        await store.query(SLOTS_COLLECTION, [QueryFilter("scheduledState", "==", "NY")], limit=1)
        assert cache.size() == 2

    @pytest.mark.asyncio
    async def test_missing_document_is_not_cached(self, slot_store):
        cache = TTLCache()
        store = CachingSlotStore(slot_store, cache)
        assert await store.get(ZIP_CODES_COLLECTION, "00000") is None
        assert cache.size() == 0
        assert (await store.get(ZIP_CODES_COLLECTION, "10001"))["state"] == "New York"
        assert cache.size() == 1
