"""Tests for the Firestore store using a mocked async client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from tenacity import wait_none

from slot_matcher.firestore_store import FirestoreSlotStore
from slot_matcher.store import QueryFilter, StoreError


def snapshot(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


@pytest.fixture
def query():
    chain = MagicMock()
    chain.where.return_value = chain
    chain.order_by.return_value = chain
    chain.limit.return_value = chain
    chain.get = AsyncMock(return_value=[snapshot("s1", {"scheduledState": "NY"})])
    return chain


@pytest.fixture
def client(query):
    firestore_client = MagicMock()
    firestore_client.collection.return_value = query
    return firestore_client


@pytest.fixture
def store(client):
    return FirestoreSlotStore(client=client, timeout_seconds=2.5, max_attempts=3, wait=wait_none())


@pytest.mark.unit
class TestFirestoreQuery:
    @pytest.mark.asyncio
    async def test_builds_query_and_flattens_snapshots(self, store, client, query):
        records = await store.query(
            "doctor_scheduling",
            [QueryFilter("scheduledState", "==", "NY"), QueryFilter("scheduledDate", ">=", "2025-03-12")],
            order_by="scheduledDate",
            limit=20,
        )
        assert records == [{"id": "s1", "scheduledState": "NY"}]
        client.collection.assert_called_once_with("doctor_scheduling")
        assert query.where.call_count == 2
        query.order_by.assert_called_once_with("scheduledDate")
        query.limit.assert_called_once_with(20)
        query.get.assert_awaited_once_with(timeout=2.5)

    @pytest.mark.asyncio
    async def test_optional_clauses_are_skipped(self, store, query):
        await store.query("doctor_scheduling", [])
        query.order_by.assert_not_called()
        query.limit.assert_not_called()

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, store, query):
        query.get.side_effect = [
            google_exceptions.ServiceUnavailable("unavailable"),
            [snapshot("s2", {"scheduledState": "NY"})],
        ]
        records = await store.query("doctor_scheduling", [])
        assert [record["id"] for record in records] == ["s2"]
        assert query.get.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, store, query):
        query.get.side_effect = google_exceptions.DeadlineExceeded("slow")
        with pytest.raises(StoreError):
            await store.query("doctor_scheduling", [])
        assert query.get.await_count == 3

    @pytest.mark.asyncio
    async def test_permanent_errors_are_not_retried(self, store, query):
        query.get.side_effect = google_exceptions.PermissionDenied("no access")
        with pytest.raises(StoreError):
            await store.query("doctor_scheduling", [])
        assert query.get.await_count == 1


@pytest.mark.unit
class TestFirestoreGet:
    @pytest.mark.asyncio
    async def test_existing_document(self, store, client):
        reference = client.collection.return_value.document.return_value
        reference.get = AsyncMock(return_value=snapshot("10001", {"city": "New York"}))
        assert await store.get("zip_code_database", "10001") == {"id": "10001", "city": "New York"}
        client.collection.return_value.document.assert_called_once_with("10001")

    @pytest.mark.asyncio
    async def test_missing_document(self, store, client):
        reference = client.collection.return_value.document.return_value
        reference.get = AsyncMock(return_value=snapshot("00000", None, exists=False))
        assert await store.get("zip_code_database", "00000") is None
