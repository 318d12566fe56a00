"""Firestore-backed ``SlotStore``."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from .store import QueryFilter, StoreError

LOGGER = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.TooManyRequests,
)


class FirestoreSlotStore:
    """Async Firestore client with bounded retries on transient errors."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        *,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        client: Optional[firestore.AsyncClient] = None,
        wait: Optional[wait_base] = None,
    ):
        self._client = client or firestore.AsyncClient(project=project_id)
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._wait = wait or wait_exponential(multiplier=1, min=1, max=8)

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._client.collection(collection)
        for item in filters:
            query = query.where(filter=FieldFilter(item.field, item.op, item.value))
        if order_by:
            query = query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)

        LOGGER.debug("firestore.query.start", collection=collection, filters=len(filters), limit=limit)
        snapshots = await self._with_retries("query", collection, lambda: query.get(timeout=self._timeout))
        return [{"id": snapshot.id, **(snapshot.to_dict() or {})} for snapshot in snapshots]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        reference = self._client.collection(collection).document(str(doc_id))
        snapshot = await self._with_retries("get", collection, lambda: reference.get(timeout=self._timeout))
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **(snapshot.to_dict() or {})}

    async def _with_retries(self, operation: str, collection: str, call):
        try:
            async for attempt in AsyncRetrying(
                wait=self._wait,
                stop=stop_after_attempt(self._max_attempts),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        LOGGER.warning(
                            "firestore.retry",
                            operation=operation,
                            collection=collection,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    return await call()
        except google_exceptions.GoogleAPIError as exc:
            LOGGER.error("firestore.failed", operation=operation, collection=collection, error=str(exc))
            raise StoreError(f"Firestore {operation} on {collection} failed: {exc}") from exc
