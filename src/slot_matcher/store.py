"""
Document-store collaborators.

The matcher only depends on the ``SlotStore`` protocol: an async query over a
collection with equality / range filters plus a single-document lookup.
"""

from __future__ import annotations

import copy
import json
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog

from voice_common.cache import TTLCache

LOGGER = structlog.get_logger(__name__)

SLOTS_COLLECTION = "doctor_scheduling"
ZIP_CODES_COLLECTION = "zip_code_database"

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
}


class StoreError(RuntimeError):
    """Raised when the backing store cannot answer a query."""


@dataclass(frozen=True)
class QueryFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"unsupported filter operator: {self.op}")

    def matches(self, record: Mapping[str, Any]) -> bool:
        if self.field not in record:
            return False
        try:
            return _OPERATORS[self.op](record[self.field], self.value)
        except TypeError:
            return False


class SlotStore(Protocol):
    """Records come back as dicts carrying their document id under ``"id"``."""

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...


class InMemorySlotStore:
    """Dict-backed store for local development and tests."""

    def __init__(self, collections: Optional[Mapping[str, Mapping[str, Mapping[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {doc_id: dict(doc) for doc_id, doc in docs.items()} for name, docs in (collections or {}).items()
        }

    def add(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = dict(data)

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        docs = self._collections.get(collection, {})
        found = [{"id": doc_id, **data} for doc_id, data in docs.items() if all(f.matches(data) for f in filters)]
        if order_by:
            found = [doc for doc in found if order_by in doc]
            found.sort(key=lambda doc: doc[order_by])
        if limit is not None:
            found = found[:limit]
        return found

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self._collections.get(collection, {}).get(doc_id)
        return {"id": doc_id, **data} if data is not None else None


class CachingSlotStore:
    """Read-through TTL cache in front of another store; the cache never fails a query."""

    def __init__(self, inner: SlotStore, cache: TTLCache, ttl: Optional[float] = None):
        self._inner = inner
        self._cache = cache
        self._ttl = ttl

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        refresh: bool = False,
    ) -> List[Dict[str, Any]]:
        """``refresh`` skips the cached answer and replaces it with a fresh one."""
        key = _query_key(collection, filters, order_by, limit)
        hit = None if refresh else self._cache.get(key)
        if hit is not None:
            LOGGER.debug("store.cache.hit", collection=collection)
            return copy.deepcopy(hit)
        records = await self._inner.query(collection, filters, order_by=order_by, limit=limit)
        self._cache.set(key, copy.deepcopy(records), self._ttl)
        return records

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        key = f"doc:{collection}:{doc_id}"
        hit = self._cache.get(key)
        if hit is not None:
            return copy.deepcopy(hit)
        record = await self._inner.get(collection, doc_id)
        if record is not None:
            self._cache.set(key, copy.deepcopy(record), self._ttl)
        return record


def _query_key(collection: str, filters: Sequence[QueryFilter], order_by: Optional[str], limit: Optional[int]) -> str:
    parts = [[f.field, f.op, f.value] for f in filters]
    return "query:" + json.dumps([collection, parts, order_by, limit], default=str, sort_keys=True)
