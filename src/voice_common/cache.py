"""
Process-local TTL cache.

Best-effort only: a miss, an eviction or an internal failure must yield the
same answer through the uncached path, just slower.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple

import structlog

LOGGER = structlog.get_logger(__name__)


class TTLCache:
    """Key -> value store with a per-entry time to live."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_entries: int = 2048,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        try:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                self._entries.pop(key, None)
                return None
            return value
        except Exception as exc:
            LOGGER.warning("cache.get_failed", key=key, error=str(exc))
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value; failures are logged and ignored."""
        try:
            if len(self._entries) >= self._max_entries:
                self._evict()
            lifetime = self._default_ttl if ttl is None else ttl
            self._entries[key] = (self._clock() + lifetime, value)
        except Exception as exc:
            LOGGER.warning("cache.set_failed", key=key, error=str(exc))

    def invalidate(self, key: Optional[str] = None) -> None:
        """Invalidate a specific key or the entire cache."""
        if key:
            self._entries.pop(key, None)
        else:
            self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def _evict(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        # Still full: drop the entries closest to expiry.
        overflow = len(self._entries) - self._max_entries + 1
        if overflow > 0:
            for key, _ in sorted(self._entries.items(), key=lambda item: item[1][0])[:overflow]:
                del self._entries[key]


def cached_call(cache: Optional[TTLCache], key: str, compute: Callable[[], Any], ttl: Optional[float] = None) -> Any:
    """Read-through helper: return the cached value or compute and store it."""
    if cache is None:
        return compute()
    hit = cache.get(key)
    if hit is not None:
        LOGGER.debug("cache.hit", key=key)
        return hit
    value = compute()
    cache.set(key, value, ttl)
    return value
