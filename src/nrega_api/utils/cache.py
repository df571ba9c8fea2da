"""
Thread-safe in-process response cache with per-key TTL and a size bound.

Keys are built from request parameters (including free-text search
queries), so the cache is capped: once ``max_entries`` is reached, expired
entries are dropped first, then the least recently used one.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, NamedTuple


class _Entry(NamedTuple):
    value: Any
    expires_at: float


class TTLCache:
    """
    Dict-like cache where an entry set at T with ttl W is served while
    ``clock() < T + W``.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        *,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        now = self._clock()
        expires_at = now + (self._default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = _Entry(value, expires_at)
            self._entries.move_to_end(key)
            if len(self._entries) > self._max_entries:
                self._drop_expired(now)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def evict_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        with self._lock:
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, entry in self._entries.items() if now >= entry.expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(*parts: Any) -> str:
    """Join request parameters into a case-insensitive cache key."""
    return ":".join("" if p is None else str(p).strip().lower() for p in parts)
