"""
Caching for expensive per-user results such as interest profiles.
"""

import time
import logging
from collections import OrderedDict
from threading import Lock
from typing import Any, NamedTuple, Optional

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: Any
    expires_at: Optional[float]  # monotonic seconds, None = no expiry


class InMemoryCache:
    """
    Thread-safe LRU cache with optional per-entry TTL.

    A ttl of 0 (the default) keeps an entry until it is deleted or is the
    least recently used one when the cache is full.
    """

    def __init__(self, max_size: int = 1000, default_ttl: float = 0, clock=time.monotonic):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = Lock()
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at is not None and entry.expires_at <= self._clock():
                del self._entries[key]
                entry = None
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._entries[key] = _Entry(value, expires_at)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def stats(self) -> dict:
        with self._lock:
            return {
                'size': len(self._entries),
                'max_size': self._max_size,
                'hits': self.hits,
                'misses': self.misses,
            }
