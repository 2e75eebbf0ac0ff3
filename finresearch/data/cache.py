"""
In-memory TTL cache shared by the quote, news and LLM paths
Bounded by size with insertion-order eviction; age is checked on read only
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from ..utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Represents a cached value"""
    value: T
    stored_at: float


class TTLCache(Generic[T]):
    """
    Size-bounded cache with lazy expiry

    - put() at capacity evicts the single oldest-inserted entry (not LRU;
      reads never promote an entry)
    - get() treats an entry older than ttl_seconds as a miss but leaves it in
      place; a later put() overwrites it or eviction removes it
    - ttl_seconds=None means entries never expire and only size evicts them
    """

    def __init__(
        self,
        max_size: int,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        name: str = "cache"
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[T]:
        """Return the cached value, or None on a miss or a stale entry"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            if self.ttl_seconds is not None and self._clock() - entry.stored_at > self.ttl_seconds:
                self.misses += 1
                logger.debug(f"{self.name}: stale entry for {key}")
                return None

            self.hits += 1
            return entry.value

    def put(self, key: Hashable, value: T):
        """Store a value, evicting the oldest-inserted entry when full"""
        with self._lock:
            if key in self._entries:
                # Overwrite counts as a fresh insertion
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"{self.name}: evicted {evicted}")

            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self):
        """Keys in insertion order, stale ones included"""
        with self._lock:
            return list(self._entries.keys())

    def clear(self):
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            now = self._clock()
            stale = 0
            if self.ttl_seconds is not None:
                stale = sum(
                    1 for e in self._entries.values()
                    if now - e.stored_at > self.ttl_seconds
                )
            return {
                'name': self.name,
                'entries': len(self._entries),
                'stale_entries': stale,
                'max_size': self.max_size,
                'ttl_seconds': self.ttl_seconds,
                'hits': self.hits,
                'misses': self.misses
            }
