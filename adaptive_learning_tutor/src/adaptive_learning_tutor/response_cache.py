"""
Bounded Keyed Cache

LRU store with an optional time-to-live, used for generated explanations
and per-learner personalization models. Values are returned as the same
object that was stored.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, Hashable, Iterator, Optional, Tuple, TypeVar

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Cached value with bookkeeping."""
    value: V
    created_at: datetime
    hit_count: int = 0


class BoundedCache(Generic[V]):
    """
    Least-recently-used cache with a hard capacity.

    Reads refresh recency; inserting beyond max_size evicts the least
    recently used entry. With a TTL, entries older than the TTL are dropped
    on the next access.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_hours: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries (must be positive)
            ttl_hours: Time-to-live for entries in hours (None disables expiry)
            clock: Time source, defaults to datetime.now
        """
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = timedelta(hours=ttl_hours) if ttl_hours else None
        self._clock = clock or datetime.now
        self._entries: "OrderedDict[Hashable, CacheEntry[V]]" = OrderedDict()
        self.evictions = 0

    def _is_expired(self, entry: CacheEntry[V], now: datetime) -> bool:
        return self.ttl is not None and now - entry.created_at > self.ttl

    def _cleanup_expired(self):
        if self.ttl is None:
            return
        now = self._clock()
        expired_keys = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired_keys:
            del self._entries[key]

    def _evict_oldest(self):
        while len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
            self.evictions += 1

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            return None
        entry.hit_count += 1
        self._entries.move_to_end(key)
        return entry.value

    def put(self, key: Hashable, value: V):
        if key in self._entries:
            del self._entries[key]
        else:
            self._cleanup_expired()
            self._evict_oldest()
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())

    def get_or_create(self, key: Hashable, factory: Callable[[], V]) -> V:
        value = self.get(key)
        if value is None:
            value = factory()
            self.put(key, value)
        return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[Hashable, V]]:
        for key, entry in list(self._entries.items()):
            yield key, entry.value

    def get_stats(self) -> Dict:
        """Get cache statistics."""
        total_hits = sum(entry.hit_count for entry in self._entries.values())
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "total_hits": total_hits,
            "avg_hits_per_entry": total_hits / len(self._entries) if self._entries else 0,
            "evictions": self.evictions,
        }

    def clear(self):
        """Clear all cache entries."""
        self._entries.clear()
