"""
Bounded freshness cache.

LRU-ordered key/value store with insertion-time TTL. Expired entries are only
purged lazily when read; there is no background sweeper.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    inserted_at: float
    ttl: float


class BoundedFreshnessCache(Generic[K, V]):
    """LRU cache whose entries expire a fixed time after insertion.

    Reads move an entry to the most-recently-used position but never refresh
    its ``inserted_at``: freshness is measured from the last ``set``.
    """

    def __init__(
        self,
        max_size: int,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Optional[Callable[[K, V], None]] = None,
        name: str = "cache",
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._on_evict = on_evict
        self._entries: "OrderedDict[K, _CacheEntry[V]]" = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.inserted_at > entry.ttl:
            del self._entries[key]
            logger.debug(f"{self.name}: expired {key!r}")
            self._notify_evicted(key, entry.value)
            return None

        # remove + re-add puts the key at the MRU end
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            lru_key, lru_entry = self._entries.popitem(last=False)
            logger.debug(f"{self.name}: evicted {lru_key!r} (size={self.max_size})")
            self._notify_evicted(lru_key, lru_entry.value)

        self._entries[key] = _CacheEntry(
            value=value,
            inserted_at=self._clock(),
            ttl=self.ttl if ttl is None else ttl,
        )

    def clear(self) -> None:
        self._entries.clear()

    def keys(self):
        """Keys in LRU -> MRU order (does not check expiry)."""
        return list(self._entries.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _notify_evicted(self, key: K, value: V) -> None:
        if self._on_evict is None:
            return
        try:
            self._on_evict(key, value)
        except Exception as e:
            logger.warning(f"{self.name}: eviction callback failed for {key!r}: {e}")
