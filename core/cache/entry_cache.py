"""
Entry Cache

Bounded in-memory cache of per-entry translations. Owned by whoever
creates the engine and passed in explicitly; there is no module-level
instance.
"""

import threading
from collections import OrderedDict
from typing import Optional

from config.constants import CACHE_EVICTION_RATIO, ENTRY_CACHE_SIZE
from config.logging_config import get_logger

from .base import CacheInterface, CacheStats

logger = get_logger(__name__)


class EntryCache(CacheInterface):
    """
    Thread-safe LRU cache for entry translations.

    When full, the oldest ~10% of entries are evicted in one synchronous
    step before the new value is inserted.
    """

    def __init__(self, max_size: int = ENTRY_CACHE_SIZE, eviction_ratio: float = CACHE_EVICTION_RATIO):
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self.eviction_count = max(1, int(max_size * eviction_ratio))
        self._cache: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStats(max_size=max_size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if key not in self._cache:
                self._stats.misses += 1
                return None

            # Move to end (most recently used)
            self._cache.move_to_end(key)
            self._stats.hits += 1
            return self._cache[key]

    def set(self, key: str, value: str) -> bool:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_size:
                self._evict()

            self._cache[key] = value
            self._stats.writes += 1
            self._stats.size = len(self._cache)
            return True

    def _evict(self) -> None:
        count = min(self.eviction_count, len(self._cache))
        for _ in range(count):
            self._cache.popitem(last=False)
        self._stats.evictions += count
        logger.debug(f"Entry cache full ({self.max_size}), evicted {count} oldest entries")

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                self._stats.size = len(self._cache)
                return True
            return False

    def clear(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self._stats.size = 0
            return count

    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._cache)
            return self._stats
