"""
In-process TTL cache shared by all gateway invocations
Expiry is lazy on read; cleanup_expired() reclaims memory on demand
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..config import get_config
from ..utils import get_logger

logger = get_logger(__name__)

@dataclass
class CacheEntry:
    """Represents a cached value"""
    key: str
    value: Any
    stored_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_seconds

    def is_valid(self, now: float) -> bool:
        """Servable iff now < stored_at + ttl"""
        return now < self.expires_at

    def age_seconds(self, now: float) -> float:
        return now - self.stored_at

class CacheStore:
    """
    Process-wide mapping from cache key to (value, expiry)

    The lock guards the map only; callers never hold it across an upstream
    call, so two concurrent misses for one key may both go upstream.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.default_ttl = default_ttl if default_ttl is not None else get_config().system.cache_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

        logger.debug(f"Initialized cache store with default TTL {self.default_ttl}s")

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve a value

        Returns:
            Cached value if present and not expired, None otherwise
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss for {key}")
                return None

            now = self._clock()
            if not entry.is_valid(now):
                del self._entries[key]
                logger.debug(f"Cache expired for {key}")
                return None

            logger.debug(f"Cache hit for {key} (age: {entry.age_seconds(now):.1f}s)")
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None):
        """
        Store a value, replacing any existing entry and restarting its clock

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds (default: store default)
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        entry = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl_seconds=ttl)

        with self._lock:
            self._entries[key] = entry

        logger.debug(f"Cached {key} with TTL {ttl}s")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        """Drop every entry"""
        with self._lock:
            self._entries.clear()
        logger.info("Cleared all cache")

    def cleanup_expired(self) -> int:
        """Remove all expired entries, returning how many were dropped"""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            now = self._clock()
            active = sorted(key for key, entry in self._entries.items() if entry.is_valid(now))
            total = len(self._entries)

        return {
            'total_entries': total,
            'active_entries': len(active),
            'expired_entries': total - len(active),
            'default_ttl_seconds': self.default_ttl,
            'keys': active
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.is_valid(self._clock())

# Global cache instance
_cache_store: Optional[CacheStore] = None

def get_cache_store() -> CacheStore:
    """Get or create the cache store singleton"""
    global _cache_store
    if _cache_store is None:
        _cache_store = CacheStore()
    return _cache_store
