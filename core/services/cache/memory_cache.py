"""
In-memory TTL cache for read responses.

Thread-safe, bounded (LRU eviction), with no invalidation beyond expiry.
Only successful read results are stored; ``get_or_load`` never caches a
loader that raised.
"""
import hashlib
import json
import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Optional

from core.domain.credentials import Credentials

from .cache_interface import ICache, CacheEntry, CacheStats

logger = logging.getLogger(__name__)


def make_cache_key(credentials: Credentials, operation: str, *parts: Any) -> str:
    """Build a key scoped to the caller's identity and query parameters.

    The PAT contributes only through its fingerprint.
    """
    scope = [
        credentials.organization_url.lower(),
        credentials.project.lower(),
        credentials.fingerprint,
        operation,
    ]
    payload = json.dumps([scope, list(parts)], sort_keys=True, default=str)
    return f"{operation}:{hashlib.sha256(payload.encode('utf-8')).hexdigest()[:32]}"


class ResponseCache(ICache[Any]):
    """Thread-safe in-memory TTL cache with LRU eviction."""

    def __init__(
        self,
        default_ttl_seconds: float = 60.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize response cache.

        Args:
            default_ttl_seconds: Lifetime of an entry
            max_size: Maximum number of entries
            clock: Monotonic time source, injectable for tests
        """
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._default_ttl = default_ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            entry.touch()
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            while len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)
                self._evictions += 1

            now = self._clock()
            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + (ttl_seconds or self._default_ttl),
            )

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value for ``key`` or call ``loader`` and cache its result.

        Exceptions from ``loader`` propagate and nothing is stored.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("cache_hit", extra={"cache_key": key})
            return cached

        value = loader()
        self.set(key, value)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._cache),
                max_size=self._max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions
            )
