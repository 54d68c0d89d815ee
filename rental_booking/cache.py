"""
Search and availability cache.

The cache sits in front of the read path only. It is never authoritative:
every store failure is logged and treated as a miss, and reservation writes
never consult it. Cached negative answers are stored as a NOT_FOUND sentinel
and replayed as ListingUnavailableError.

Two stores implement the CacheStore protocol:
- RedisCacheStore for deployed environments (shared across instances)
- InMemoryCacheStore for single-process development and tests
"""

from __future__ import annotations

import json
import threading
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Protocol

import redis
import structlog
from redis.exceptions import RedisError

from rental_booking.config import CACHE_BACKEND, REDIS_URL, SEARCH_CACHE_TTL_SECONDS
from rental_booking.errors import ListingUnavailableError
from rental_booking.metrics import cache_operations
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

NOT_FOUND = "NOT_FOUND"

AVAILABILITY_PREFIX = "availability"
SEARCH_PREFIX = "search"
PRE_RESERVATION_PREFIX = "pre_reservation"


class CacheStore(Protocol):
    """Key/value store with per-key TTL and prefix invalidation."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl_ms: int) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...


class InMemoryCacheStore:
    """
    Thread-safe in-memory store with per-key expiry.

    Example:
        >>> store = InMemoryCacheStore()
        >>> store.set("availability:beach-house:2024-12-01:2024-12-05", "{}", ttl_ms=300_000)
        >>> store.get("availability:beach-house:2024-12-01:2024-12-05")
        '{}'
    """

    def __init__(self) -> None:
        self._cache: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if utc_now() < expires_at:
                    return value
                # Expired - remove from cache
                del self._cache[key]
        return None

    def set(self, key: str, value: str, ttl_ms: int) -> None:
        expires_at = utc_now() + timedelta(milliseconds=ttl_ms)
        with self._lock:
            self._cache[key] = (value, expires_at)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._cache if k.startswith(prefix)]
            for key in keys:
                del self._cache[key]
        return len(keys)

    def clear(self) -> None:
        """Drop every entry. Useful for tests."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)


class RedisCacheStore:
    """CacheStore backed by redis-py; values are stored as strings."""

    def __init__(self, client: Optional[redis.Redis] = None, url: str = REDIS_URL) -> None:
        self.client = client or redis.from_url(
            url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str, ttl_ms: int) -> None:
        self.client.psetex(key, ttl_ms, value)

    def delete_prefix(self, prefix: str) -> int:
        count = 0
        for key in self.client.scan_iter(match=f"{prefix}*"):
            count += int(self.client.delete(key))
        return count


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def canonical_json(value: Any) -> str:
    """Deterministic JSON used to build cache keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=_json_default)


class SearchCache:
    """
    Caches availability answers and search result pages.

    Args:
        store: Backing CacheStore
        ttl_seconds: Lifetime of cached entries (default 5 minutes)
    """

    def __init__(self, store: CacheStore, ttl_seconds: int = SEARCH_CACHE_TTL_SECONDS) -> None:
        self.store = store
        self.ttl_ms = ttl_seconds * 1000

    @staticmethod
    def availability_key(slug: str, start: date, end: date) -> str:
        return f"{AVAILABILITY_PREFIX}:{slug}:{start.isoformat()}:{end.isoformat()}"

    @staticmethod
    def search_key(
        filters: Mapping[str, Any], params: Mapping[str, Any], pagination: Mapping[str, Any]
    ) -> str:
        return (
            f"{SEARCH_PREFIX}:{canonical_json(filters)}:"
            f"{canonical_json(params)}:{canonical_json(pagination)}"
        )

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value for key, or None on miss or store failure.

        Raises:
            ListingUnavailableError: if the key holds the NOT_FOUND sentinel
        """
        try:
            raw = self.store.get(key)
        except (RedisError, OSError) as e:
            cache_operations.labels(operation="get", result="error").inc()
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

        if raw is None:
            cache_operations.labels(operation="get", result="miss").inc()
            return None

        cache_operations.labels(operation="get", result="hit").inc()
        if raw == NOT_FOUND:
            raise ListingUnavailableError()
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_entry_corrupt", key=key)
            return None

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value. Failures are logged and ignored."""
        self._write(key, json.dumps(value, default=_json_default))

    def set_not_found(self, key: str) -> None:
        self._write(key, NOT_FOUND)

    def _write(self, key: str, raw: str) -> None:
        try:
            self.store.set(key, raw, self.ttl_ms)
        except (RedisError, OSError) as e:
            cache_operations.labels(operation="set", result="error").inc()
            logger.warning("cache_set_failed", key=key, error=str(e))
            return
        cache_operations.labels(operation="set", result="ok").inc()

    def invalidate_listing(self, slug: Optional[str]) -> None:
        """
        Drop cached answers that may involve a listing.

        Availability entries are keyed by slug; search pages can contain any
        listing, so all of them are dropped.
        """
        prefixes = [f"{SEARCH_PREFIX}:"]
        if slug:
            prefixes.insert(0, f"{AVAILABILITY_PREFIX}:{slug}:")
        for prefix in prefixes:
            try:
                removed = self.store.delete_prefix(prefix)
            except (RedisError, OSError) as e:
                cache_operations.labels(operation="invalidate", result="error").inc()
                logger.warning("cache_invalidate_failed", prefix=prefix, error=str(e))
                continue
            cache_operations.labels(operation="invalidate", result="ok").inc()
            logger.debug("cache_invalidated", prefix=prefix, removed=removed)


def build_cache_store(backend: str = CACHE_BACKEND) -> CacheStore:
    """Create the configured CacheStore ("redis" or "memory")."""
    if backend == "memory":
        return InMemoryCacheStore()
    return RedisCacheStore()
