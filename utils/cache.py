"""
Caching utilities for the Fleet Level Analytics application.

Provides memory caching with optional Redis backend, TTL management, a
get-or-compute memoization entry point and function decorators for caching
expensive KPI computations.

Example:
    >>> from utils.cache import cache_manager, cached, make_cache_key
    >>>
    >>> # Memoize one computation
    >>> key = make_cache_key("fleet-summary", time_range=30, tank_ids=["t2", "t1"])
    >>> summary = cache_manager.get_or_compute(key, lambda: compute_summary(), ttl=300)
    >>>
    >>> # Cache a function result
    >>> @cached(ttl=300, key_prefix="aggregated")
    >>> def aggregated_kpis(granularity: str, days: int):
    >>>     return expensive_aggregation(granularity, days)
"""

import copy
import hashlib
import json
import pickle
import re
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

import redis

from .config import settings
from .logging_config import get_logger, log_cache_operation, log_performance

logger = get_logger(__name__)

T = TypeVar("T")


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Clear all cache entries."""
        pass

    @abstractmethod
    def keys(self, pattern: str = "*") -> List[str]:
        """Get all keys matching pattern."""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        pass


class MemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support.

    Values are copied on set and on get, so callers never share the stored object.
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.time):
        """
        Initialize memory cache.

        Args:
            max_size: Maximum number of cache entries
            clock: Time source in seconds, injectable for tests
        """
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        """Check if cache entry has expired."""
        if entry["expires_at"] is None:
            return False
        return self._clock() >= entry["expires_at"]

    def _cleanup_expired(self) -> None:
        """Remove expired entries."""
        expired_keys = [
            key for key, entry in self._cache.items()
            if self._is_expired(entry)
        ]

        for key in expired_keys:
            del self._cache[key]

    def _evict_oldest(self) -> None:
        """Evict oldest entries to maintain max_size."""
        if len(self._cache) >= self._max_size:
            # Remove 20% of oldest entries
            entries_to_remove = max(1, len(self._cache) // 5)
            sorted_entries = sorted(
                self._cache.items(),
                key=lambda x: x[1]["created_at"]
            )

            for key, _ in sorted_entries[:entries_to_remove]:
                del self._cache[key]

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None or self._is_expired(entry):
                if entry is not None:
                    del self._cache[key]
                self._misses += 1
                log_cache_operation("GET", key, hit=False)
                return None

            entry["accessed_at"] = self._clock()
            self._hits += 1
            log_cache_operation("GET", key, hit=True)
            return copy.deepcopy(entry["value"])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        with self._lock:
            self._cleanup_expired()
            if key not in self._cache:
                self._evict_oldest()

            current_time = self._clock()
            self._cache[key] = {
                "value": copy.deepcopy(value),
                "created_at": current_time,
                "accessed_at": current_time,
                "expires_at": current_time + ttl if ttl else None,
            }
            self._sets += 1

        log_cache_operation("SET", key, ttl_seconds=ttl)
        return True

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                self._deletes += 1
                log_cache_operation("DELETE", key)
                return True
            return False

    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False
            if self._is_expired(entry):
                del self._cache[key]
                return False
            return True

    def clear(self) -> bool:
        """Clear all cache entries."""
        with self._lock:
            self._cache.clear()
        log_cache_operation("CLEAR", "all")
        return True

    def keys(self, pattern: str = "*") -> List[str]:
        """Get all keys matching pattern."""
        with self._lock:
            if pattern == "*":
                return list(self._cache.keys())

            # Convert glob pattern to regex
            regex_pattern = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
            regex = re.compile(f"^{regex_pattern}$")
            return [key for key in self._cache.keys() if regex.match(key)]

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            self._cleanup_expired()

            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests) if total_requests > 0 else 0

            return {
                "backend": "memory",
                "entries": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 3),
                "sets": self._sets,
                "deletes": self._deletes,
            }


class RedisCache(CacheBackend):
    """Redis cache implementation."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        """
        Initialize Redis cache.

        Args:
            redis_client: Redis client instance (will create from settings if None)
        """
        self._redis = redis_client if redis_client is not None else self._create_redis_client()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    def _create_redis_client(self) -> Optional[redis.Redis]:
        """Create Redis client from settings, or None when the server is unreachable."""
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            decode_responses=False,  # Values are pickled
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            client.ping()
        except redis.RedisError as e:
            logger.error("Failed to connect to Redis", url=settings.get_redis_url(), error=str(e))
            return None
        return client

    @property
    def available(self) -> bool:
        return self._redis is not None

    def _serialize(self, value: Any) -> bytes:
        """Serialize value for Redis storage."""
        return pickle.dumps(value)

    def _deserialize(self, data: bytes) -> Any:
        """Deserialize value from Redis."""
        return pickle.loads(data)

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        if not self._redis:
            return None

        try:
            data = self._redis.get(key)
        except redis.RedisError as e:
            logger.error("Redis get failed", key=key, error=str(e))
            self._misses += 1
            return None

        if data is None:
            self._misses += 1
            log_cache_operation("GET", key, hit=False)
            return None

        self._hits += 1
        log_cache_operation("GET", key, hit=True)
        return self._deserialize(data)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        if not self._redis:
            return False

        serialized = self._serialize(value)
        try:
            if ttl:
                result = self._redis.setex(key, ttl, serialized)
            else:
                result = self._redis.set(key, serialized)
        except redis.RedisError as e:
            logger.error("Redis set failed", key=key, error=str(e))
            return False

        if result:
            self._sets += 1
            log_cache_operation("SET", key, ttl_seconds=ttl, size_bytes=len(serialized))
        return bool(result)

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self._redis:
            return False

        try:
            result = self._redis.delete(key)
        except redis.RedisError as e:
            logger.error("Redis delete failed", key=key, error=str(e))
            return False

        if result:
            self._deletes += 1
            log_cache_operation("DELETE", key)
        return result > 0

    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        if not self._redis:
            return False

        try:
            return bool(self._redis.exists(key))
        except redis.RedisError as e:
            logger.error("Redis exists failed", key=key, error=str(e))
            return False

    def clear(self) -> bool:
        """Clear all cache entries."""
        if not self._redis:
            return False

        try:
            self._redis.flushdb()
        except redis.RedisError as e:
            logger.error("Redis clear failed", error=str(e))
            return False

        log_cache_operation("CLEAR", "all")
        return True

    def keys(self, pattern: str = "*") -> List[str]:
        """Get all keys matching pattern."""
        if not self._redis:
            return []

        try:
            keys = self._redis.keys(pattern)
        except redis.RedisError as e:
            logger.error("Redis keys failed", pattern=pattern, error=str(e))
            return []
        return [key.decode() if isinstance(key, bytes) else key for key in keys]

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        if not self._redis:
            return {"backend": "redis", "available": False}

        try:
            info = self._redis.info("memory")
            entries = self._redis.dbsize()
        except redis.RedisError as e:
            logger.error("Redis stats failed", error=str(e))
            return {"backend": "redis", "available": False, "error": str(e)}

        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests) if total_requests > 0 else 0

        return {
            "backend": "redis",
            "available": True,
            "entries": entries,
            "memory_used_bytes": info.get("used_memory", 0),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 3),
            "sets": self._sets,
            "deletes": self._deletes,
        }


class CacheManager:
    """High-level cache manager with fallback support and get-or-compute memoization."""

    def __init__(
        self,
        primary_backend: CacheBackend,
        fallback_backend: Optional[CacheBackend] = None,
        default_ttl: Optional[int] = None,
    ):
        """
        Initialize cache manager.

        Args:
            primary_backend: Primary cache backend (e.g., Redis)
            fallback_backend: Fallback backend (e.g., Memory) if primary misses
            default_ttl: TTL used when callers do not pass one
        """
        self._primary = primary_backend
        self._fallback = fallback_backend
        self._default_ttl = default_ttl if default_ttl is not None else settings.cache_ttl_seconds
        # key -> [lock, number of callers holding or waiting on it]
        self._key_locks: Dict[str, list] = {}
        self._key_locks_guard = threading.Lock()

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        result = self._primary.get(key)

        if result is None and self._fallback:
            result = self._fallback.get(key)

        return result

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        ttl = ttl or self._default_ttl
        success = self._primary.set(key, value, ttl)

        # Keep the fallback warm so a primary outage still serves hits
        if self._fallback:
            fallback_success = self._fallback.set(key, value, ttl)
            success = success or fallback_success

        return success

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        success = self._primary.delete(key)

        if self._fallback:
            success = self._fallback.delete(key) or success

        return success

    def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        if self._primary.exists(key):
            return True
        return bool(self._fallback and self._fallback.exists(key))

    def clear(self) -> bool:
        """Clear all cache entries."""
        success = self._primary.clear()

        if self._fallback:
            self._fallback.clear()

        return success

    def keys(self, pattern: str = "*") -> List[str]:
        """Get all keys matching pattern."""
        keys = set(self._primary.keys(pattern))
        if self._fallback:
            keys.update(self._fallback.keys(pattern))
        return sorted(keys)

    def get_stats(self) -> Dict[str, Any]:
        """Get comprehensive cache statistics."""
        primary_stats = self._primary.get_stats()
        stats = {
            "primary": primary_stats,
            "active_backend": primary_stats.get("backend", "unknown"),
            "default_ttl": self._default_ttl,
        }

        if self._fallback:
            stats["fallback"] = self._fallback.get_stats()

        return stats

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all cache entries matching pattern.

        Args:
            pattern: Glob pattern to match keys

        Returns:
            Number of keys invalidated
        """
        count = 0
        for key in self.keys(pattern):
            if self.delete(key):
                count += 1

        log_cache_operation("INVALIDATE", pattern)
        logger.info("Cache invalidation completed", pattern=pattern, keys_removed=count)

        return count

    @contextmanager
    def _key_lock(self, key: str) -> Iterator[None]:
        """Hold the per-key lock; the entry is dropped once no caller uses it."""
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = self._key_locks[key] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    def get_or_compute(self, key: str, compute: Callable[[], T], ttl: Optional[int] = None) -> T:
        """
        Return the cached value for ``key`` or compute, store and return it.

        Concurrent callers for the same key wait on a per-key lock, so the
        computation runs at most once per TTL window. Exceptions raised by
        ``compute`` propagate and leave the cache untouched. ``None`` results
        are returned but not stored.

        Args:
            key: Cache key, usually built with make_cache_key()
            compute: Zero-argument callable producing the value
            ttl: Time to live in seconds (defaults to the manager's TTL)
        """
        cached_value = self.get(key)
        if cached_value is not None:
            return cached_value

        with self._key_lock(key):
            # Another caller may have filled the entry while we waited
            cached_value = self.get(key)
            if cached_value is not None:
                return cached_value

            start_time = time.perf_counter()
            value = compute()
            duration_ms = (time.perf_counter() - start_time) * 1000

            if value is not None:
                self.set(key, value, ttl)
            log_performance("get_or_compute", duration_ms, key=key, cached=False)
            return value


def _normalize_param(value: Any) -> Any:
    """Make parameter values order-insensitive and JSON serializable."""
    if isinstance(value, (list, tuple, set, frozenset)):
        normalized = [_normalize_param(v) for v in value]
        return sorted(normalized, key=lambda v: json.dumps(v, sort_keys=True, default=str))
    if isinstance(value, dict):
        return {str(k): _normalize_param(v) for k, v in value.items()}
    if isinstance(value, Enum):
        return value.value
    return value


def make_cache_key(prefix: str, **params: Any) -> str:
    """
    Derive a deterministic cache key from a parameter set.

    Sequences are sorted, so requests naming the same entities in a different
    order share one entry.

    Args:
        prefix: Readable key prefix (operation name)
        **params: Request parameters

    Returns:
        Key of the form ``prefix:<md5 of canonical params>``
    """
    canonical = json.dumps(
        {k: _normalize_param(v) for k, v in params.items()},
        sort_keys=True,
        default=str,
    )
    key_hash = hashlib.md5(canonical.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def _generate_cache_key(func: Callable, args: tuple, kwargs: dict, key_prefix: str = "") -> str:
    """Generate cache key from function and arguments."""
    prefix = ":".join(part for part in (key_prefix, func.__module__, func.__name__) if part)
    params = {f"arg{i}": arg for i, arg in enumerate(args)}
    params.update(kwargs)
    return make_cache_key(prefix, **params)


def cached(
    ttl: Optional[int] = None,
    key_prefix: str = "",
    key_func: Optional[Callable] = None,
    manager: Optional["CacheManager"] = None,
) -> Callable:
    """
    Decorator for caching function results.

    Args:
        ttl: Time to live in seconds (defaults to settings.cache_ttl_seconds)
        key_prefix: Prefix for cache keys
        key_func: Custom function to generate cache key
        manager: Cache manager to use (defaults to the global cache_manager)

    Example:
        >>> @cached(ttl=300, key_prefix="aggregated")
        >>> def aggregated_kpis(granularity: str, days: int):
        >>>     return expensive_aggregation(granularity, days)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not settings.enable_caching:
                return func(*args, **kwargs)

            if key_func:
                cache_key = key_func(*args, **kwargs)
            else:
                cache_key = _generate_cache_key(func, args, kwargs, key_prefix)

            active = manager or cache_manager
            return active.get_or_compute(cache_key, lambda: func(*args, **kwargs), ttl)

        # Add cache control methods to the wrapped function
        wrapper.cache_clear = lambda: (manager or cache_manager).invalidate_pattern(
            f"{key_prefix or func.__module__}*"
        )
        wrapper.cache_info = lambda: (manager or cache_manager).get_stats()

        return wrapper
    return decorator


def invalidate_cache(pattern: str) -> int:
    """
    Invalidate cache entries matching the given pattern.

    Args:
        pattern: Glob pattern to match cache keys

    Returns:
        Number of cache entries invalidated
    """
    return cache_manager.invalidate_pattern(pattern)


def create_cache_manager(backend: Optional[str] = None) -> CacheManager:
    """Create a cache manager for the configured backend."""
    backend = backend or settings.cache_backend
    memory_cache = MemoryCache(max_size=settings.cache_max_entries)

    if backend == "redis":
        redis_cache = RedisCache()
        if redis_cache.available:
            logger.info("Redis cache initialized", url=settings.get_redis_url())
            return CacheManager(primary_backend=redis_cache, fallback_backend=memory_cache)
        logger.warning("Redis unavailable, using memory cache only")

    return CacheManager(primary_backend=memory_cache)


# Global cache manager instance
cache_manager = create_cache_manager()
