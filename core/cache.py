"""
Key-Value Store and Caching System for the StreamHub policy engine.

This module provides the shared keyed store used by the verification router
(one live OTP challenge per identity and purpose) and the general-purpose cache
used for provider results such as the supported-language list.

Key Components:
- CacheBackend (ABC): The store interface. Besides get/set/delete it exposes
  `compare_and_swap`, the primitive the verification router relies on to make
  challenge replacement and single-use consumption atomic.
- MemoryCacheBackend: In-process store with TTL and LRU eviction, serialised
  by an `asyncio.Lock`. Suitable for a single worker process.
- RedisCacheBackend: Distributed store on `redis.asyncio`. Values are stored as
  JSON; compare-and-swap uses WATCH/MULTI/EXEC.
- CacheManager: A facade adding get-or-set, pattern invalidation and a health
  check on top of any backend.
- `create_backend` / `init_cache` / `get_cache`: Global wiring.

Architectural Design:
- Strategy Pattern: Backends are interchangeable behind `CacheBackend`, so the
  same services run against memory in tests and Redis in multi-process
  deployments.
- Atomic Overwrite: `set` replaces a value in one step in both backends, so a
  reader never observes a half-written entry.
"""

import asyncio
import copy
import fnmatch
import json
import math
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from core.config import Settings
from core.logging_config import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """Cache entry with metadata"""

    value: Any
    created_at: datetime
    expires_at: Optional[datetime] = None
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    size_bytes: int = 0

    def __post_init__(self):
        if self.last_accessed is None:
            self.last_accessed = self.created_at
        if self.size_bytes == 0:
            self.size_bytes = sys.getsizeof(self.value)

    @property
    def is_expired(self) -> bool:
        """Check if cache entry has expired"""
        if self.expires_at is None:
            return False
        return _utcnow() > self.expires_at


class CacheBackend(ABC):
    """Abstract base class for key-value backends"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value by key"""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Set value with optional TTL in seconds"""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete value"""
        pass

    @abstractmethod
    async def compare_and_swap(
        self, key: str, expected: Any, new: Any, ttl: Optional[float] = None
    ) -> bool:
        """
        Atomically replace the value at `key` with `new` if the current value
        equals `expected`.

        `expected=None` requires the key to be absent; `new=None` deletes it.
        Returns True when the swap happened.
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a live value exists for key"""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all entries"""
        pass

    @abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """Get keys matching a glob pattern"""
        pass

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """Get backend statistics"""
        pass


class MemoryCacheBackend(CacheBackend):
    """In-memory backend with TTL and LRU eviction"""

    def __init__(self, max_size: int = 10000, max_memory_mb: int = 100):
        self.max_size = max_size
        self.max_memory_bytes = max_memory_mb * 1024 * 1024
        self.cache: Dict[str, CacheEntry] = {}
        self.access_order: List[str] = []  # For LRU tracking
        self.total_size_bytes = 0
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self.misses += 1
                logger.debug(f"Cache miss for key: {key}")
                return None

            entry.access_count += 1
            entry.last_accessed = _utcnow()
            self._touch(key)

            self.hits += 1
            return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        async with self._lock:
            self._store(key, value, ttl)
            logger.debug(f"Cache set for key: {key}, TTL: {ttl}")
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self.cache:
                self._remove_key(key)
                logger.debug(f"Cache deleted for key: {key}")
                return True
            return False

    async def compare_and_swap(
        self, key: str, expected: Any, new: Any, ttl: Optional[float] = None
    ) -> bool:
        async with self._lock:
            entry = self._live_entry(key)
            current = entry.value if entry is not None else None
            if current != expected:
                return False

            if new is None:
                if entry is not None:
                    self._remove_key(key)
            else:
                self._store(key, new, ttl)
            return True

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live_entry(key) is not None

    async def clear(self) -> bool:
        async with self._lock:
            self.cache.clear()
            self.access_order.clear()
            self.total_size_bytes = 0
            logger.info("Cache cleared")
            return True

    async def keys(self, pattern: str = "*") -> List[str]:
        async with self._lock:
            live = [key for key in list(self.cache) if self._live_entry(key) is not None]
            if pattern == "*":
                return live
            return [key for key in live if fnmatch.fnmatch(key, pattern)]

    async def stats(self) -> Dict[str, Any]:
        async with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests) if total_requests > 0 else 0.0

            return {
                "backend": "memory",
                "total_keys": len(self.cache),
                "max_size": self.max_size,
                "memory_usage_bytes": self.total_size_bytes,
                "max_memory_bytes": self.max_memory_bytes,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": hit_rate,
                "evictions": self.evictions,
            }

    # Helpers below expect the lock to be held

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self.cache.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            self._remove_key(key)
            logger.debug(f"Cache expired for key: {key}")
            return None
        return entry

    def _store(self, key: str, value: Any, ttl: Optional[float]) -> None:
        now = _utcnow()
        expires_at = now + timedelta(seconds=ttl) if ttl else None
        # Stored values are private copies, like the serialized Redis values
        entry = CacheEntry(value=copy.deepcopy(value), created_at=now, expires_at=expires_at)

        if key in self.cache:
            self._remove_key(key)
        self._ensure_capacity(entry.size_bytes)

        self.cache[key] = entry
        self.access_order.append(key)
        self.total_size_bytes += entry.size_bytes

    def _touch(self, key: str) -> None:
        if key in self.access_order:
            self.access_order.remove(key)
        self.access_order.append(key)

    def _remove_key(self, key: str) -> None:
        entry = self.cache.pop(key, None)
        if entry is not None:
            self.total_size_bytes -= entry.size_bytes
        if key in self.access_order:
            self.access_order.remove(key)

    def _ensure_capacity(self, new_entry_size: int) -> None:
        while (
            len(self.cache) >= self.max_size
            or self.total_size_bytes + new_entry_size > self.max_memory_bytes
        ):
            if not self.access_order:
                break

            lru_key = self.access_order[0]
            self._remove_key(lru_key)
            self.evictions += 1
            logger.debug(f"Evicted LRU key: {lru_key}")


class RedisCacheBackend(CacheBackend):
    """Redis backend storing JSON-encoded values"""

    def __init__(self, redis_url: str = "redis://localhost:6379/0", client=None):
        self.redis_url = redis_url
        self._redis = client or aioredis.from_url(redis_url, decode_responses=True)

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, sort_keys=True, default=str)

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[Any]:
        return json.loads(raw) if raw is not None else None

    @staticmethod
    def _expiry(ttl: Optional[float]) -> Optional[int]:
        return int(math.ceil(ttl)) if ttl else None

    async def get(self, key: str) -> Optional[Any]:
        return self._decode(await self._redis.get(key))

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        await self._redis.set(key, self._encode(value), ex=self._expiry(ttl))
        return True

    async def delete(self, key: str) -> bool:
        return bool(await self._redis.delete(key))

    async def compare_and_swap(
        self, key: str, expected: Any, new: Any, ttl: Optional[float] = None
    ) -> bool:
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = self._decode(await pipe.get(key))
                if current != expected:
                    await pipe.unwatch()
                    return False

                pipe.multi()
                if new is None:
                    pipe.delete(key)
                else:
                    pipe.set(key, self._encode(new), ex=self._expiry(ttl))
                await pipe.execute()
                return True
            except WatchError:
                logger.debug(f"Compare-and-swap lost race for key: {key}")
                return False

    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(key))

    async def clear(self) -> bool:
        await self._redis.flushdb()
        return True

    async def keys(self, pattern: str = "*") -> List[str]:
        return [key async for key in self._redis.scan_iter(match=pattern)]

    async def stats(self) -> Dict[str, Any]:
        return {
            "backend": "redis",
            "url": self.redis_url.split("@")[-1],
            "total_keys": await self._redis.dbsize(),
        }

    async def close(self) -> None:
        await self._redis.aclose()


class CacheManager:
    """High-level cache manager"""

    def __init__(self, backend: CacheBackend):
        self.backend = backend
        self.logger = get_logger(f"{__name__}.CacheManager")

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        try:
            return await self.backend.get(key)
        except Exception as e:
            self.logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Set value in cache"""
        try:
            return await self.backend.set(key, value, ttl)
        except Exception as e:
            self.logger.error(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete value from cache"""
        try:
            return await self.backend.delete(key)
        except Exception as e:
            self.logger.error(f"Cache delete error for key {key}: {e}")
            return False

    async def get_or_set(self, key: str, factory, ttl: Optional[float] = None) -> Any:
        """Get value from cache or set it using factory function"""
        value = await self.get(key)
        if value is not None:
            return value

        if asyncio.iscoroutinefunction(factory):
            value = await factory()
        else:
            value = factory()

        await self.set(key, value, ttl)
        return value

    async def invalidate_pattern(self, pattern: str) -> int:
        """Invalidate all keys matching pattern"""
        try:
            count = 0
            for key in await self.backend.keys(pattern):
                if await self.backend.delete(key):
                    count += 1
            self.logger.info(f"Invalidated {count} keys matching pattern: {pattern}")
            return count
        except Exception as e:
            self.logger.error(f"Cache invalidation error for pattern {pattern}: {e}")
            return 0

    async def health_check(self) -> Dict[str, Any]:
        """Perform cache health check"""
        try:
            test_key = "__health_check__"
            await self.set(test_key, "ok", ttl=1)
            retrieved = await self.get(test_key)
            await self.delete(test_key)
            stats = await self.backend.stats()

            return {
                "status": "healthy" if retrieved == "ok" else "unhealthy",
                "backend_type": stats.get("backend", "unknown"),
                "stats": stats,
            }
        except Exception as e:
            self.logger.error(f"Cache health check failed: {e}")
            return {"status": "unhealthy", "backend_type": "unknown", "error": str(e)}


def cache_key(*key_parts) -> str:
    """Generate a cache key from parts"""
    return ":".join(str(part) for part in key_parts if part is not None)


def create_backend(settings: Settings) -> CacheBackend:
    """Build the backend selected by CACHE_BACKEND"""
    if settings.cache_backend == "redis":
        logger.info("Using Redis key-value backend")
        return RedisCacheBackend(settings.redis_url)
    return MemoryCacheBackend()


# Global cache manager instance
cache_manager = None


def get_cache() -> CacheManager:
    """Get the global cache manager instance."""
    global cache_manager
    if cache_manager is None:
        cache_manager = CacheManager(MemoryCacheBackend())
    return cache_manager


def init_cache(backend: CacheBackend = None) -> CacheManager:
    """Initialize the global cache manager with a specific backend."""
    global cache_manager
    if backend is None:
        backend = MemoryCacheBackend()
    cache_manager = CacheManager(backend)
    return cache_manager
