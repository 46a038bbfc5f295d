"""
Cache-aside layer for GitHub-derived data.

Values are JSON-encoded with pydantic (dataclasses and datetimes included)
and stored under "{namespace}:{owner}:{name}:{operation}:{params}" keys.
Two backends:
- Redis (SETEX / SCAN) when REDIS_URL is configured
- In-process cachetools TLRUCache with a per-entry TTL otherwise

The cache is an optimization only: every backend failure is logged and
reported as a miss (reads) or False (writes), never raised.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

import redis.asyncio as redis
from cachetools import TLRUCache  # type: ignore[import-untyped]
from pydantic import TypeAdapter, ValidationError
from pydantic_core import from_json, to_json
from redis.exceptions import RedisError

from repopulse.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> int: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """In-process backend; each entry expires after its own TTL."""

    def __init__(self, maxsize: int = 1024, timer: Callable[[], float] | None = None):
        kwargs: dict[str, Any] = {}
        if timer is not None:
            kwargs["timer"] = timer
        # Entries are stored as (payload, ttl) so the ttu can read the TTL back
        self._cache: TLRUCache[str, tuple[str, int]] = TLRUCache(
            maxsize=maxsize,
            ttu=lambda _key, value, now: now + value[1],
            **kwargs,
        )

    async def get(self, key: str) -> str | None:
        entry = self._cache.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._cache[key] = (value, ttl_seconds)

    async def delete(self, key: str) -> int:
        return 1 if self._cache.pop(key, None) is not None else 0

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in list(self._cache.keys()) if key.startswith(prefix)]
        for key in keys:
            self._cache.pop(key, None)
        return len(keys)

    async def close(self) -> None:
        self._cache.clear()


class RedisCacheBackend:
    """Redis backend with a lazily validated connection.

    A failed initial ping disables the backend for the lifetime of the
    process; every operation then behaves as a miss.
    """

    def __init__(self, url: str, client: redis.Redis | None = None):
        self.url = url
        self._client: redis.Redis | None = client
        self._available = client is not None
        self._checked = client is not None

    async def _get_client(self) -> redis.Redis | None:
        """Get Redis client with connection validation."""
        if not self._checked:
            self._checked = True
            try:
                self._client = redis.from_url(
                    self.url,
                    decode_responses=True,
                    socket_timeout=5.0,
                    socket_connect_timeout=5.0,
                )
                await self._client.ping()
                self._available = True
                logger.info("Redis cache connection established")
            except (RedisError, OSError) as e:
                logger.warning(f"Redis connection failed: {e}. Proceeding without cache.")
                self._available = False
                self._client = None

        return self._client if self._available else None

    async def get(self, key: str) -> str | None:
        client = await self._get_client()
        if client is None:
            return None
        value: str | None = await client.get(key)
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        client = await self._get_client()
        if client is None:
            return
        await client.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> int:
        client = await self._get_client()
        if client is None:
            return 0
        return int(await client.delete(key))

    async def delete_prefix(self, prefix: str) -> int:
        client = await self._get_client()
        if client is None:
            return 0
        keys = [key async for key in client.scan_iter(match=f"{prefix}*", count=200)]
        if not keys:
            return 0
        return int(await client.delete(*keys))

    async def close(self) -> None:
        """Close Redis connection if open."""
        if self._client:
            try:
                await self._client.aclose()
                logger.debug("Redis connection closed")
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._available = False


def build_backend() -> CacheBackend:
    """Backend selected from settings."""
    if settings.redis_enabled:
        return RedisCacheBackend(settings.redis_url)
    return MemoryCacheBackend(maxsize=settings.cache_max_entries)


@dataclass
class CacheResult(Generic[T]):
    data: T
    from_cache: bool


class CacheKeys:
    """Key builders. Keys are relative to the cache namespace."""

    MULTI_OWNER = "_multi"

    @staticmethod
    def repo_prefix(owner: str, name: str) -> str:
        return f"{owner}:{name}:"

    @classmethod
    def multi_prefix(cls) -> str:
        return f"{cls.MULTI_OWNER}:"

    @staticmethod
    def commit_list(owner: str, name: str, time_range: str) -> str:
        return f"{owner}:{name}:commits:{time_range}"

    @staticmethod
    def commit_detail(owner: str, name: str, sha: str) -> str:
        return f"{owner}:{name}:commit:{sha}"

    @staticmethod
    def repo_info(owner: str, name: str) -> str:
        return f"{owner}:{name}:repo_info"

    @staticmethod
    def languages(owner: str, name: str) -> str:
        return f"{owner}:{name}:languages"

    @staticmethod
    def contributors(owner: str, name: str) -> str:
        return f"{owner}:{name}:contributors"

    @staticmethod
    def commit_activity(owner: str, name: str) -> str:
        return f"{owner}:{name}:commit_activity"

    @staticmethod
    def code_frequency(owner: str, name: str) -> str:
        return f"{owner}:{name}:code_frequency"

    @classmethod
    def multi(cls, operation: str, repos: list[tuple[str, str]], *params: str) -> str:
        """Key for an operation over several repositories (order-insensitive)."""
        repo_segment = ",".join(sorted(f"{owner}/{name}" for owner, name in repos))
        key = f"{cls.MULTI_OWNER}:{repo_segment}:{operation}"
        if params:
            key = f"{key}:{':'.join(params)}"
        return key


class CacheLayer:
    """Namespaced, fail-soft cache-aside helper."""

    def __init__(self, backend: CacheBackend | None = None, namespace: str | None = None):
        self.backend = backend if backend is not None else build_backend()
        self.namespace = namespace or settings.cache_namespace
        self._pending_writes: set[asyncio.Task[bool]] = set()

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str, type_: Any = None) -> Any | None:
        """
        Read a cached value.

        Args:
            key: Key relative to the namespace
            type_: Optional type to validate the decoded JSON into
                (dataclasses, lists of dataclasses, ...)

        Returns:
            The value, or None on miss, expiry, decode error or backend outage
        """
        try:
            raw = await self.backend.get(self._full_key(key))
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            logger.debug(f"Cache MISS: {key}")
            return None

        try:
            data = from_json(raw)
            if type_ is not None:
                data = TypeAdapter(type_).validate_python(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

        logger.debug(f"Cache HIT: {key}")
        return data

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Best-effort write. Returns False if the value could not be stored."""
        try:
            payload = to_json(value).decode()
            await self.backend.set(self._full_key(key), payload, ttl_seconds)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def with_cache(
        self,
        key: str,
        ttl_seconds: int,
        producer: Callable[[], Awaitable[T]],
        type_: Any = None,
    ) -> CacheResult[T]:
        """
        Return the cached value, or produce it and schedule the write.

        The write is not awaited; call wait_for_pending_writes() to drain.
        Producer errors propagate unchanged. None results are not cached.
        """
        cached = await self.get(key, type_)
        if cached is not None:
            return CacheResult(data=cached, from_cache=True)

        data = await producer()
        if data is not None:
            self._schedule_write(key, data, ttl_seconds)
        return CacheResult(data=data, from_cache=False)

    def _schedule_write(self, key: str, value: Any, ttl_seconds: int) -> None:
        task = asyncio.create_task(self.set(key, value, ttl_seconds))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def wait_for_pending_writes(self) -> None:
        """Wait until every scheduled write has finished."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    async def invalidate(self, key: str) -> bool:
        try:
            return await self.backend.delete(self._full_key(key)) > 0
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
            return False

    async def invalidate_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the number removed."""
        try:
            removed = await self.backend.delete_prefix(self._full_key(prefix))
        except Exception as e:
            logger.warning(f"Cache prefix invalidation failed for {prefix}: {e}")
            return 0
        logger.debug(f"Invalidated {removed} cache entries under {prefix}")
        return removed

    async def close(self) -> None:
        await self.wait_for_pending_writes()
        await self.backend.close()


_cache_layer: CacheLayer | None = None


def get_cache_layer() -> CacheLayer:
    """Shared cache layer built from settings."""
    global _cache_layer
    if _cache_layer is None:
        _cache_layer = CacheLayer()
    return _cache_layer


async def close_cache_layer() -> None:
    global _cache_layer
    if _cache_layer is not None:
        await _cache_layer.close()
        _cache_layer = None
