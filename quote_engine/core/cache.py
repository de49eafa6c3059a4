"""Cache services with an explicit TTL and eviction policy.

Callers get a cache injected; nothing here is a module-level singleton.
Values are strings (JSON documents in practice).
"""
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis

from quote_engine.core.metrics import cache_hits, cache_misses

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CacheService:
    name = "cache"

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryCache(CacheService):
    """In-process TTL cache, least-recently-used entry evicted when full."""

    name = "memory"

    def __init__(
        self,
        ttl: float,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, str]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            cache_misses.labels(cache=self.name).inc()
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            cache_misses.labels(cache=self.name).inc()
            return None
        self._entries.move_to_end(key)
        cache_hits.labels(cache=self.name).inc()
        return value

    async def set(self, key: str, value: str) -> None:
        self._entries[key] = (self._clock() + self.ttl, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted}")

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisCache(CacheService):
    """Redis-backed cache; Redis handles expiry (``ex``) and eviction (maxmemory policy)."""

    name = "redis"

    def __init__(self, client: Redis, ttl: int, prefix: str = "price:"):
        self.client = client
        self.ttl = ttl
        self.prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        raw = await self.client.get(self.prefix + key)
        if raw is None:
            cache_misses.labels(cache=self.name).inc()
            return None
        cache_hits.labels(cache=self.name).inc()
        return raw.decode() if isinstance(raw, bytes) else raw

    async def set(self, key: str, value: str) -> None:
        await self.client.set(self.prefix + key, value, ex=self.ttl)

    async def delete(self, key: str) -> None:
        await self.client.delete(self.prefix + key)


async def read_model(cache: CacheService, key: str, model: Type[ModelT]) -> Optional[ModelT]:
    """Cached JSON document parsed as ``model``.

    Cache outages read as a miss. An entry that no longer parses (schema
    changed, truncated write) is deleted so the next caller repopulates it.
    """
    try:
        raw = await cache.get(key)
    except Exception as e:
        logger.warning(f"Cache retrieval failed: {e}")
        return None
    if not raw:
        return None

    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Dropping unreadable cache entry {key}: {e}")

    try:
        await cache.delete(key)
    except Exception as e:
        logger.warning(f"Cache delete failed: {e}")
    return None
