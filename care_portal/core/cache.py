"""Key/value cache backends (in-process or Redis)

Entries are filled under a generation counter: invalidate() bumps the
counter and drops the entry, and set_if_generation() only writes when the
counter still holds the value the reader saw before going to the store.
"""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config import ENROLLMENT_CACHE_BACKEND, ENROLLMENT_CACHE_TTL, REDIS_URL
from .exceptions import CacheError

logger = logging.getLogger(__name__)

# KEYS[1] entry, KEYS[2] generation; ARGV[1] expected generation, ARGV[2] value, ARGV[3] ttl
SET_IF_GENERATION_SCRIPT = """
local current = redis.call('GET', KEYS[2]) or '0'
if current ~= ARGV[1] then
    return 0
end
if tonumber(ARGV[3]) > 0 then
    redis.call('SET', KEYS[1], ARGV[2], 'EX', ARGV[3])
else
    redis.call('SET', KEYS[1], ARGV[2])
end
return 1
"""


class MemoryCacheBackend:
    """Per-process cache with optional expiry"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[Optional[float], str]] = {}
        self._generations: Dict[str, int] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if expires_at is not None and expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        expires_at = self._clock() + expire if expire else None
        self._entries[key] = (expires_at, value)
        return True

    async def generation(self, generation_key: str) -> Optional[int]:
        return self._generations.get(generation_key, 0)

    async def set_if_generation(
        self,
        key: str,
        value: str,
        expire: Optional[int],
        generation_key: str,
        generation: int,
    ) -> bool:
        if self._generations.get(generation_key, 0) != generation:
            return False
        return await self.set(key, value, expire)

    async def invalidate(self, key: str, generation_key: str):
        self._generations[generation_key] = self._generations.get(generation_key, 0) + 1
        self._entries.pop(key, None)

    async def clear(self):
        self._entries.clear()
        self._generations.clear()

    async def close(self):
        await self.clear()


class RedisCacheBackend:
    """
    Shared cache in Redis. Read failures count as misses.

    A failed invalidation raises CacheError and the key is remembered
    locally: until a retried invalidation succeeds, reads of that key are
    misses and fills of it are skipped.
    """

    def __init__(self, url: str = REDIS_URL):
        self.url = url
        self.redis: Optional[redis.Redis] = None
        self._unconfirmed: Dict[str, str] = {}

    async def connect(self):
        if not self.redis:
            self.redis = redis.from_url(self.url, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        if not self.redis:
            await self.connect()

        if key in self._unconfirmed:
            await self._retry_invalidation(key)
            return None

        try:
            return await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {str(e)}")
            return None

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        if not self.redis:
            await self.connect()

        if key in self._unconfirmed:
            return False

        try:
            if expire:
                return bool(await self.redis.setex(key, expire, value))
            return bool(await self.redis.set(key, value))
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {str(e)}")
            return False

    async def generation(self, generation_key: str) -> Optional[int]:
        if not self.redis:
            await self.connect()

        try:
            value = await self.redis.get(generation_key)
        except RedisError as e:
            logger.warning(f"Cache generation read failed for {generation_key}: {str(e)}")
            return None
        return int(value) if value is not None else 0

    async def set_if_generation(
        self,
        key: str,
        value: str,
        expire: Optional[int],
        generation_key: str,
        generation: int,
    ) -> bool:
        if not self.redis:
            await self.connect()

        if key in self._unconfirmed:
            return False

        try:
            script = self.redis.register_script(SET_IF_GENERATION_SCRIPT)
            written = await script(
                keys=[key, generation_key], args=[str(generation), value, expire or 0]
            )
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {str(e)}")
            return False
        return bool(written)

    async def invalidate(self, key: str, generation_key: str):
        if not self.redis:
            await self.connect()

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(generation_key)
                pipe.delete(key)
                await pipe.execute()
        except RedisError as e:
            self._unconfirmed[key] = generation_key
            logger.error(f"Cache invalidation failed for {key}: {str(e)}")
            raise CacheError("invalidation", key, str(e)) from e

        self._unconfirmed.pop(key, None)

    async def _retry_invalidation(self, key: str):
        try:
            await self.invalidate(key, self._unconfirmed[key])
        except CacheError:
            return
        logger.info(f"Cache invalidation for {key} confirmed on retry")

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None


def create_cache_backend(backend: str = ENROLLMENT_CACHE_BACKEND):
    if backend == "redis":
        logger.info("Using Redis enrollment cache")
        return RedisCacheBackend()
    return MemoryCacheBackend()


cache_backend = create_cache_backend()
cache_ttl = ENROLLMENT_CACHE_TTL


async def get_cache_backend():
    """Dependency returning the shared cache backend"""
    return cache_backend
