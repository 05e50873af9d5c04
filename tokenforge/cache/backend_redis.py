"""Redis cache backend using per-field hash expiry."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.asyncio import Redis
from redis.exceptions import RedisError

from tokenforge.cache.backend import CacheBackend
from tokenforge.core.errors import CacheUnavailableError
from tokenforge.core.logging import get_logger

log = get_logger(__name__)


@asynccontextmanager
async def _translate_errors(operation: str, key: str) -> AsyncIterator[None]:
    try:
        yield
    except RedisError as exc:
        log.error("cache.unavailable", operation=operation, key=key, error=str(exc))
        raise CacheUnavailableError(f"Redis {operation} failed for {key}: {exc}") from exc


class RedisBackend(CacheBackend):
    """Redis implementation of the cache backend.

    Hash-field writes run ``HSET`` and ``HEXPIRE`` inside one MULTI/EXEC
    transaction, which requires Redis 7.4 or newer.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def exists(self, key: str) -> int:
        async with _translate_errors("exists", key):
            return int(await self._client.exists(key))

    async def hexists(self, key: str, field: str) -> bool:
        async with _translate_errors("hexists", key):
            return bool(await self._client.hexists(key, field))

    async def get(self, key: str) -> bytes | None:
        async with _translate_errors("get", key):
            return await self._client.get(key)

    async def hget(self, key: str, field: str) -> bytes | None:
        async with _translate_errors("hget", key):
            return await self._client.hget(key, field)

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:
        async with _translate_errors("set", key):
            await self._client.set(key, value, ex=ttl_seconds)

    async def hset_with_expiry(
        self, key: str, field: str, value: bytes, ttl_seconds: int
    ) -> None:
        async with _translate_errors("hset", key):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(key, field, value)
                pipe.hexpire(key, ttl_seconds, field)
                await pipe.execute()

    async def close(self) -> None:
        async with _translate_errors("close", "-"):
            await self._client.aclose()
