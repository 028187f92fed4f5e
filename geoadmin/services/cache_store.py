"""
Key/value store backed by Redis.

Shared by the reference-data cache and the session store. Transport
failures surface as UnavailableError; callers decide whether they are fatal.
"""

from typing import Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError
from structlog import get_logger

from geoadmin.config import settings
from geoadmin.exceptions import UnavailableError

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """The operations the cache and the session store need from a store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def expire(self, key: str, ttl_seconds: int) -> None: ...


class RedisStore:
    """KeyValueStore over a redis.asyncio client."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def get(self, key: str) -> str | None:
        try:
            value = await self.client.get(key)
        except RedisError as e:
            raise UnavailableError("redis", f"GET failed: {e}") from e
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else str(value)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise UnavailableError("redis", f"SET failed: {e}") from e

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.client.delete(*keys)
        except RedisError as e:
            raise UnavailableError("redis", f"DEL failed: {e}") from e

    async def expire(self, key: str, ttl_seconds: int) -> None:
        try:
            await self.client.expire(key, ttl_seconds)
        except RedisError as e:
            raise UnavailableError("redis", f"EXPIRE failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            raise UnavailableError("redis", f"PING failed: {e}") from e


# Global client, one connection pool per process
_store: RedisStore | None = None


def get_store() -> RedisStore:
    """Get or create the process-wide Redis store."""
    global _store
    if _store is None:
        client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
        )
        _store = RedisStore(client)
        logger.info("redis_store_created")
    return _store


async def close_store() -> None:
    """Close the Redis connection pool (for graceful shutdown)."""
    global _store
    if _store is not None:
        await _store.client.aclose()
        _store = None
