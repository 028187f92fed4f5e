"""
Tests for the Redis-backed key/value store.

The redis client is mocked; these tests pin the command mapping and the
error translation.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from geoadmin.exceptions import UnavailableError
from geoadmin.services.cache_store import RedisStore


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_set_passes_ttl_as_ex(self, client):
        await RedisStore(client).set("countries", "[]", 300)
        client.set.assert_awaited_once_with("countries", "[]", ex=300)

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, client):
        client.get.return_value = b"[]"
        assert await RedisStore(client).get("countries") == "[]"

    @pytest.mark.asyncio
    async def test_get_miss(self, client):
        client.get.return_value = None
        assert await RedisStore(client).get("countries") is None

    @pytest.mark.asyncio
    async def test_delete_without_keys_skips_round_trip(self, client):
        await RedisStore(client).delete()
        client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_many(self, client):
        await RedisStore(client).delete("countries", "states:1")
        client.delete.assert_awaited_once_with("countries", "states:1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", [
        ("get", ("k",)),
        ("set", ("k", "v", 10)),
        ("delete", ("k",)),
        ("expire", ("k", 10)),
        ("ping", ()),
    ])
    async def test_redis_errors_become_unavailable(self, client, method, args):
        getattr(client, method).side_effect = RedisConnectionError("connection refused")

        with pytest.raises(UnavailableError) as exc_info:
            await getattr(RedisStore(client), method)(*args)

        assert exc_info.value.resource == "redis"
