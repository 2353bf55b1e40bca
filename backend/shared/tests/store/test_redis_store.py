import asyncio
import json
from unittest.mock import AsyncMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shared.store import TTL_MISSING, CappedAppend, MemoryStore, RedisStore, StoreUnavailableError, open_store


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def store(redis_client):
    return RedisStore(redis_client)


class TestRedisStore:
    @pytest.mark.asyncio
    async def test_set_operations(self, store):
        await store.sadd("pool", "a", "b")
        await store.srem("pool", "a")

        assert await store.smembers("pool") == {"b"}
        assert await store.spop("pool") == "b"
        assert await store.spop("pool") is None

    @pytest.mark.asyncio
    async def test_hset_with_ttl_sets_expiry(self, store):
        await store.hset("meta", {"connected": "[]", "createdAt": "1"}, ttl=600)

        assert await store.hgetall("meta") == {"connected": "[]", "createdAt": "1"}
        assert 0 < await store.ttl("meta") <= 600

    @pytest.mark.asyncio
    async def test_ttl_missing_key(self, store):
        assert await store.ttl("missing") == TTL_MISSING

    @pytest.mark.asyncio
    async def test_list_operations(self, store):
        await store.rpush("log", "a")
        await store.rpush("log", "b")

        assert await store.lrange("log") == ["a", "b"]
        assert await store.expire("log", 30) is True
        assert await store.delete("log") == 1
        assert not await store.exists("log")

    @pytest.mark.asyncio
    async def test_delete_without_keys(self, store):
        assert await store.delete() == 0

    @pytest.mark.asyncio
    async def test_append_capped(self, store):
        assert await store.append_capped("meta", "connected", "t1", 2) is None

        await store.hset("meta", {"connected": "[]"})
        await store.append_capped("meta", "connected", "t1", 2)
        await store.append_capped("meta", "connected", "t2", 2)
        result = await store.append_capped("meta", "connected", "t3", 2)

        assert result == CappedAppend(appended=False, members=["t1", "t2"])
        assert json.loads((await store.hgetall("meta"))["connected"]) == ["t1", "t2"]

    @pytest.mark.asyncio
    async def test_concurrent_append_capped(self, store):
        await store.hset("meta", {"connected": "[]"})

        results = await asyncio.gather(*(store.append_capped("meta", "connected", f"t{i}", 2) for i in range(6)))

        assert sum(1 for r in results if r.appended) == 2
        assert len(json.loads((await store.hgetall("meta"))["connected"])) == 2

    @pytest.mark.asyncio
    async def test_publish_reaches_subscriber(self, store):
        subscriber = await store.subscribe("room")
        await store.publish("room", "hello")

        async def first_message() -> str:
            async for message in subscriber.listen():
                return message
            return ""

        assert await asyncio.wait_for(first_message(), timeout=2) == "hello"
        await subscriber.close()

    @pytest.mark.asyncio
    async def test_purge_expired_is_noop(self, store):
        assert await store.purge_expired() == 0

    @pytest.mark.asyncio
    async def test_connection_error_becomes_store_unavailable(self, redis_client, store):
        redis_client.spop = AsyncMock(side_effect=RedisConnectionError("Connection refused"))

        with pytest.raises(StoreUnavailableError, match="SPOP"):
            await store.spop("pool")


class TestOpenStore:
    def test_memory_url(self):
        assert isinstance(open_store("memory://"), MemoryStore)

    def test_redis_url(self):
        assert isinstance(open_store("redis://localhost:6379/0"), RedisStore)

    def test_unknown_scheme_raises(self):
        with pytest.raises(ValueError, match="Unsupported store URL scheme"):
            open_store("memcached://localhost")
