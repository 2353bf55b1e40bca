"""Redis-backed implementation of the KeyValueStore protocol."""

from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING

import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from shared.store.base import CappedAppend, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from redis.asyncio import Redis
    from redis.asyncio.client import PubSub

logger = structlog.get_logger()


@contextlib.contextmanager
def _translate_errors(command: str) -> Iterator[None]:
    """Re-raise transport failures as StoreUnavailableError."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.warning("redis command failed", command=command, error=str(e))
        raise StoreUnavailableError(f"Redis {command} failed: {e}") from e


class _RedisSubscriber:
    def __init__(self, pubsub: PubSub) -> None:
        self._pubsub = pubsub

    async def listen(self) -> AsyncIterator[str]:
        with _translate_errors("SUBSCRIBE"):
            async for message in self._pubsub.listen():
                if message["type"] == "message":
                    yield message["data"]

    async def close(self) -> None:
        with contextlib.suppress(RedisConnectionError, RedisTimeoutError):
            await self._pubsub.unsubscribe()
        await self._pubsub.aclose()


class RedisStore:
    """Thin async adapter over a shared ``redis.asyncio.Redis`` client.

    The client must be created with ``decode_responses=True``; every value
    crossing this adapter is a ``str``.
    """

    def __init__(self, client: Redis) -> None:
        self._redis = client

    async def spop(self, key: str) -> str | None:
        with _translate_errors("SPOP"):
            return await self._redis.spop(key)

    async def sadd(self, key: str, *members: str) -> int:
        with _translate_errors("SADD"):
            return await self._redis.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> int:
        with _translate_errors("SREM"):
            return await self._redis.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        with _translate_errors("SMEMBERS"):
            return set(await self._redis.smembers(key))

    async def hset(self, key: str, mapping: dict[str, str], *, ttl: int | None = None) -> None:
        with _translate_errors("HSET"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=mapping)
                if ttl is not None:
                    pipe.expire(key, ttl)
                await pipe.execute()

    async def hgetall(self, key: str) -> dict[str, str]:
        with _translate_errors("HGETALL"):
            return await self._redis.hgetall(key)

    async def hdel(self, key: str, field: str) -> int:
        with _translate_errors("HDEL"):
            return await self._redis.hdel(key, field)

    async def append_capped(self, key: str, field: str, value: str, capacity: int) -> CappedAppend | None:
        """Compare-and-append under WATCH; a concurrent write to the key restarts the attempt."""
        with _translate_errors("HSET"):
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        if not await pipe.exists(key):
                            await pipe.unwatch()
                            return None
                        members: list[str] = json.loads(await pipe.hget(key, field) or "[]")
                        if len(members) >= capacity:
                            await pipe.unwatch()
                            return CappedAppend(appended=False, members=members)
                        members.append(value)
                        pipe.multi()
                        pipe.hset(key, field, json.dumps(members))
                        await pipe.execute()
                        return CappedAppend(appended=True, members=members)
                    except WatchError:
                        logger.debug("capped append contended, retrying", key=key)

    async def rpush(self, key: str, value: str) -> int:
        with _translate_errors("RPUSH"):
            return await self._redis.rpush(key, value)

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        with _translate_errors("LRANGE"):
            return await self._redis.lrange(key, start, end)

    async def exists(self, key: str) -> bool:
        with _translate_errors("EXISTS"):
            return bool(await self._redis.exists(key))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        with _translate_errors("DEL"):
            return await self._redis.delete(*keys)

    async def expire(self, key: str, seconds: int) -> bool:
        with _translate_errors("EXPIRE"):
            return bool(await self._redis.expire(key, seconds))

    async def ttl(self, key: str) -> int:
        with _translate_errors("TTL"):
            return await self._redis.ttl(key)

    async def publish(self, channel: str, message: str) -> int:
        with _translate_errors("PUBLISH"):
            return await self._redis.publish(channel, message)

    async def subscribe(self, channel: str) -> _RedisSubscriber:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        with _translate_errors("SUBSCRIBE"):
            await pubsub.subscribe(channel)
        return _RedisSubscriber(pubsub)

    async def purge_expired(self) -> int:
        # Redis expires keys natively.
        return 0

    async def close(self) -> None:
        await self._redis.aclose()
