"""In-process key-value store with explicit expiry deadlines.

Expiry is modelled as a stored deadline per key. Reads evaluate it lazily and
``purge_expired()`` drops every lapsed key in one pass, so the janitor can keep
memory bounded without relying on native key expiry.
"""

from __future__ import annotations

import asyncio
import json
import math
import time
from typing import TYPE_CHECKING

import structlog

from shared.store.base import TTL_MISSING, TTL_PERSISTENT, CappedAppend

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from typing import Any

logger = structlog.get_logger()

_CLOSED = object()


class _MemorySubscriber:
    """Queue-backed subscription to a single channel."""

    def __init__(self, store: MemoryStore, channel: str) -> None:
        self._store = store
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    def deliver(self, message: str) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    async def listen(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield str(item)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self._channel, self)
        self._queue.put_nowait(_CLOSED)


class MemoryStore:
    """Single-process implementation of the KeyValueStore protocol.

    Every mutation runs without an ``await`` between its read and its write,
    so each primitive is atomic with respect to other coroutines.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, set[str] | dict[str, str] | list[str]] = {}
        self._deadlines: dict[str, float] = {}
        self._channels: dict[str, set[_MemorySubscriber]] = {}
        self._admit_lock = asyncio.Lock()

    def _is_expired(self, key: str) -> bool:
        deadline = self._deadlines.get(key)
        return deadline is not None and self._clock() >= deadline

    def _drop(self, key: str) -> bool:
        self._deadlines.pop(key, None)
        return self._data.pop(key, None) is not None

    def _live(self, key: str) -> set[str] | dict[str, str] | list[str] | None:
        if self._is_expired(key):
            self._drop(key)
            return None
        return self._data.get(key)

    def _typed(self, key: str, kind: type) -> Any:  # noqa: ANN401
        value = self._live(key)
        if value is None:
            return None
        if not isinstance(value, kind):
            msg = f"Key {key!r} holds {type(value).__name__}, not {kind.__name__}"
            raise TypeError(msg)
        return value

    async def purge_expired(self) -> int:
        """Drop every key whose deadline has passed. Return the number dropped."""
        now = self._clock()
        lapsed = [key for key, deadline in self._deadlines.items() if now >= deadline]
        for key in lapsed:
            self._drop(key)
        if lapsed:
            logger.debug("purged expired keys", count=len(lapsed))
        return len(lapsed)

    async def spop(self, key: str) -> str | None:
        members = self._typed(key, set)
        if not members:
            return None
        member = members.pop()
        if not members:
            self._drop(key)
        return member

    async def sadd(self, key: str, *members: str) -> int:
        current = self._typed(key, set)
        if current is None:
            current = set()
            self._data[key] = current
        before = len(current)
        current.update(members)
        return len(current) - before

    async def srem(self, key: str, *members: str) -> int:
        current = self._typed(key, set)
        if current is None:
            return 0
        before = len(current)
        current.difference_update(members)
        if not current:
            self._drop(key)
        return before - len(current)

    async def smembers(self, key: str) -> set[str]:
        return set(self._typed(key, set) or ())

    async def hset(self, key: str, mapping: dict[str, str], *, ttl: int | None = None) -> None:
        current = self._typed(key, dict)
        if current is None:
            current = {}
            self._data[key] = current
        current.update(mapping)
        if ttl is not None:
            self._deadlines[key] = self._clock() + ttl

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._typed(key, dict) or {})

    async def hdel(self, key: str, field: str) -> int:
        current = self._typed(key, dict)
        if current is None or field not in current:
            return 0
        del current[field]
        if not current:
            self._drop(key)
        return 1

    async def append_capped(self, key: str, field: str, value: str, capacity: int) -> CappedAppend | None:
        async with self._admit_lock:
            current = self._typed(key, dict)
            if current is None:
                return None
            members: list[str] = json.loads(current.get(field) or "[]")
            if len(members) >= capacity:
                return CappedAppend(appended=False, members=members)
            members.append(value)
            current[field] = json.dumps(members)
            return CappedAppend(appended=True, members=members)

    async def rpush(self, key: str, value: str) -> int:
        current = self._typed(key, list)
        if current is None:
            current = []
            self._data[key] = current
        current.append(value)
        return len(current)

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        current = self._typed(key, list) or []
        size = len(current)
        if start < 0:
            start += size
        if end < 0:
            end += size
        return list(current[max(start, 0) : end + 1])

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                self._drop(key)
                removed += 1
        return removed

    async def expire(self, key: str, seconds: int) -> bool:
        if self._live(key) is None:
            return False
        if seconds <= 0:
            self._drop(key)
        else:
            self._deadlines[key] = self._clock() + seconds
        return True

    async def ttl(self, key: str) -> int:
        if self._live(key) is None:
            return TTL_MISSING
        deadline = self._deadlines.get(key)
        if deadline is None:
            return TTL_PERSISTENT
        return math.ceil(deadline - self._clock())

    async def publish(self, channel: str, message: str) -> int:
        subscribers = list(self._channels.get(channel, ()))
        for subscriber in subscribers:
            subscriber.deliver(message)
        return len(subscribers)

    async def subscribe(self, channel: str) -> _MemorySubscriber:
        subscriber = _MemorySubscriber(self, channel)
        self._channels.setdefault(channel, set()).add(subscriber)
        return subscriber

    def _unsubscribe(self, channel: str, subscriber: _MemorySubscriber) -> None:
        subscribers = self._channels.get(channel)
        if subscribers is None:
            return
        subscribers.discard(subscriber)
        if not subscribers:
            del self._channels[channel]

    async def close(self) -> None:
        for subscribers in list(self._channels.values()):
            for subscriber in list(subscribers):
                await subscriber.close()
        self._data.clear()
        self._deadlines.clear()
