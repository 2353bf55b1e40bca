"""Key-value store protocol shared by the room service components.

The protocol mirrors the subset of Redis semantics the service relies on:
sets for the waiting pool, hashes for room metadata, lists for message logs,
per-key expiry, and channel-scoped publish/subscribe.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

# Redis TTL sentinels.
TTL_MISSING = -2
TTL_PERSISTENT = -1


class StoreUnavailableError(Exception):
    """The underlying store could not be reached or rejected the command."""


@dataclass(frozen=True, slots=True)
class CappedAppend:
    """Outcome of an atomic capacity-bounded append."""

    appended: bool
    members: list[str]


class Subscriber(Protocol):
    """Live subscription to one or more channels."""

    def listen(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


class KeyValueStore(Protocol):
    """Protocol for the shared store. All coordination goes through it."""

    async def spop(self, key: str) -> str | None: ...

    async def sadd(self, key: str, *members: str) -> int: ...

    async def srem(self, key: str, *members: str) -> int: ...

    async def smembers(self, key: str) -> set[str]: ...

    async def hset(self, key: str, mapping: dict[str, str], *, ttl: int | None = None) -> None: ...

    async def hgetall(self, key: str) -> dict[str, str]: ...

    async def hdel(self, key: str, field: str) -> int: ...

    async def rpush(self, key: str, value: str) -> int: ...

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[str]: ...

    async def exists(self, key: str) -> bool: ...

    async def delete(self, *keys: str) -> int: ...

    async def expire(self, key: str, seconds: int) -> bool: ...

    async def ttl(self, key: str) -> int: ...

    async def append_capped(self, key: str, field: str, value: str, capacity: int) -> CappedAppend | None:
        """Append value to the JSON list in a hash field if it holds fewer than capacity items.

        Returns None when the key does not exist. Must be atomic with respect
        to every other caller of the store.
        """
        ...

    async def publish(self, channel: str, message: str) -> int: ...

    async def subscribe(self, channel: str) -> Subscriber: ...

    async def purge_expired(self) -> int: ...

    async def close(self) -> None: ...
