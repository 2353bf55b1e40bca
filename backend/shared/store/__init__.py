"""Shared key-value store with expiry and publish/subscribe."""

from urllib.parse import urlparse

from redis.asyncio import Redis

from shared.store.base import TTL_MISSING, TTL_PERSISTENT, CappedAppend, KeyValueStore, StoreUnavailableError, Subscriber
from shared.store.memory_store import MemoryStore
from shared.store.redis_store import RedisStore

_REDIS_SCHEMES = {"redis", "rediss", "unix"}


def open_store(url: str) -> KeyValueStore:
    """Build a store from a URL: ``memory://`` or a Redis connection URL."""
    scheme = urlparse(url).scheme
    if scheme == "memory":
        return MemoryStore()
    if scheme in _REDIS_SCHEMES:
        return RedisStore(Redis.from_url(url, decode_responses=True))
    msg = f"Unsupported store URL scheme {scheme!r}. Use 'memory://' or a redis:// URL."
    raise ValueError(msg)


__all__ = [
    "TTL_MISSING",
    "TTL_PERSISTENT",
    "CappedAppend",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "StoreUnavailableError",
    "Subscriber",
    "open_store",
]
