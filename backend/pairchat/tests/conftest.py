import asyncio
import inspect

import fakeredis
import pytest

from pairchat.services import build_services
from shared.store import MemoryStore, RedisStore


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class YieldingStore:
    """Store wrapper that hands control to the event loop around every call.

    Concurrent tasks then interleave between store operations the way they do
    against a networked store.
    """

    def __init__(self, inner) -> None:
        self._inner = inner

    def __getattr__(self, name):
        attr = getattr(self._inner, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        async def call(*args, **kwargs):
            await asyncio.sleep(0)
            result = await attr(*args, **kwargs)
            await asyncio.sleep(0)
            return result

        return call


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def services(store):
    return build_services(store, room_ttl_seconds=600, janitor_interval_seconds=0)


@pytest.fixture
def registry(services):
    return services.registry


@pytest.fixture(params=["memory", "redis"])
def interleaved_services(request, clock):
    """Services over a store that yields between operations, for each backend."""
    if request.param == "memory":
        inner = MemoryStore(clock=clock)
    else:
        inner = RedisStore(fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True))
    return build_services(YieldingStore(inner), room_ttl_seconds=600, janitor_interval_seconds=0)
