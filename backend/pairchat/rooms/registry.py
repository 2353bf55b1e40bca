"""Room metadata and waiting-pool ownership.

RoomRegistry is the only component that writes ``meta:{room_id}`` records and
the ``waiting_rooms`` set. Every write is a single store primitive; participant
admission goes through the store's atomic capped append so two concurrent
joiners can never both take the last slot.
"""

from __future__ import annotations

import asyncio
import json
import secrets
import time
from typing import TYPE_CHECKING

import structlog

from pairchat.errors import RelayUnavailableError, RoomFullError, RoomNotFoundError
from pairchat.relay.events import DestroyPayload, EventKind
from pairchat.rooms.models import (
    CONNECTED_FIELD,
    CREATED_AT_FIELD,
    DEFAULT_ROOM_TTL_SECONDS,
    DESTROY_CLAIM_FIELD,
    ROOM_CAPACITY,
    WAITING_ROOMS_KEY,
    Room,
    RoomState,
    meta_key,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pairchat.relay.service import SignalRelay
    from shared.store import KeyValueStore

logger = structlog.get_logger()


class RoomRegistry:
    """Create, inspect, join and destroy rooms in the shared store."""

    def __init__(
        self,
        store: KeyValueStore,
        relay: SignalRelay,
        *,
        room_ttl_seconds: int = DEFAULT_ROOM_TTL_SECONDS,
    ) -> None:
        self._store = store
        self._relay = relay
        self._room_ttl_seconds = room_ttl_seconds
        self._cascades: list[Callable[[str], Awaitable[object]]] = []

    @property
    def room_ttl_seconds(self) -> int:
        return self._room_ttl_seconds

    def on_destroy(self, cascade: Callable[[str], Awaitable[object]]) -> None:
        """Register a purge step that runs for every explicitly destroyed room."""
        self._cascades.append(cascade)

    async def create_room(self) -> str:
        """Create an empty room with a fresh lease and offer it for pairing."""
        room_id = secrets.token_urlsafe(16)
        await self._store.hset(
            meta_key(room_id),
            {CONNECTED_FIELD: json.dumps([]), CREATED_AT_FIELD: str(int(time.time() * 1000))},
            ttl=self._room_ttl_seconds,
        )
        await self._store.sadd(WAITING_ROOMS_KEY, room_id)
        logger.info("room created", room_id=room_id, ttl=self._room_ttl_seconds)
        return room_id

    async def get_room(self, room_id: str) -> Room | None:
        meta = await self._store.hgetall(meta_key(room_id))
        if not meta:
            return None
        ttl = await self._store.ttl(meta_key(room_id))
        return Room.from_meta(room_id, meta, ttl)

    async def room_exists(self, room_id: str) -> bool:
        return await self._store.exists(meta_key(room_id))

    async def remaining_lease(self, room_id: str) -> int:
        """Seconds left on the room's lease; 0 when the room is gone."""
        return max(await self._store.ttl(meta_key(room_id)), 0)

    async def add_participant(self, room_id: str, token: str) -> RoomState:
        """Bind a token to the next free slot.

        Returns WAITING while the room holds one participant and ACTIVE once it
        holds two. Raises RoomFullError when no slot is left and
        RoomNotFoundError when the room has no live metadata.
        """
        result = await self._store.append_capped(meta_key(room_id), CONNECTED_FIELD, token, ROOM_CAPACITY)
        if result is None:
            await self._store.srem(WAITING_ROOMS_KEY, room_id)
            raise RoomNotFoundError(room_id)
        if not result.appended:
            await self._store.srem(WAITING_ROOMS_KEY, room_id)
            raise RoomFullError(room_id)

        log = logger.bind(room_id=room_id, participants=len(result.members))
        if len(result.members) >= ROOM_CAPACITY:
            await self._store.srem(WAITING_ROOMS_KEY, room_id)
            log.info("participant admitted", state=RoomState.ACTIVE)
            return RoomState.ACTIVE

        await self._store.sadd(WAITING_ROOMS_KEY, room_id)
        # A second joiner may have filled the room between the append and the sadd.
        room = await self.get_room(room_id)
        if room is None or room.is_full:
            await self._store.srem(WAITING_ROOMS_KEY, room_id)
        log.info("participant admitted", state=RoomState.WAITING)
        return RoomState.WAITING

    async def destroy_room(self, room_id: str) -> bool:
        """Emit ``chat.destroy`` once, then purge the room and its dependents.

        The first caller claims the destroy; concurrent callers return False
        without emitting a second event. If the event cannot be published the
        claim is released and RelayUnavailableError propagates with nothing
        purged.
        """
        claim = await self._store.append_capped(meta_key(room_id), DESTROY_CLAIM_FIELD, "1", 1)
        if claim is None:
            raise RoomNotFoundError(room_id)
        if not claim.appended:
            logger.info("destroy already in progress", room_id=room_id)
            return False

        try:
            await self._relay.emit(room_id, EventKind.CHAT_DESTROY, DestroyPayload())
        except RelayUnavailableError:
            await self._store.hdel(meta_key(room_id), DESTROY_CLAIM_FIELD)
            raise

        await asyncio.gather(
            self._store.srem(WAITING_ROOMS_KEY, room_id),
            self._store.delete(meta_key(room_id)),
            *(cascade(room_id) for cascade in self._cascades),
        )
        logger.info("room destroyed", room_id=room_id)
        return True

    async def pop_waiting(self) -> str | None:
        """Atomically take one arbitrary room out of the waiting pool."""
        return await self._store.spop(WAITING_ROOMS_KEY)

    async def waiting_room_ids(self) -> set[str]:
        return await self._store.smembers(WAITING_ROOMS_KEY)

    async def discard_waiting(self, room_id: str) -> bool:
        """Remove one room from the pool. True only for the caller that removed it."""
        return bool(await self._store.srem(WAITING_ROOMS_KEY, room_id))
