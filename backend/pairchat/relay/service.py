"""Per-room publish/subscribe fan-out over the shared store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from pairchat.errors import RelayUnavailableError
from pairchat.relay.events import EventKind, RelayEvent, build_event, decode_event, encode_event
from pairchat.rooms.models import channel_name
from shared.store import StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from typing import Any

    from pydantic import BaseModel

    from shared.store import KeyValueStore, Subscriber

logger = structlog.get_logger()


class RoomSubscription:
    """Live feed of one room's events, filtered to the requested kinds.

    Only events published after the subscription started are delivered.
    ``cancel()`` stops delivery; iteration then ends.
    """

    def __init__(self, room_id: str, subscriber: Subscriber, kinds: frozenset[EventKind]) -> None:
        self.room_id = room_id
        self._subscriber = subscriber
        self._kinds = kinds
        self._cancelled = False

    async def __aiter__(self) -> AsyncIterator[RelayEvent]:
        try:
            async for raw in self._subscriber.listen():
                try:
                    event = decode_event(raw)
                except (ValueError, ValidationError) as e:
                    logger.warning("dropping malformed relay event", room_id=self.room_id, error=str(e))
                    continue
                if event.event in self._kinds:
                    yield event
        except StoreUnavailableError as e:
            raise RelayUnavailableError(f"Subscription to room {self.room_id} lost") from e

    async def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        await self._subscriber.close()

    async def __aenter__(self) -> RoomSubscription:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.cancel()


class SignalRelay:
    """Publish and subscribe to room-scoped events.

    Delivery is fire-and-forget and at most once per emission. Failures to
    publish surface as RelayUnavailableError; nothing is retried here.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def emit(self, room_id: str, kind: EventKind, payload: BaseModel | dict[str, Any]) -> int:
        """Publish one event to the room. Return the number of live subscribers reached."""
        event = build_event(kind, payload)
        try:
            receivers = await self._store.publish(channel_name(room_id), encode_event(event))
        except StoreUnavailableError as e:
            logger.warning("relay publish failed", room_id=room_id, kind=kind)
            raise RelayUnavailableError(f"Could not publish {kind} to room {room_id}") from e
        logger.debug("relay event published", room_id=room_id, kind=kind, receivers=receivers)
        return receivers

    async def subscribe(self, room_id: str, kinds: Iterable[EventKind] | None = None) -> RoomSubscription:
        selected = frozenset(kinds) if kinds is not None else frozenset(EventKind)
        try:
            subscriber = await self._store.subscribe(channel_name(room_id))
        except StoreUnavailableError as e:
            raise RelayUnavailableError(f"Could not subscribe to room {room_id}") from e
        return RoomSubscription(room_id, subscriber, selected)
