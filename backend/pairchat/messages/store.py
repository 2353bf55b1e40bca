"""Append-only per-room message log whose lease follows the room's."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from pairchat.errors import RoomNotFoundError
from pairchat.messages.models import ChatMessage
from pairchat.relay.events import EventKind
from pairchat.rooms.models import messages_key

if TYPE_CHECKING:
    from pairchat.relay.service import SignalRelay
    from pairchat.rooms.registry import RoomRegistry
    from shared.store import KeyValueStore

logger = structlog.get_logger()


class MessageStore:
    """Owns ``messages:{room_id}`` lists.

    Messages are appended once and never edited. The whole log is dropped when
    the room is destroyed (registered as a destroy cascade) or when its lease
    runs out together with the room metadata.
    """

    def __init__(self, store: KeyValueStore, registry: RoomRegistry, relay: SignalRelay) -> None:
        self._store = store
        self._registry = registry
        self._relay = relay

    async def append(self, room_id: str, sender: str, text: str, token: str) -> ChatMessage:
        """Store a message, align the log's lease with the room's, and publish it.

        A room whose destroy has been claimed no longer accepts messages.
        """
        room = await self._registry.get_room(room_id)
        if room is None or room.destroying:
            raise RoomNotFoundError(room_id)

        message = ChatMessage.compose(room_id, sender, text, token)
        key = messages_key(room_id)
        await self._store.rpush(key, message.model_dump_json(by_alias=True))

        room = await self._registry.get_room(room_id)
        if room is None or room.destroying or room.ttl <= 0:
            # The room lapsed or started tearing down while the record was pushed.
            await self._store.delete(key)
            raise RoomNotFoundError(room_id)
        await self._store.expire(key, room.ttl)

        await self._relay.emit(room_id, EventKind.CHAT_MESSAGE, message)
        logger.info("message appended", room_id=room_id, message_id=message.id, lease=room.ttl)
        return message

    async def list_messages(self, room_id: str) -> list[ChatMessage]:
        """Point-in-time snapshot of the log in append order."""
        messages: list[ChatMessage] = []
        for raw in await self._store.lrange(messages_key(room_id)):
            try:
                messages.append(ChatMessage.model_validate_json(raw))
            except ValidationError:
                logger.warning("skipping unreadable message record", room_id=room_id)
        return messages

    async def purge(self, room_id: str) -> None:
        await self._store.delete(messages_key(room_id))


def redact_for(messages: list[ChatMessage], requester_token: str) -> list[dict]:
    """Serialize messages for one reader; authoring tokens survive only on the reader's own messages."""
    return [message.view_for(requester_token) for message in messages]
