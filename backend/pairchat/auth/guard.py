"""Room-scoped credential validation."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog

from pairchat.errors import RoomNotFoundError, UnauthorizedError
from pairchat.rooms.models import Participant

if TYPE_CHECKING:
    from pairchat.rooms.registry import RoomRegistry

logger = structlog.get_logger()


class RoomAuthGuard:
    """Resolve a (room, token) pair to a participant. Never mutates anything."""

    def __init__(self, registry: RoomRegistry) -> None:
        self._registry = registry

    async def validate(self, room_id: str | None, token: str | None) -> Participant:
        """Return the participant bound to ``token`` in ``room_id``.

        Raises UnauthorizedError when either value is missing or the token is
        not one of the room's participants, and RoomNotFoundError when the room
        has expired or was destroyed.
        """
        if not room_id or not token:
            raise UnauthorizedError("Missing room credential")

        room = await self._registry.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        for slot, candidate in enumerate(room.connected):
            if secrets.compare_digest(candidate, token):
                return Participant(room_id=room_id, token=token, slot=slot)

        logger.info("credential rejected", room_id=room_id)
        raise UnauthorizedError("Credential is not bound to this room")
