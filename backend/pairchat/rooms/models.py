"""Room records and the store keys that hold them."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum

ROOM_CAPACITY = 2
DEFAULT_ROOM_TTL_SECONDS = 600

WAITING_ROOMS_KEY = "waiting_rooms"

# meta:{room_id} hash fields
CONNECTED_FIELD = "connected"  # JSON array of participant tokens, in join order
CREATED_AT_FIELD = "createdAt"  # epoch milliseconds
DESTROY_CLAIM_FIELD = "destroyClaim"  # set once by the first destroy caller


def meta_key(room_id: str) -> str:
    return f"meta:{room_id}"


def messages_key(room_id: str) -> str:
    return f"messages:{room_id}"


def channel_name(room_id: str) -> str:
    return room_id


class RoomState(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    DESTROYED = "destroyed"


@dataclass(frozen=True, slots=True)
class Room:
    """Snapshot of a room's metadata record.

    ``connected`` keeps participant tokens in join order; a token's index is
    the participant's slot.

    ``destroying`` is set once a destroy call has claimed the room and until
    the record is purged.
    """

    room_id: str
    created_at: int
    ttl: int
    connected: list[str] = field(default_factory=list)
    destroying: bool = False

    @classmethod
    def from_meta(cls, room_id: str, meta: dict[str, str], ttl: int) -> Room:
        return cls(
            room_id=room_id,
            created_at=int(meta.get(CREATED_AT_FIELD) or 0),
            ttl=max(ttl, 0),
            connected=json.loads(meta.get(CONNECTED_FIELD) or "[]"),
            destroying=DESTROY_CLAIM_FIELD in meta,
        )

    @property
    def participant_count(self) -> int:
        return len(self.connected)

    @property
    def is_full(self) -> bool:
        return self.participant_count >= ROOM_CAPACITY

    @property
    def state(self) -> RoomState:
        return RoomState.ACTIVE if self.is_full else RoomState.WAITING


@dataclass(frozen=True, slots=True)
class Participant:
    """A validated (room, slot) binding for one credential."""

    room_id: str
    token: str
    slot: int

    @property
    def peer_id(self) -> str:
        """Public label for the participant; never exposes the token."""
        return f"peer-{self.slot + 1}"
