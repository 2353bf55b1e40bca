"""Random matchmaking: complete a waiting room, or open a new one."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from pairchat.auth.tokens import mint_token
from pairchat.errors import PairingUnavailableError, RoomFullError, RoomNotFoundError

if TYPE_CHECKING:
    from pairchat.rooms.models import RoomState
    from pairchat.rooms.registry import RoomRegistry

logger = structlog.get_logger()

DEFAULT_MAX_PAIR_ATTEMPTS = 5

# Upper bound on pool entries inspected per attempt.
MAX_CANDIDATES_PER_ATTEMPT = 32


@dataclass(frozen=True, slots=True)
class Pairing:
    room_id: str
    token: str
    state: RoomState


class PairingService:
    """Assign a caller to a room and mint the credential bound to it.

    A room with one participant waiting is always preferred. Otherwise the
    next room popped from the pool is joined as it stands, which may be an
    empty room opened through the explicit create endpoint. A fresh room is
    created only when the pool is exhausted. Losing an admission race
    restarts the attempt, up to ``max_attempts``.
    """

    def __init__(self, registry: RoomRegistry, *, max_attempts: int = DEFAULT_MAX_PAIR_ATTEMPTS) -> None:
        self._registry = registry
        self._max_attempts = max_attempts

    async def pair(self) -> Pairing:
        for attempt in range(1, self._max_attempts + 1):
            room_id = await self._pick_room()
            token = mint_token()
            try:
                state = await self._registry.add_participant(room_id, token)
            except (RoomFullError, RoomNotFoundError) as e:
                logger.info("pairing attempt lost race", room_id=room_id, attempt=attempt, reason=str(e))
                continue
            logger.info("participant paired", room_id=room_id, state=state, attempt=attempt)
            return Pairing(room_id=room_id, token=token, state=state)

        logger.warning("pairing gave up", attempts=self._max_attempts)
        raise PairingUnavailableError(f"Could not pair after {self._max_attempts} attempts")

    async def create_room(self) -> str:
        """Open an empty room without admitting anyone to it."""
        return await self._registry.create_room()

    async def _pick_room(self) -> str:
        room_id = await self._claim_half_full_room()
        if room_id is not None:
            return room_id

        for _ in range(MAX_CANDIDATES_PER_ATTEMPT):
            room_id = await self._registry.pop_waiting()
            if room_id is None:
                break
            room = await self._registry.get_room(room_id)
            if room is None or room.is_full or room.destroying:
                logger.debug("discarding stale waiting room", room_id=room_id)
                continue
            return room_id

        return await self._registry.create_room()

    async def _claim_half_full_room(self) -> str | None:
        """Take a room with one participant out of the pool, leaving empty rooms in place.

        Candidates come from a snapshot of the pool. Removing a candidate is the
        claim, so two callers never leave with the same room.
        """
        snapshot = list(await self._registry.waiting_room_ids())
        candidates = random.sample(snapshot, k=min(len(snapshot), MAX_CANDIDATES_PER_ATTEMPT))
        for room_id in candidates:
            room = await self._registry.get_room(room_id)
            if room is None or room.is_full or room.destroying:
                await self._registry.discard_waiting(room_id)
                logger.debug("discarding stale waiting room", room_id=room_id)
                continue
            if room.participant_count == 1 and await self._registry.discard_waiting(room_id):
                return room_id
        return None
