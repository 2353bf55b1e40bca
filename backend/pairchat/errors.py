"""Domain errors raised by the room service."""


class PairChatError(Exception):
    """Base class for room service failures."""


class RoomNotFoundError(PairChatError):
    """The referenced room has no live metadata (never existed, expired, or destroyed)."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} does not exist")
        self.room_id = room_id


class RoomFullError(PairChatError):
    """The room already holds two participants."""

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} is full")
        self.room_id = room_id


class UnauthorizedError(PairChatError):
    """The credential is absent or not bound to the requested room."""


class RelayUnavailableError(PairChatError):
    """The publish/subscribe transport did not accept the event."""


class PairingUnavailableError(PairChatError):
    """Pairing kept losing admission races; the caller may try again later."""
