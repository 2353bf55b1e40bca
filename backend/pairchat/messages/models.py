"""Chat message models: inbound request validation and the stored record."""

from __future__ import annotations

import secrets
import time

from pydantic import BaseModel, ConfigDict, Field, field_validator

SENDER_MAX_LENGTH = 100
TEXT_MAX_LENGTH = 1000

_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def _reject_control_characters(value: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError("must not contain control characters")
    return value


class PostMessageRequest(BaseModel):
    """Body of POST /messages."""

    sender: str = Field(max_length=SENDER_MAX_LENGTH)
    text: str = Field(max_length=TEXT_MAX_LENGTH)

    @field_validator("sender", "text")
    @classmethod
    def _validate_printable(cls, v: str) -> str:
        return _reject_control_characters(v)


class ChatMessage(BaseModel):
    """A message appended to a room's log.

    ``token`` is the author's credential. It is kept in storage so readers can
    be shown their own messages, and is stripped from every other view.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    sender: str
    text: str
    timestamp: int
    room_id: str = Field(alias="roomId")
    token: str | None = None

    @classmethod
    def compose(cls, room_id: str, sender: str, text: str, token: str) -> ChatMessage:
        return cls(
            id=secrets.token_urlsafe(12),
            sender=sender,
            text=text,
            timestamp=int(time.time() * 1000),
            room_id=room_id,
            token=token,
        )

    def public_view(self) -> dict:
        """Serialize without the authoring token."""
        return self.model_dump(by_alias=True, exclude={"token"})

    def view_for(self, requester_token: str) -> dict:
        """Serialize for one reader, keeping the token only when the reader wrote the message."""
        if self.token is not None and secrets.compare_digest(self.token, requester_token):
            return self.model_dump(by_alias=True)
        return self.public_view()
