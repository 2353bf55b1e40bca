"""Event kinds carried on a room's channel and their payload schemas."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from pairchat.messages.models import ChatMessage


class EventKind(StrEnum):
    CHAT_MESSAGE = "chat.message"
    CHAT_DESTROY = "chat.destroy"
    WEBRTC_SIGNAL = "webrtc.signal"


class DestroyPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_destroyed: Literal[True] = Field(default=True, alias="isDestroyed")


class SignalPayload(BaseModel):
    """One step of call negotiation (offer, answer or candidate), relayed opaquely."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    room_id: str = Field(alias="roomId")
    sender: str = Field(alias="from")
    signal: str | dict[str, Any]


_PAYLOAD_MODELS: dict[EventKind, type[BaseModel]] = {
    EventKind.CHAT_MESSAGE: ChatMessage,
    EventKind.CHAT_DESTROY: DestroyPayload,
    EventKind.WEBRTC_SIGNAL: SignalPayload,
}


class RelayEvent(BaseModel):
    """Envelope published on the channel and forwarded to subscribers."""

    model_config = ConfigDict(frozen=True)

    event: EventKind
    data: dict[str, Any]


def build_event(kind: EventKind, payload: BaseModel | dict[str, Any]) -> RelayEvent:
    """Validate a payload against its kind's schema and wrap it in an envelope.

    Chat messages never carry the authoring token on the channel.
    """
    model = _PAYLOAD_MODELS[kind]
    validated = payload if isinstance(payload, model) else model.model_validate(payload)
    exclude = {"token"} if kind is EventKind.CHAT_MESSAGE else None
    return RelayEvent(event=kind, data=validated.model_dump(by_alias=True, exclude=exclude))


def encode_event(event: RelayEvent) -> str:
    return event.model_dump_json()


def decode_event(raw: str) -> RelayEvent:
    """Parse a channel message back into a validated envelope."""
    envelope = RelayEvent.model_validate(json.loads(raw))
    return build_event(envelope.event, envelope.data)
