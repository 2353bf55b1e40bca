"""Typed client-to-server frames for the realtime WebSocket."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

DEFAULT_MAX_FRAME_SIZE = 16384


class SignalFrameData(BaseModel):
    signal: str | dict[str, Any]


class SignalFrame(BaseModel):
    event: Literal["webrtc.signal"]
    data: SignalFrameData


class PingFrame(BaseModel):
    event: Literal["ping"]


ClientFrame = Annotated[SignalFrame | PingFrame, Field(discriminator="event")]

_client_frame_adapter: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)


def parse_client_frame(raw: str, max_size: int = DEFAULT_MAX_FRAME_SIZE) -> SignalFrame | PingFrame:
    """Parse and validate a raw JSON string into a typed frame."""
    byte_len = len(raw.encode("utf-8"))
    if byte_len > max_size:
        raise ValueError(f"Frame too large ({byte_len} bytes, max {max_size})")
    data = json.loads(raw)
    return _client_frame_adapter.validate_python(data)
