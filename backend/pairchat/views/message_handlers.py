"""Message endpoints: post to and read a room's log."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from pairchat.messages.models import PostMessageRequest
from pairchat.messages.store import redact_for

if TYPE_CHECKING:
    from starlette.requests import Request

    from pairchat.services import RoomServices


async def parse_json_body(request: Request) -> dict | None:
    """Parse JSON body from request. Return None on failure."""
    try:
        body = await request.json()
    except (ValueError, json.JSONDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    return body


async def post_message(request: Request) -> JSONResponse:
    """POST /messages - append a message and publish it to the room."""
    services: RoomServices = request.app.state.services
    participant = request.state.participant

    body = await parse_json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=422)
    payload = PostMessageRequest.model_validate(body)

    message = await services.messages.append(participant.room_id, payload.sender, payload.text, participant.token)
    return JSONResponse({"message": message.view_for(participant.token)})


async def list_messages(request: Request) -> JSONResponse:
    """GET /messages - the room's log, redacted for the requester."""
    services: RoomServices = request.app.state.services
    participant = request.state.participant
    messages = await services.messages.list_messages(participant.room_id)
    return JSONResponse({"messages": redact_for(messages, participant.token)})
