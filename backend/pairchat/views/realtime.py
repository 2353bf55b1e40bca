"""Realtime surface: call-signaling endpoint and the room event WebSocket."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.responses import JSONResponse
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from pairchat.auth.tokens import read_credential
from pairchat.errors import RelayUnavailableError, RoomNotFoundError, UnauthorizedError
from pairchat.relay.events import EventKind, SignalPayload
from pairchat.relay.frames import PingFrame, SignalFrame, SignalFrameData, parse_client_frame
from pairchat.views.message_handlers import parse_json_body
from shared.store import StoreUnavailableError

if TYPE_CHECKING:
    from starlette.requests import Request

    from pairchat.relay.service import RoomSubscription
    from pairchat.rooms.models import Participant
    from pairchat.server.settings import PairChatSettings
    from pairchat.services import RoomServices

logger = structlog.get_logger()

CLOSE_UNAUTHORIZED = 4001
CLOSE_ROOM_GONE = 4004
CLOSE_UNAVAILABLE = 4503


async def emit_signal(request: Request) -> JSONResponse:
    """POST /signal - relay one call-negotiation payload to the room."""
    services: RoomServices = request.app.state.services
    participant: Participant = request.state.participant

    body = await parse_json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=422)
    frame = SignalFrameData.model_validate(body)

    delivered = await services.relay.emit(
        participant.room_id,
        EventKind.WEBRTC_SIGNAL,
        SignalPayload(room_id=participant.room_id, sender=participant.peer_id, signal=frame.signal),
    )
    return JSONResponse({"delivered": delivered})


async def realtime_websocket(websocket: WebSocket) -> None:
    """Stream a room's events to one participant and relay their signals.

    The socket closes when the room is destroyed, when its lease runs out, or
    when the client leaves.
    """
    services: RoomServices = websocket.app.state.services
    settings: PairChatSettings = websocket.app.state.settings
    room_id = websocket.query_params.get("roomId")

    try:
        participant = await services.guard.validate(room_id, read_credential(websocket))
        lease = await services.registry.remaining_lease(participant.room_id)
        subscription = await services.relay.subscribe(participant.room_id)
    except UnauthorizedError:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="unauthorized")
        return
    except RoomNotFoundError:
        await websocket.close(code=CLOSE_ROOM_GONE, reason="room_not_found")
        return
    except (RelayUnavailableError, StoreUnavailableError):
        logger.exception("realtime subscription failed", room_id=room_id)
        await websocket.close(code=CLOSE_UNAVAILABLE, reason="unavailable")
        return

    await websocket.accept()
    log = logger.bind(room_id=participant.room_id, peer=participant.peer_id)
    log.info("realtime connected", lease=lease)

    forwarder = asyncio.create_task(_forward_events(websocket, subscription))
    receiver = asyncio.create_task(_receive_frames(websocket, services, participant, settings.max_ws_message_size))
    try:
        done, _pending = await asyncio.wait({forwarder, receiver}, timeout=lease, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (forwarder, receiver):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RelayUnavailableError):
                await task
        await subscription.cancel()

    if forwarder in done and forwarder.exception() is not None:
        reason, code = "relay_unavailable", CLOSE_UNAVAILABLE
    elif forwarder in done:
        reason, code = "room_destroyed", 1000
    elif not done:
        reason, code = "room_expired", CLOSE_ROOM_GONE
    else:
        reason, code = "client_left", 1000
    log.info("realtime disconnected", reason=reason)

    if websocket.client_state == WebSocketState.CONNECTED and websocket.application_state == WebSocketState.CONNECTED:
        with contextlib.suppress(RuntimeError):
            await websocket.close(code=code, reason=reason)


async def _forward_events(websocket: WebSocket, subscription: RoomSubscription) -> None:
    """Deliver room events until the room is destroyed."""
    async for event in subscription:
        await websocket.send_json(event.model_dump(mode="json"))
        if event.event is EventKind.CHAT_DESTROY:
            return


async def _receive_frames(
    websocket: WebSocket,
    services: RoomServices,
    participant: Participant,
    max_size: int,
) -> None:
    """Handle client frames until the client disconnects."""
    while True:
        raw = await websocket.receive_text()
        try:
            frame = parse_client_frame(raw, max_size)
        except (ValueError, ValidationError) as e:
            await websocket.send_json({"event": "error", "message": str(e)})
            continue

        if isinstance(frame, PingFrame):
            await websocket.send_json({"event": "pong"})
        elif isinstance(frame, SignalFrame):
            try:
                await services.relay.emit(
                    participant.room_id,
                    EventKind.WEBRTC_SIGNAL,
                    SignalPayload(room_id=participant.room_id, sender=participant.peer_id, signal=frame.data.signal),
                )
            except RelayUnavailableError:
                await websocket.send_json({"event": "error", "message": "relay_unavailable"})
