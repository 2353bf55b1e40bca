"""Room lifecycle endpoints: create, random pairing, lease query, destroy."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse, Response

from pairchat.auth.tokens import set_credential_cookie

if TYPE_CHECKING:
    from starlette.requests import Request

    from pairchat.server.settings import PairChatSettings
    from pairchat.services import RoomServices

logger = structlog.get_logger()


async def create_room(request: Request) -> JSONResponse:
    """POST /room/create - open an empty room; no credential is issued."""
    services: RoomServices = request.app.state.services
    room_id = await services.pairing.create_room()
    return JSONResponse({"roomId": room_id})


async def random_room(request: Request) -> JSONResponse:
    """POST /room/random - pair the caller and set the credential cookie."""
    services: RoomServices = request.app.state.services
    settings: PairChatSettings = request.app.state.settings
    pairing = await services.pairing.pair()
    response = JSONResponse({"roomId": pairing.room_id})
    set_credential_cookie(response, pairing.token, secure=settings.production)
    return response


async def room_ttl(request: Request) -> JSONResponse:
    """GET /room/ttl - seconds left on the room's lease, 0 once it is gone."""
    services: RoomServices = request.app.state.services
    if request.state.participant is None:
        return JSONResponse({"ttl": 0})
    ttl = await services.registry.remaining_lease(request.state.room_id)
    return JSONResponse({"ttl": ttl})


async def destroy_room(request: Request) -> Response:
    """DELETE /room - announce destruction to the room, then purge it."""
    services: RoomServices = request.app.state.services
    participant = request.state.participant
    destroyed = await services.registry.destroy_room(participant.room_id)
    logger.info("destroy requested", room_id=participant.room_id, peer=participant.peer_id, destroyed=destroyed)
    return Response(status_code=200)
