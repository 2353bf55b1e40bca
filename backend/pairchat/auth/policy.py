"""Route auth policy helpers.

Each helper wraps a route endpoint and sets the ``AUTH_POLICY_ATTR`` marker so
that startup validation can verify every route declares its policy.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field
from starlette.routing import Route

from pairchat.auth.tokens import read_credential
from pairchat.errors import RoomNotFoundError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import BaseRoute

    from pairchat.services import RoomServices

    Endpoint = Callable[[Request], Awaitable[Response]]

AUTH_POLICY_ATTR = "__auth_policy__"


class RoomQuery(BaseModel):
    """Query string shared by every room-scoped route."""

    room_id: str = Field(alias="roomId", min_length=1, max_length=128)


def participant_only(endpoint: Endpoint, *, allow_missing_room: bool = False) -> Endpoint:
    """Require a credential bound to the ``roomId`` in the query string.

    A missing ``roomId`` is treated like a missing credential; an oversized
    one fails validation. The validated participant is placed on
    ``request.state.participant``.
    UnauthorizedError and RoomNotFoundError propagate to the app's exception
    handlers. With ``allow_missing_room`` a room that no longer exists yields
    ``request.state.participant = None`` instead of an error.
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        services: RoomServices = request.app.state.services
        room_id = request.query_params.get("roomId")
        if room_id:
            room_id = RoomQuery.model_validate({"roomId": room_id}).room_id
        try:
            participant = await services.guard.validate(room_id, read_credential(request))
        except RoomNotFoundError:
            if not allow_missing_room:
                raise
            participant = None
        request.state.room_id = room_id
        request.state.participant = participant
        return await endpoint(request)

    setattr(wrapper, AUTH_POLICY_ATTR, "participant_only")
    return wrapper


def public_route(endpoint: Endpoint) -> Endpoint:
    """Mark endpoint as explicitly public (no credential required).

    Returns a thin wrapper so the marker lives on the wrapper, not on the
    original callable.
    """

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        return await endpoint(request)

    setattr(wrapper, AUTH_POLICY_ATTR, "public")
    return wrapper


def validate_route_auth_policy(routes: list[BaseRoute]) -> None:
    """Verify every HTTP route carries an auth policy marker.

    WebSocket routes authenticate inside their handler and are exempt.
    Raises RuntimeError listing all unclassified routes if any are found.
    """
    unclassified = [
        f"{route.path} ({route.name})"
        for route in routes
        if isinstance(route, Route) and not hasattr(route.endpoint, AUTH_POLICY_ATTR)
    ]
    if unclassified:
        msg = f"Unclassified routes missing auth policy: {', '.join(unclassified)}"
        raise RuntimeError(msg)
