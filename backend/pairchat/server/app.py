from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route, WebSocketRoute

from pairchat.auth.policy import participant_only, public_route, validate_route_auth_policy
from pairchat.errors import (
    PairingUnavailableError,
    RelayUnavailableError,
    RoomFullError,
    RoomNotFoundError,
    UnauthorizedError,
)
from pairchat.server.middleware import SecurityHeadersMiddleware, SlashNormalizationMiddleware
from pairchat.server.settings import PairChatSettings
from pairchat.services import build_services
from pairchat.views.maintenance_handlers import cron_cleanup, health
from pairchat.views.message_handlers import list_messages, post_message
from pairchat.views.realtime import emit_signal, realtime_websocket
from pairchat.views.room_handlers import create_room, destroy_room, random_room, room_ttl
from shared.logging import setup_logging
from shared.store import StoreUnavailableError, open_store

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from shared.store import KeyValueStore

ERROR_STATUS: dict[type[Exception], HTTPStatus] = {
    RoomNotFoundError: HTTPStatus.NOT_FOUND,
    RoomFullError: HTTPStatus.CONFLICT,
    UnauthorizedError: HTTPStatus.UNAUTHORIZED,
    RelayUnavailableError: HTTPStatus.SERVICE_UNAVAILABLE,
    PairingUnavailableError: HTTPStatus.SERVICE_UNAVAILABLE,
    StoreUnavailableError: HTTPStatus.SERVICE_UNAVAILABLE,
}


def _make_error_handler(status: HTTPStatus) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Build a handler rendering a domain error as ``{"error": ...}`` with a fixed status."""

    async def _error_handler(request: Request, exc: Exception) -> Response:
        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.warning("request failed", path=request.url.path, error=str(exc), status=int(status))
        return JSONResponse({"error": str(exc) or status.phrase}, status_code=status)

    return _error_handler


async def _validation_error_handler(_request: Request, exc: Exception) -> Response:
    return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.UNPROCESSABLE_ENTITY)


def create_app(
    settings: PairChatSettings | None = None,
    store: KeyValueStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = PairChatSettings()
    if store is None:
        store = open_store(settings.store_url)

    services = build_services(
        store,
        room_ttl_seconds=settings.room_ttl_seconds,
        max_pair_attempts=settings.max_pair_attempts,
        janitor_interval_seconds=settings.janitor_interval_seconds,
    )

    api_routes = [
        # Public routes
        Route("/room/create", public_route(create_room), methods=["POST"], name="create_room"),
        Route("/room/random", public_route(random_room), methods=["POST"], name="random_room"),
        Route("/cron/cleanup", public_route(cron_cleanup), methods=["GET"], name="cron_cleanup"),
        # Participant routes (credential bound to ?roomId=)
        Route("/room/ttl", participant_only(room_ttl, allow_missing_room=True), methods=["GET"], name="room_ttl"),
        Route("/room", participant_only(destroy_room), methods=["DELETE"], name="destroy_room"),
        Route("/messages", participant_only(post_message), methods=["POST"], name="post_message"),
        Route("/messages", participant_only(list_messages), methods=["GET"], name="list_messages"),
        Route("/signal", participant_only(emit_signal), methods=["POST"], name="emit_signal"),
        WebSocketRoute("/realtime", realtime_websocket, name="realtime"),
    ]
    routes = [
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Mount("/api", routes=api_routes, name="api"),
    ]

    validate_route_auth_policy(api_routes)
    validate_route_auth_policy(routes)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        services.janitor.start()
        yield
        await services.aclose()

    exception_handlers: dict = {exc: _make_error_handler(status) for exc, status in ERROR_STATUS.items()}
    exception_handlers[ValidationError] = _validation_error_handler

    app = Starlette(routes=routes, lifespan=lifespan, exception_handlers=exception_handlers)
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )
    app.add_middleware(SecurityHeadersMiddleware)  # type: ignore[arg-type]

    app.state.settings = settings
    app.state.services = services

    logger.info("room service ready", store=type(store).__name__, room_ttl=settings.room_ttl_seconds)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory pairchat.server.app:get_app."""
    s = PairChatSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s)
