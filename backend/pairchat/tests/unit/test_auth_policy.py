"""Tests for route auth policy helpers and route validation."""

from __future__ import annotations

import pytest
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from pairchat.auth.policy import AUTH_POLICY_ATTR, participant_only, public_route, validate_route_auth_policy
from pairchat.auth.tokens import AUTH_COOKIE_NAME, read_credential


async def _handler(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


async def _ws_handler(websocket) -> None:
    await websocket.close()


def _make_request(headers: list[tuple[bytes, bytes]]) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/", "query_string": b"", "headers": headers})


class TestMarkers:
    def test_public_route_marker(self):
        wrapped = public_route(_handler)

        assert getattr(wrapped, AUTH_POLICY_ATTR) == "public"
        assert not hasattr(_handler, AUTH_POLICY_ATTR)

    def test_participant_only_marker(self):
        assert getattr(participant_only(_handler), AUTH_POLICY_ATTR) == "participant_only"


class TestValidateRouteAuthPolicy:
    def test_accepts_marked_routes(self):
        validate_route_auth_policy(
            [
                Route("/a", public_route(_handler)),
                Route("/b", participant_only(_handler)),
                WebSocketRoute("/ws", _ws_handler),
            ],
        )

    def test_rejects_unmarked_route(self):
        with pytest.raises(RuntimeError, match="/naked"):
            validate_route_auth_policy([Route("/naked", _handler, name="naked")])


class TestReadCredential:
    def test_prefers_cookie(self):
        request = _make_request(
            [(b"cookie", f"{AUTH_COOKIE_NAME}=from-cookie".encode()), (b"authorization", b"Bearer from-header")],
        )
        assert read_credential(request) == "from-cookie"

    def test_bearer_header(self):
        assert read_credential(_make_request([(b"authorization", b"bearer abc")])) == "abc"

    def test_missing(self):
        assert read_credential(_make_request([(b"authorization", b"Basic abc")])) is None
