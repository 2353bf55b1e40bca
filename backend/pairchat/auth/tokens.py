"""Participant credentials: minting, transport, and extraction."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection
    from starlette.responses import Response

AUTH_COOKIE_NAME = "x-auth-token"
_BEARER_PREFIX = "bearer "


def mint_token() -> str:
    """Return a fresh opaque credential."""
    return secrets.token_urlsafe(24)


def read_credential(conn: HTTPConnection) -> str | None:
    """Return the credential from the auth cookie, else from an ``Authorization: Bearer`` header."""
    token = conn.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token
    authorization = conn.headers.get("authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        return authorization[len(_BEARER_PREFIX) :].strip() or None
    return None


def set_credential_cookie(response: Response, token: str, *, secure: bool) -> None:
    """Attach the credential as a session-scoped, HTTP-only, strict same-site cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=secure,
        path="/",
    )
