"""Async HTTP client for the room service."""

from __future__ import annotations

import secrets
import string
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from pairchat.auth.tokens import AUTH_COOKIE_NAME
from pairchat.errors import PairChatError

if TYPE_CHECKING:
    from types import TracebackType

logger = structlog.get_logger()

ANIMALS = (
    "warthog",
    "pig",
    "hippo",
    "hyena",
    "fox",
    "hawk",
    "lion",
    "maggot",
    "mosquito",
    "firefly",
    "butterfly",
    "elephant",
    "leopard",
    "horse",
)

_SUFFIX_ALPHABET = string.ascii_letters + string.digits + "_-"
_SUFFIX_LENGTH = 5


def generate_username() -> str:
    """Return an anonymous display name like ``anonymous-fox-x1_Zq``."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"anonymous-{secrets.choice(ANIMALS)}-{suffix}"


class PairChatClientError(PairChatError):
    """The service rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PairChatClient:
    """Talks to one room service deployment on behalf of one participant.

    The credential issued by ``random_room`` is kept and sent as a bearer
    token on later calls. ``username`` defaults to a generated anonymous name.
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.username = username or generate_username()
        self.token: str | None = None
        self.room_id: str | None = None
        self._http = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/api",
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> PairChatClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create_room(self) -> str:
        """Open an empty room. No credential is issued for it."""
        data = await self._request("POST", "/room/create")
        return data["roomId"]

    async def random_room(self) -> str:
        """Join a waiting room or open a new one, and keep the issued credential."""
        response = await self._send("POST", "/room/random")
        token = response.cookies.get(AUTH_COOKIE_NAME)
        if not token:
            raise PairChatClientError("Pairing response carried no credential", response.status_code)
        self.token = token
        self.room_id = response.json()["roomId"]
        logger.debug("paired", room_id=self.room_id, username=self.username)
        return self.room_id

    async def ttl(self, room_id: str | None = None) -> int:
        data = await self._request("GET", "/room/ttl", room_id=room_id)
        return data["ttl"]

    async def destroy(self, room_id: str | None = None) -> None:
        await self._send("DELETE", "/room", room_id=room_id)

    async def post_message(self, text: str, room_id: str | None = None) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/messages",
            room_id=room_id,
            json={"sender": self.username, "text": text},
        )
        return data["message"]

    async def list_messages(self, room_id: str | None = None) -> list[dict[str, Any]]:
        data = await self._request("GET", "/messages", room_id=room_id)
        return data["messages"]

    async def emit_signal(self, signal: str | dict[str, Any], room_id: str | None = None) -> int:
        data = await self._request("POST", "/signal", room_id=room_id, json={"signal": signal})
        return data["delivered"]

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:  # noqa: ANN401
        response = await self._send(method, path, **kwargs)
        return response.json()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        room_id: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        params = {}
        target_room = room_id or self.room_id
        if target_room is not None:
            params["roomId"] = target_room
        headers = {}
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._http.request(method, path, params=params, headers=headers, json=json)
        except httpx.RequestError as e:
            raise PairChatClientError(f"Failed to reach room service: {e}") from e

        if response.status_code != HTTPStatus.OK:
            try:
                detail = response.json().get("error", response.text)
            except ValueError:
                detail = response.text
            raise PairChatClientError(f"{method} {path} returned {response.status_code}: {detail}", response.status_code)
        return response
