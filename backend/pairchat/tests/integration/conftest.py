"""Shared helpers for room service integration tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pairchat.auth.tokens import AUTH_COOKIE_NAME
from pairchat.server.app import create_app
from pairchat.server.settings import PairChatSettings
from shared.store import MemoryStore

if TYPE_CHECKING:
    from starlette.applications import Starlette
    from starlette.testclient import TestClient

    from shared.store import KeyValueStore


def make_app(store: KeyValueStore | None = None, **settings_kwargs) -> Starlette:
    settings_kwargs.setdefault("janitor_interval_seconds", 0)
    return create_app(settings=PairChatSettings(**settings_kwargs), store=store or MemoryStore())


def pair(client: TestClient) -> tuple[str, dict[str, str]]:
    """Pair through the API and return the room id plus bearer headers for that participant.

    The cookie jar is cleared so several participants can share one client.
    """
    response = client.post("/api/room/random")
    assert response.status_code == 200
    token = response.cookies[AUTH_COOKIE_NAME]
    client.cookies.clear()
    return response.json()["roomId"], {"Authorization": f"Bearer {token}"}
