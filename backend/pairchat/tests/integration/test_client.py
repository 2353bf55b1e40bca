"""Integration tests for the async HTTP client against the in-process app."""

import re

import httpx
import pytest

from pairchat.client import ANIMALS, PairChatClient, PairChatClientError, generate_username
from pairchat.tests.integration.conftest import make_app


@pytest.fixture
def app():
    return make_app()


def _client(app, **kwargs) -> PairChatClient:
    return PairChatClient("http://testserver", transport=httpx.ASGITransport(app=app), **kwargs)


class TestGenerateUsername:
    def test_format(self):
        name = generate_username()

        match = re.fullmatch(r"anonymous-([a-z]+)-([A-Za-z0-9_-]{5})", name)
        assert match is not None
        assert match.group(1) in ANIMALS


class TestPairChatClient:
    @pytest.mark.asyncio
    async def test_default_username_is_anonymous(self, app):
        async with _client(app) as client:
            assert client.username.startswith("anonymous-")

    @pytest.mark.asyncio
    async def test_two_clients_chat(self, app):
        async with _client(app, username="alice") as alice, _client(app, username="bob") as bob:
            room_id = await alice.random_room()
            assert await bob.random_room() == room_id

            await alice.post_message("hi")
            await bob.post_message("hello")

            messages = await alice.list_messages()

        assert [(m["sender"], m["text"]) for m in messages] == [("alice", "hi"), ("bob", "hello")]
        assert "token" in messages[0]
        assert "token" not in messages[1]

    @pytest.mark.asyncio
    async def test_ttl_and_destroy(self, app):
        async with _client(app) as client:
            room_id = await client.random_room()
            assert 0 < await client.ttl() <= 600

            await client.destroy()

            assert await client.ttl(room_id) == 0
            with pytest.raises(PairChatClientError) as exc_info:
                await client.list_messages()

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_emit_signal(self, app):
        async with _client(app) as client:
            await client.random_room()
            assert await client.emit_signal({"type": "offer"}) == 0

    @pytest.mark.asyncio
    async def test_create_room(self, app):
        async with _client(app) as client:
            room_id = await client.create_room()

        assert room_id
        assert client.token is None

    @pytest.mark.asyncio
    async def test_calls_without_credential_fail(self, app):
        async with _client(app) as client:
            room_id = await client.create_room()
            with pytest.raises(PairChatClientError) as exc_info:
                await client.list_messages(room_id)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unreachable_service(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = PairChatClient("http://testserver", transport=httpx.MockTransport(refuse))
        with pytest.raises(PairChatClientError, match="Failed to reach"):
            await client.create_room()
        await client.aclose()
