from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from pairchat.errors import RoomNotFoundError
from pairchat.messages.models import TEXT_MAX_LENGTH, ChatMessage, PostMessageRequest
from pairchat.messages.store import redact_for
from pairchat.relay.events import EventKind
from pairchat.rooms.models import DESTROY_CLAIM_FIELD, messages_key, meta_key


async def _active_room(registry) -> str:
    room_id = await registry.create_room()
    await registry.add_participant(room_id, "tok-a")
    await registry.add_participant(room_id, "tok-b")
    return room_id


class TestPostMessageRequest:
    def test_accepts_plain_text(self):
        request = PostMessageRequest.model_validate({"sender": "alice", "text": "hello\nthere"})
        assert request.text == "hello\nthere"

    def test_rejects_long_text(self):
        with pytest.raises(ValidationError):
            PostMessageRequest(sender="alice", text="x" * (TEXT_MAX_LENGTH + 1))

    def test_rejects_control_characters(self):
        with pytest.raises(ValidationError, match="control characters"):
            PostMessageRequest(sender="al\x00ice", text="hi")

    def test_requires_both_fields(self):
        with pytest.raises(ValidationError):
            PostMessageRequest.model_validate({"sender": "alice"})


class TestChatMessage:
    def test_view_for_author_keeps_token(self):
        message = ChatMessage.compose("room-1", "alice", "hi", "tok-a")

        assert message.view_for("tok-a")["token"] == "tok-a"
        assert "token" not in message.view_for("tok-b")
        assert message.view_for("tok-b")["roomId"] == "room-1"

    def test_stored_form_round_trips(self):
        message = ChatMessage.compose("room-1", "alice", "hi", "tok-a")

        restored = ChatMessage.model_validate_json(message.model_dump_json(by_alias=True))

        assert restored == message


class TestMessageStore:
    @pytest.mark.asyncio
    async def test_append_then_list_in_order(self, services, registry):
        room_id = await _active_room(registry)

        await services.messages.append(room_id, "alice", "one", "tok-a")
        await services.messages.append(room_id, "bob", "two", "tok-b")

        messages = await services.messages.list_messages(room_id)

        assert [m.text for m in messages] == ["one", "two"]
        assert [m.sender for m in messages] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_log_lease_matches_room(self, services, registry, store, clock):
        room_id = await _active_room(registry)

        clock.advance(200)

        await services.messages.append(room_id, "alice", "hi", "tok-a")

        assert await store.ttl(messages_key(room_id)) == 400

    @pytest.mark.asyncio
    async def test_append_to_missing_room_raises(self, services, store):
        with pytest.raises(RoomNotFoundError):
            await services.messages.append("ghost", "alice", "hi", "tok-a")

        assert not await store.exists(messages_key("ghost"))

    @pytest.mark.asyncio
    async def test_append_publishes_without_token(self, services, registry):
        room_id = await _active_room(registry)

        subscription = await services.relay.subscribe(room_id, [EventKind.CHAT_MESSAGE])

        message = await services.messages.append(room_id, "alice", "hi", "tok-a")

        event = await anext(aiter(subscription))
        assert event.data["id"] == message.id
        assert event.data["text"] == "hi"
        assert "token" not in event.data
        await subscription.cancel()

    @pytest.mark.asyncio
    async def test_log_lapses_with_room(self, services, registry, clock):
        room_id = await _active_room(registry)

        await services.messages.append(room_id, "alice", "hi", "tok-a")
        clock.advance(601)

        assert await services.messages.list_messages(room_id) == []

    @pytest.mark.asyncio
    async def test_unreadable_records_are_skipped(self, services, registry, store):
        room_id = await _active_room(registry)

        await services.messages.append(room_id, "alice", "hi", "tok-a")
        await store.rpush(messages_key(room_id), "not json")

        messages = await services.messages.list_messages(room_id)

        assert [m.text for m in messages] == ["hi"]

    @pytest.mark.asyncio
    async def test_redact_for_reader(self, services, registry):
        room_id = await _active_room(registry)

        await services.messages.append(room_id, "alice", "mine", "tok-a")
        await services.messages.append(room_id, "bob", "theirs", "tok-b")

        views = redact_for(await services.messages.list_messages(room_id), "tok-a")

        assert views[0]["token"] == "tok-a"
        assert "token" not in views[1]

    @pytest.mark.asyncio
    async def test_append_rejected_once_destroy_claimed(self, services, registry, store):
        room_id = await _active_room(registry)
        await store.append_capped(meta_key(room_id), DESTROY_CLAIM_FIELD, "1", 1)
        services.relay.emit = AsyncMock(return_value=0)

        assert (await registry.get_room(room_id)).destroying
        with pytest.raises(RoomNotFoundError):
            await services.messages.append(room_id, "alice", "too late", "tok-a")

        services.relay.emit.assert_not_awaited()
        assert not await store.exists(messages_key(room_id))

    @pytest.mark.asyncio
    async def test_append_during_destroy_is_rejected(self, services, registry, store):
        room_id = await _active_room(registry)
        emitted: list[EventKind] = []
        rejected: list[str] = []
        emit = services.relay.emit

        async def emit_and_post(target, kind, payload):
            emitted.append(kind)
            if kind == EventKind.CHAT_DESTROY:
                try:
                    await services.messages.append(target, "alice", "late", "tok-a")
                except RoomNotFoundError:
                    rejected.append(target)
            return await emit(target, kind, payload)

        services.relay.emit = emit_and_post

        assert await registry.destroy_room(room_id)

        assert rejected == [room_id]
        assert emitted == [EventKind.CHAT_DESTROY]
        assert not await store.exists(messages_key(room_id))
