import pytest

from pairchat.errors import RoomNotFoundError, UnauthorizedError


class TestRoomAuthGuard:
    @pytest.mark.asyncio
    async def test_resolves_slots_in_join_order(self, services, registry):
        room_id = await registry.create_room()
        await registry.add_participant(room_id, "tok-a")
        await registry.add_participant(room_id, "tok-b")

        first = await services.guard.validate(room_id, "tok-a")
        second = await services.guard.validate(room_id, "tok-b")

        assert (first.slot, first.peer_id) == (0, "peer-1")
        assert (second.slot, second.peer_id) == (1, "peer-2")

    @pytest.mark.asyncio
    async def test_foreign_token_rejected(self, services, registry):
        room_id = await registry.create_room()
        await registry.add_participant(room_id, "tok-a")
        other = await registry.create_room()
        await registry.add_participant(other, "tok-b")

        with pytest.raises(UnauthorizedError):
            await services.guard.validate(room_id, "tok-b")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("room_id", "token"), [(None, "tok"), ("room", None), ("", ""), ("room", "")])
    async def test_missing_values_unauthorized(self, services, room_id, token):
        with pytest.raises(UnauthorizedError):
            await services.guard.validate(room_id, token)

    @pytest.mark.asyncio
    async def test_expired_room_not_found(self, services, registry, clock):
        room_id = await registry.create_room()
        await registry.add_participant(room_id, "tok-a")
        clock.advance(600)

        with pytest.raises(RoomNotFoundError):
            await services.guard.validate(room_id, "tok-a")
