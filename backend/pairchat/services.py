"""Process-wide wiring of the room service components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pairchat.auth.guard import RoomAuthGuard
from pairchat.messages.store import MessageStore
from pairchat.relay.service import SignalRelay
from pairchat.rooms.janitor import DEFAULT_SWEEP_INTERVAL_SECONDS, TTLJanitor
from pairchat.rooms.models import DEFAULT_ROOM_TTL_SECONDS
from pairchat.rooms.pairing import DEFAULT_MAX_PAIR_ATTEMPTS, PairingService
from pairchat.rooms.registry import RoomRegistry

if TYPE_CHECKING:
    from shared.store import KeyValueStore


@dataclass
class RoomServices:
    """Components sharing one store handle. Built once per process."""

    store: KeyValueStore
    relay: SignalRelay
    registry: RoomRegistry
    pairing: PairingService
    messages: MessageStore
    guard: RoomAuthGuard
    janitor: TTLJanitor

    async def aclose(self) -> None:
        await self.janitor.stop()
        await self.store.close()


def build_services(
    store: KeyValueStore,
    *,
    room_ttl_seconds: int = DEFAULT_ROOM_TTL_SECONDS,
    max_pair_attempts: int = DEFAULT_MAX_PAIR_ATTEMPTS,
    janitor_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
) -> RoomServices:
    relay = SignalRelay(store)
    registry = RoomRegistry(store, relay, room_ttl_seconds=room_ttl_seconds)
    messages = MessageStore(store, registry, relay)
    registry.on_destroy(messages.purge)
    return RoomServices(
        store=store,
        relay=relay,
        registry=registry,
        pairing=PairingService(registry, max_attempts=max_pair_attempts),
        messages=messages,
        guard=RoomAuthGuard(registry),
        janitor=TTLJanitor(registry, store, interval_seconds=janitor_interval_seconds),
    )
