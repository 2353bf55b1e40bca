"""Periodic sweep of stale waiting-pool entries."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from shared.store import StoreUnavailableError

if TYPE_CHECKING:
    from pairchat.rooms.registry import RoomRegistry
    from shared.store import KeyValueStore

logger = structlog.get_logger()

DEFAULT_SWEEP_INTERVAL_SECONDS = 60


class TTLJanitor:
    """Remove waiting-pool entries whose room metadata has expired.

    Active rooms are left alone; their records lapse on their own lease.
    Safe to run concurrently with pairing since removal is a single set
    operation per entry. Call start() on app startup and stop() on shutdown
    for the periodic loop, or sweep() directly from a scheduled trigger.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        store: KeyValueStore,
        *,
        interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._registry = registry
        self._store = store
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    async def sweep(self) -> int:
        """Run one pass. Return the number of pool entries removed."""
        await self._store.purge_expired()

        room_ids = await self._registry.waiting_room_ids()
        logger.info("janitor sweep started", waiting=len(room_ids))

        removed = 0
        for room_id in room_ids:
            if await self._registry.room_exists(room_id):
                continue
            if await self._registry.discard_waiting(room_id):
                removed += 1
                logger.info("removed stale waiting room", room_id=room_id)

        logger.info("janitor sweep finished", removed=removed)
        return removed

    def start(self) -> None:
        """Start the periodic sweep task. A non-positive interval disables it."""
        if self._interval_seconds <= 0:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _loop(self) -> None:  # pragma: no cover
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                await self.sweep()
            except StoreUnavailableError:
                logger.exception("janitor sweep failed")
