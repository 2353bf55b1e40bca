"""Run one sweep of the waiting pool and exit.

Usage: uv run python bin/clean-up.py

Reads the same PAIRCHAT_* environment as the server. Intended for an
external scheduler (cron, systemd timer) when the in-process janitor loop
is disabled. Exits non-zero if the store cannot be reached.
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from pairchat.server.settings import PairChatSettings
from pairchat.services import build_services
from shared.logging import setup_logging
from shared.store import StoreUnavailableError, open_store


async def main() -> int:
    settings = PairChatSettings()
    setup_logging()

    services = build_services(open_store(settings.store_url), room_ttl_seconds=settings.room_ttl_seconds)
    try:
        removed = await services.janitor.sweep()
    except StoreUnavailableError as e:
        print(f"Error: {e}")
        return 1
    finally:
        await services.aclose()

    print(f"Removed {removed} stale waiting room(s)")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
