"""Operational endpoints: health and the scheduled waiting-pool sweep."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse

from shared.store import StoreUnavailableError

if TYPE_CHECKING:
    from starlette.requests import Request

    from pairchat.services import RoomServices

logger = structlog.get_logger()


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def cron_cleanup(request: Request) -> JSONResponse:
    """GET /cron/cleanup - sweep waiting rooms whose metadata has lapsed."""
    services: RoomServices = request.app.state.services
    try:
        removed = await services.janitor.sweep()
    except StoreUnavailableError:
        logger.exception("scheduled cleanup failed")
        return JSONResponse({"success": False, "error": "Cleanup failed"}, status_code=500)
    return JSONResponse({"success": True, "removed": removed})
