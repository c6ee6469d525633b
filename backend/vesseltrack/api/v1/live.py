"""Live channel API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from vesseltrack.socketio.broadcaster import LiveBroadcaster
from vesseltrack.socketio.server import get_broadcaster

router = APIRouter(prefix="/live", tags=["Live Updates"])


@router.get("/stats")
async def get_live_stats(
    broadcaster: LiveBroadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Connected clients and the freshness windows applied to pushes."""
    return {
        "success": True,
        "data": broadcaster.get_connection_stats(),
        "filter_strategy": broadcaster.get_filter_strategy()["data"],
    }
