"""Socket.IO server configuration and event handlers.

Provides:
- AsyncServer with Redis manager so the web process and Celery workers
  can emit to the same clients
- The live broadcaster bound to the ``/vessel-tracking`` namespace
- Connection and subscription event handlers
"""

import logging
from datetime import timedelta
from typing import Any, Optional

import socketio

from vesseltrack.config import get_settings
from vesseltrack.database.connection import AsyncSessionLocal
from vesseltrack.socketio.broadcaster import NAMESPACE, LiveBroadcaster

logger = logging.getLogger(__name__)
settings = get_settings()

# Redis URL for Socket.IO pub/sub (use DB 3 to avoid conflicts)
_redis_url = settings.redis_url.replace("/0", "/3")

_mgr = socketio.AsyncRedisManager(_redis_url)
logger.info(f"Socket.IO Redis manager created: {_redis_url}")

sio = socketio.AsyncServer(
    client_manager=_mgr,
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)

broadcaster = LiveBroadcaster(
    sio,
    AsyncSessionLocal,
    namespace=NAMESPACE,
    initial_window=timedelta(hours=settings.live_initial_window_hours),
    update_window=timedelta(seconds=settings.live_update_window_seconds),
    initial_vessel_limit=settings.live_initial_vessel_limit,
)


def get_broadcaster() -> LiveBroadcaster:
    """Get the process-wide live broadcaster."""
    return broadcaster


async def init_socketio_server() -> socketio.AsyncServer:
    """Initialize Socket.IO server (called during app lifespan)."""
    logger.info(
        f"Socket.IO server initialized on namespace {NAMESPACE} "
        f"(initial {broadcaster.initial_label}, updates {broadcaster.update_label})"
    )
    return sio


@sio.on("connect", namespace=NAMESPACE)
async def connect(sid: str, environ: dict, auth: Optional[Any] = None) -> None:
    """Handle client connection: push the initial snapshot."""
    await broadcaster.handle_connect(sid)


@sio.on("disconnect", namespace=NAMESPACE)
async def disconnect(sid: str, *args: Any) -> None:
    """Handle client disconnection."""
    await broadcaster.handle_disconnect(sid)


@sio.on("subscribe_vessel", namespace=NAMESPACE)
async def subscribe_vessel(sid: str, data: dict[str, Any]) -> dict[str, Any]:
    return await broadcaster.subscribe_vessel(sid, data or {})


@sio.on("unsubscribe_vessel", namespace=NAMESPACE)
async def unsubscribe_vessel(sid: str, data: dict[str, Any]) -> dict[str, Any]:
    return await broadcaster.unsubscribe_vessel(sid, data or {})


@sio.on("subscribe_area", namespace=NAMESPACE)
async def subscribe_area(sid: str, data: dict[str, Any]) -> dict[str, Any]:
    return await broadcaster.subscribe_area(sid, data or {})


@sio.on("get_filter_strategy", namespace=NAMESPACE)
async def get_filter_strategy(sid: str, *args: Any) -> dict[str, Any]:
    return broadcaster.get_filter_strategy()
