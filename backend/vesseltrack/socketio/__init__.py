"""Socket.IO module for live vessel updates."""

from vesseltrack.socketio.server import (
    broadcaster,
    get_broadcaster,
    init_socketio_server,
    sio,
)

__all__ = [
    "sio",
    "broadcaster",
    "get_broadcaster",
    "init_socketio_server",
]
