"""Live vessel broadcaster.

Uses two freshness windows over the same current-state data:

- initial snapshot: every vessel reported within the last 24 hours, sent
  once to a client when it connects (active vessels first)
- incremental update: only vessels reported within the last minute,
  broadcast after each collection; nothing is sent when none qualify

A vessel whose report time cannot be parsed, or lies in the future, is
never considered fresh.
"""

import inspect
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais.models import parse_timestamp, utc_now
from vesseltrack.ais.stores import CurrentVesselStore
from vesseltrack.socketio.serializers import serialize_vessel

logger = logging.getLogger(__name__)

NAMESPACE = "/vessel-tracking"

DEFAULT_INITIAL_WINDOW = timedelta(hours=24)
DEFAULT_UPDATE_WINDOW = timedelta(minutes=1)
DEFAULT_INITIAL_VESSEL_LIMIT = 10000


def _window_label(window: timedelta) -> str:
    seconds = int(window.total_seconds())
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds % 60 == 0:
        return f"{seconds // 60}min"
    return f"{seconds}s"


def vessel_report_time(vessel: dict[str, Any]) -> Optional[datetime]:
    """Report time of a serialized vessel as naive UTC (None if unknown).

    Provider ``data_date``/``data_time`` pairs take priority over
    ``timestamp`` when both are present.
    """
    data_date = vessel.get("data_date")
    data_time = vessel.get("data_time")
    if data_date and data_time:
        parsed = parse_timestamp(f"{data_date} {data_time}")
        if parsed is not None:
            return parsed
    return parse_timestamp(vessel.get("timestamp"))


def vessel_age(vessel: dict[str, Any], now: Optional[datetime] = None) -> Optional[timedelta]:
    """Age of a vessel report; None when unparseable or in the future."""
    reported = vessel_report_time(vessel)
    if reported is None:
        return None
    age = (now or utc_now()) - reported
    if age < timedelta(0):
        return None
    return age


def is_fresh(vessel: dict[str, Any], window: timedelta, now: Optional[datetime] = None) -> bool:
    age = vessel_age(vessel, now)
    return age is not None and age <= window


class LiveBroadcaster:
    """Pushes vessel snapshots and deltas to Socket.IO subscribers."""

    def __init__(
        self,
        sio: Any,
        session_factory: Callable[[], AsyncSession],
        namespace: str = NAMESPACE,
        initial_window: timedelta = DEFAULT_INITIAL_WINDOW,
        update_window: timedelta = DEFAULT_UPDATE_WINDOW,
        initial_vessel_limit: int = DEFAULT_INITIAL_VESSEL_LIMIT,
    ):
        """Initialize broadcaster.

        Args:
            sio: Socket.IO async server
            session_factory: Callable returning a new ``AsyncSession``
            namespace: Socket.IO namespace for all events
            initial_window: Freshness window for the connect snapshot
            update_window: Freshness window for incremental updates
            initial_vessel_limit: Max current vessels loaded for a snapshot
        """
        self.sio = sio
        self.session_factory = session_factory
        self.namespace = namespace
        self.initial_window = initial_window
        self.update_window = update_window
        self.initial_vessel_limit = initial_vessel_limit
        self.subscribers: dict[str, datetime] = {}

        logger.info(
            f"Live broadcaster ready: initial data {_window_label(initial_window)}, "
            f"updates {_window_label(update_window)}"
        )

    @property
    def initial_label(self) -> str:
        return _window_label(self.initial_window)

    @property
    def update_label(self) -> str:
        return _window_label(self.update_window)

    # Connection lifecycle

    async def handle_connect(self, sid: str) -> None:
        self.subscribers[sid] = utc_now()
        logger.info(f"Client connected: {sid} (total: {len(self.subscribers)})")
        await self.send_initial_data(sid)

    async def handle_disconnect(self, sid: str) -> None:
        self.subscribers.pop(sid, None)
        logger.info(f"Client disconnected: {sid} (total: {len(self.subscribers)})")

    async def _load_current_vessels(self) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            vessels = await CurrentVesselStore(session).find(
                sort=[("last_updated", "desc")],
                limit=self.initial_vessel_limit,
            )
            return [serialize_vessel(v) for v in vessels]

    def build_initial_payload(
        self,
        vessels: Sequence[dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Snapshot payload: 24h window, active vessels first then newest."""
        now = now or utc_now()

        if not vessels:
            return {
                "type": "initial_data",
                "timestamp": now.isoformat(),
                "count": 0,
                "total_available": 0,
                "data_window": self.initial_label,
                "update_window": self.update_label,
                "vessels": [],
                "message": "No vessel data available",
            }

        # (vessel, age) for every vessel inside the initial window
        windowed = []
        for vessel in vessels:
            age = vessel_age(vessel, now)
            if age is not None and age <= self.initial_window:
                windowed.append((vessel, age))

        windowed.sort(key=lambda item: (item[1] >= self.update_window, item[1]))
        active_count = sum(1 for _, age in windowed if age < self.update_window)
        static_count = len(windowed) - active_count

        return {
            "type": "initial_data",
            "timestamp": now.isoformat(),
            "count": len(windowed),
            "total_available": len(vessels),
            "filtered": len(vessels) - len(windowed),
            "active_count": active_count,
            "static_count": static_count,
            "data_window": self.initial_label,
            "update_window": self.update_label,
            "cutoff_time": (now - self.initial_window).isoformat(),
            "vessels": [vessel for vessel, _ in windowed],
            "message": (
                f"Initial data: {len(windowed)} vessels "
                f"({active_count} active, {static_count} static)"
            ),
        }

    async def send_initial_data(self, sid: str) -> None:
        """Emit ``initial_data`` to one client, or ``initial_data_error``."""
        try:
            vessels = await self._load_current_vessels()
            payload = self.build_initial_payload(vessels)
            await self.sio.emit("initial_data", payload, to=sid, namespace=self.namespace)
            logger.info(
                f"Sent initial data to {sid}: {payload['count']} vessels "
                f"from {payload['total_available']} available"
            )
        except Exception as e:
            logger.error(f"Failed to send initial data to {sid}: {e}")
            await self.sio.emit(
                "initial_data_error",
                {
                    "type": "initial_data_error",
                    "timestamp": utc_now().isoformat(),
                    "error": str(e),
                    "message": "Failed to load vessel data. Please refresh and try again.",
                },
                to=sid,
                namespace=self.namespace,
            )

    # Broadcasts

    async def broadcast_vessel_update(self, vessels: Sequence[dict[str, Any]]) -> int:
        """Broadcast vessels reported within the update window.

        Returns:
            Number of vessels sent (0 when nothing was emitted)
        """
        if not vessels:
            logger.debug("No vessels to process for updates")
            return 0

        now = utc_now()
        recent = []
        for vessel in vessels:
            age = vessel_age(vessel, now)
            if age is not None and age <= self.update_window:
                recent.append((vessel, age))

        if not recent:
            logger.debug(
                f"No recent updates (< {self.update_label}) from {len(vessels)} vessels"
            )
            return 0

        recent.sort(key=lambda item: item[1])

        payload = {
            "type": "vessel_update",
            "timestamp": now.isoformat(),
            "count": len(recent),
            "total_processed": len(vessels),
            "update_window": self.update_label,
            "cutoff_time": (now - self.update_window).isoformat(),
            "vessels": [vessel for vessel, _ in recent],
        }
        await self.sio.emit("vessel_update", payload, namespace=self.namespace)

        logger.info(
            f"Broadcasted recent updates to {len(self.subscribers)} clients: "
            f"{len(recent)}/{len(vessels)} vessels (< {self.update_label})"
        )
        return len(recent)

    async def broadcast_vessel_position(self, mmsi: int, position: dict[str, Any]) -> bool:
        """Broadcast one vessel position if it is inside the update window."""
        if not mmsi or not position:
            return False

        if not is_fresh(position, self.update_window):
            logger.debug(f"Skipping old position for vessel {mmsi} (> {self.update_label})")
            return False

        payload = {
            "type": "position_update",
            "mmsi": mmsi,
            "position": position,
            "timestamp": utc_now().isoformat(),
            "update_window": self.update_label,
        }
        await self.sio.emit(f"vessel_{mmsi}", payload, namespace=self.namespace)
        await self.sio.emit("position_update", payload, namespace=self.namespace)
        return True

    # Inbound subscription messages

    async def _call_room(self, method: str, sid: str, room: str) -> None:
        result = getattr(self.sio, method)(sid, room, namespace=self.namespace)
        if inspect.isawaitable(result):
            await result

    async def subscribe_vessel(self, sid: str, data: dict[str, Any]) -> dict[str, Any]:
        mmsi = data.get("mmsi")
        await self._call_room("enter_room", sid, f"vessel_{mmsi}")
        logger.info(f"Client {sid} subscribed to vessel {mmsi}")
        return {
            "event": "subscription_confirmed",
            "data": {
                "mmsi": mmsi,
                "status": "subscribed",
                "update_window": self.update_label,
            },
        }

    async def unsubscribe_vessel(self, sid: str, data: dict[str, Any]) -> dict[str, Any]:
        mmsi = data.get("mmsi")
        await self._call_room("leave_room", sid, f"vessel_{mmsi}")
        logger.info(f"Client {sid} unsubscribed from vessel {mmsi}")
        return {
            "event": "unsubscription_confirmed",
            "data": {"mmsi": mmsi, "status": "unsubscribed"},
        }

    async def subscribe_area(self, sid: str, data: dict[str, Any]) -> dict[str, Any]:
        """Acknowledge an area subscription; filtering stays client-side."""
        bounds = data.get("bounds")
        logger.info(f"Client {sid} subscribed to area: {bounds}")
        return {
            "event": "area_subscription_confirmed",
            "data": {
                "bounds": bounds,
                "status": "subscribed",
                "note": "Area filtering is handled by the client.",
                "data_windows": {
                    "initial": self.initial_label,
                    "updates": self.update_label,
                },
            },
        }

    def get_filter_strategy(self) -> dict[str, Any]:
        return {
            "event": "filter_strategy",
            "data": {
                "strategy": "comprehensive_initial_incremental_updates",
                "initial_data": {
                    "window": self.initial_label,
                    "description": "All vessels in the initial window for a complete overview",
                },
                "updates": {
                    "window": self.update_label,
                    "description": "Only vessels reported within the update window",
                },
                "cutoff_times": self._cutoff_times(utc_now()),
            },
        }

    def _cutoff_times(self, now: datetime) -> dict[str, str]:
        return {
            "initial": (now - self.initial_window).isoformat(),
            "updates": (now - self.update_window).isoformat(),
        }

    def get_connection_stats(self) -> dict[str, Any]:
        now = utc_now()
        cutoffs = self._cutoff_times(now)
        return {
            "connected_clients": len(self.subscribers),
            "timestamp": now.isoformat(),
            "data_strategy": {
                "type": "dual_time_windows",
                "initial_data": {
                    "window": self.initial_label,
                    "cutoff_time": cutoffs["initial"],
                },
                "updates": {
                    "window": self.update_label,
                    "cutoff_time": cutoffs["updates"],
                },
            },
        }
