"""Tests for the live broadcaster freshness windows and events."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from factories import make_report
from vesseltrack.ais.models import utc_now
from vesseltrack.ais.reconciler import VesselReconciler
from vesseltrack.socketio.broadcaster import (
    NAMESPACE,
    LiveBroadcaster,
    is_fresh,
    vessel_age,
)


def fake_sio() -> MagicMock:
    sio = MagicMock()
    sio.emit = AsyncMock()
    sio.enter_room = AsyncMock()
    sio.leave_room = AsyncMock()
    return sio


def vessel_at(mmsi: int, age: timedelta) -> dict:
    return {"mmsi": mmsi, "timestamp": (utc_now() - age).isoformat()}


class TestFreshness:
    def test_age_of_recent_report(self):
        now = utc_now()
        vessel = {"timestamp": (now - timedelta(seconds=30)).isoformat()}
        assert vessel_age(vessel, now) == timedelta(seconds=30)

    def test_future_and_unparseable_are_never_fresh(self):
        future = {"timestamp": (utc_now() + timedelta(minutes=5)).isoformat()}
        garbage = {"timestamp": "sometime"}

        assert vessel_age(future) is None
        assert not is_fresh(future, timedelta(days=1))
        assert not is_fresh(garbage, timedelta(days=1))
        assert not is_fresh({}, timedelta(days=1))

    def test_provider_date_time_takes_priority(self):
        now = datetime(2025, 1, 14, 12, 0, 0)
        vessel = {
            "timestamp": "2025-01-11T12:00:00",
            "data_date": "2025-01-14",
            "data_time": "11:59:50",
        }
        assert vessel_age(vessel, now) == timedelta(seconds=10)
        assert is_fresh(vessel, timedelta(minutes=1), now)


class TestInitialPayload:
    def test_window_and_ordering(self):
        broadcaster = LiveBroadcaster(fake_sio(), session_factory=None)
        vessels = [
            vessel_at(111111111, timedelta(hours=5)),
            vessel_at(222222222, timedelta(seconds=40)),
            vessel_at(333333333, timedelta(hours=30)),
            vessel_at(444444444, timedelta(seconds=10)),
            {"mmsi": 555555555, "timestamp": None},
        ]

        payload = broadcaster.build_initial_payload(vessels)

        assert payload["type"] == "initial_data"
        assert payload["count"] == 3
        assert payload["total_available"] == 5
        assert payload["filtered"] == 2
        assert payload["active_count"] == 2
        assert payload["static_count"] == 1
        assert payload["data_window"] == "24h"
        assert payload["update_window"] == "1min"
        assert [v["mmsi"] for v in payload["vessels"]] == [444444444, 222222222, 111111111]

    def test_active_means_under_one_minute(self):
        now = datetime(2025, 1, 14, 12, 0, 0)
        vessels = [
            {"mmsi": 111111111, "timestamp": "2025-01-14T11:59:00"},
            {"mmsi": 222222222, "timestamp": "2025-01-14T11:59:01"},
        ]

        payload = LiveBroadcaster(fake_sio(), session_factory=None).build_initial_payload(
            vessels, now
        )

        assert payload["active_count"] == 1
        assert payload["static_count"] == 1
        assert [v["mmsi"] for v in payload["vessels"]] == [222222222, 111111111]

    def test_empty_snapshot(self):
        payload = LiveBroadcaster(fake_sio(), session_factory=None).build_initial_payload([])
        assert payload["count"] == 0
        assert payload["message"] == "No vessel data available"


class TestEmits:
    @pytest.mark.asyncio
    async def test_connect_sends_initial_data(self, session_factory):
        async with session_factory() as session:
            await VesselReconciler(session, batch_pause_seconds=0).reconcile([
                make_report(mmsi=111111111, timestamp=utc_now() - timedelta(minutes=10)),
                make_report(mmsi=222222222, timestamp=utc_now() - timedelta(days=2)),
            ])

        sio = fake_sio()
        broadcaster = LiveBroadcaster(sio, session_factory)
        await broadcaster.handle_connect("sid-1")

        assert broadcaster.subscribers.keys() == {"sid-1"}
        sio.emit.assert_awaited_once()
        event, payload = sio.emit.await_args.args
        assert event == "initial_data"
        assert sio.emit.await_args.kwargs == {"to": "sid-1", "namespace": NAMESPACE}
        assert [v["mmsi"] for v in payload["vessels"]] == [111111111]
        assert payload["vessels"][0]["vessel_type_name"] == "Cargo"

    @pytest.mark.asyncio
    async def test_initial_data_error_event(self):
        def broken_factory():
            raise RuntimeError("database unavailable")

        sio = fake_sio()
        await LiveBroadcaster(sio, broken_factory).send_initial_data("sid-1")

        event, payload = sio.emit.await_args.args
        assert event == "initial_data_error"
        assert payload["error"] == "database unavailable"

    @pytest.mark.asyncio
    async def test_disconnect_forgets_client(self):
        broadcaster = LiveBroadcaster(fake_sio(), session_factory=None)
        broadcaster.subscribers["sid-1"] = utc_now()

        await broadcaster.handle_disconnect("sid-1")
        await broadcaster.handle_disconnect("unknown")
        assert broadcaster.get_connection_stats()["connected_clients"] == 0

    @pytest.mark.asyncio
    async def test_update_sends_only_recent(self):
        sio = fake_sio()
        broadcaster = LiveBroadcaster(sio, session_factory=None)

        sent = await broadcaster.broadcast_vessel_update([
            vessel_at(111111111, timedelta(seconds=50)),
            vessel_at(222222222, timedelta(seconds=5)),
            vessel_at(333333333, timedelta(minutes=10)),
        ])

        assert sent == 2
        event, payload = sio.emit.await_args.args
        assert event == "vessel_update"
        assert payload["total_processed"] == 3
        assert [v["mmsi"] for v in payload["vessels"]] == [222222222, 111111111]

    @pytest.mark.asyncio
    async def test_update_skipped_when_nothing_recent(self):
        sio = fake_sio()
        broadcaster = LiveBroadcaster(sio, session_factory=None)

        assert await broadcaster.broadcast_vessel_update([]) == 0
        assert await broadcaster.broadcast_vessel_update(
            [vessel_at(111111111, timedelta(hours=1))]
        ) == 0
        sio.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_position_broadcast(self):
        sio = fake_sio()
        broadcaster = LiveBroadcaster(sio, session_factory=None)
        fresh = {"latitude": 1.0, "longitude": 104.0, "timestamp": utc_now().isoformat()}
        stale = {"latitude": 1.0, "longitude": 104.0, "timestamp": "2020-01-01T00:00:00"}

        assert await broadcaster.broadcast_vessel_position(123456789, fresh) is True
        assert await broadcaster.broadcast_vessel_position(123456789, stale) is False

        events = [call.args[0] for call in sio.emit.await_args_list]
        assert events == ["vessel_123456789", "position_update"]


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_vessel_room_membership(self):
        sio = fake_sio()
        broadcaster = LiveBroadcaster(sio, session_factory=None)

        ack = await broadcaster.subscribe_vessel("sid-1", {"mmsi": 123456789})
        sio.enter_room.assert_awaited_once_with("sid-1", "vessel_123456789", namespace=NAMESPACE)
        assert ack["event"] == "subscription_confirmed"

        ack = await broadcaster.unsubscribe_vessel("sid-1", {"mmsi": 123456789})
        sio.leave_room.assert_awaited_once_with("sid-1", "vessel_123456789", namespace=NAMESPACE)
        assert ack["data"]["status"] == "unsubscribed"

    @pytest.mark.asyncio
    async def test_area_subscription_is_acknowledged(self):
        broadcaster = LiveBroadcaster(fake_sio(), session_factory=None)
        ack = await broadcaster.subscribe_area("sid-1", {"bounds": [103, 0, 105, 2]})

        assert ack["event"] == "area_subscription_confirmed"
        assert ack["data"]["bounds"] == [103, 0, 105, 2]

    def test_filter_strategy(self):
        broadcaster = LiveBroadcaster(
            fake_sio(),
            session_factory=None,
            initial_window=timedelta(hours=12),
            update_window=timedelta(seconds=90),
        )
        strategy = broadcaster.get_filter_strategy()["data"]
        assert strategy["initial_data"]["window"] == "12h"
        assert strategy["updates"]["window"] == "90s"
