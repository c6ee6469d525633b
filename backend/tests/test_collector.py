"""Tests for the upstream collector."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from factories import FakeAdapter, make_report
from vesseltrack.ais.adapters.base import AISDataFetchError
from vesseltrack.ais.collector import (
    CollectionInProgressError,
    CollectorState,
    VesselCollector,
    deduplicate_reports,
)
from vesseltrack.ais.models import utc_now
from vesseltrack.ais.stores import CurrentVesselStore, VesselLogStore

T1 = datetime(2025, 1, 14, 12, 0)
T2 = datetime(2025, 1, 14, 12, 10)


def make_collector(adapter, session_factory, **kwargs) -> VesselCollector:
    kwargs.setdefault("batch_pause_seconds", 0)
    return VesselCollector(adapter=adapter, session_factory=session_factory, **kwargs)


def fake_broadcaster() -> MagicMock:
    broadcaster = MagicMock()
    broadcaster.broadcast_vessel_update = AsyncMock(return_value=0)
    broadcaster.broadcast_vessel_position = AsyncMock(return_value=True)
    broadcaster.get_connection_stats = MagicMock(return_value={"connected_clients": 3})
    return broadcaster


class TestDeduplication:
    def test_keeps_latest_timestamp_per_mmsi(self):
        older = make_report(mmsi=111111111, timestamp=T1, speed=5)
        newer = make_report(mmsi=111111111, timestamp=T2, speed=9)
        other = make_report(mmsi=222222222, timestamp=T1)

        unique = deduplicate_reports([newer, other, older])

        assert len(unique) == 2
        kept = next(r for r in unique if r.mmsi == 111111111)
        assert kept.timestamp == T2
        assert kept.speed == 9

    def test_equal_timestamps_keep_first_seen(self):
        first = make_report(mmsi=111111111, timestamp=T1, speed=1)
        second = make_report(mmsi=111111111, timestamp=T1, speed=2)
        assert deduplicate_reports([first, second])[0].speed == 1


class TestCollectMassively:
    @pytest.mark.asyncio
    async def test_merges_pages_and_deduplicates(self, session_factory):
        adapter = FakeAdapter(pages={
            1: [make_report(mmsi=111111111, timestamp=T1)],
            2: [make_report(mmsi=111111111, timestamp=T2), make_report(mmsi=222222222)],
            3: [make_report(mmsi=333333333)],
        })
        collector = make_collector(adapter, session_factory)

        reports = await collector.collect_massively()

        assert sorted(r.mmsi for r in reports) == [111111111, 222222222, 333333333]
        assert next(r for r in reports if r.mmsi == 111111111).timestamp == T2
        assert sorted(adapter.calls) == [(1, 100), (2, 100), (3, 100), (4, 100)]

    @pytest.mark.asyncio
    async def test_failed_extra_page_is_skipped(self, session_factory):
        adapter = FakeAdapter(pages={
            1: [make_report(mmsi=111111111)],
            2: AISDataFetchError("timeout"),
            3: [make_report(mmsi=333333333)],
        })
        reports = await make_collector(adapter, session_factory).collect_massively()
        assert sorted(r.mmsi for r in reports) == [111111111, 333333333]

    @pytest.mark.asyncio
    async def test_empty_first_page_retries_small(self, session_factory):
        adapter = FakeAdapter(pages={
            (1, 100): [],
            (1, 10): [make_report(mmsi=999999999)],
        })
        reports = await make_collector(adapter, session_factory).collect_massively()

        assert [r.mmsi for r in reports] == [999999999]
        assert adapter.calls == [(1, 100), (1, 10)]

    @pytest.mark.asyncio
    async def test_first_page_failure_falls_back(self, session_factory):
        adapter = FakeAdapter(pages={
            (1, 100): AISDataFetchError("down"),
            (1, 10): [make_report(mmsi=999999999)],
        })
        reports = await make_collector(adapter, session_factory).collect_massively()
        assert [r.mmsi for r in reports] == [999999999]

    @pytest.mark.asyncio
    async def test_total_failure_returns_empty(self, session_factory):
        adapter = FakeAdapter(pages={1: AISDataFetchError("down")})
        assert await make_collector(adapter, session_factory).collect_massively() == []


class TestCollect:
    @pytest.mark.asyncio
    async def test_collect_stores_and_archives(self, session_factory):
        adapter = FakeAdapter(pages={1: [make_report(mmsi=111111111, timestamp=T1)]})
        collector = make_collector(adapter, session_factory)

        first = await collector.collect()
        adapter.pages = {1: [make_report(mmsi=111111111, timestamp=T2)]}
        second = await collector.collect()

        assert first.collected == 1
        assert first.stored == 1
        assert first.archived == 0
        assert second.archived == 1
        assert collector.state.last_collection_time is not None
        assert not collector.is_collecting

        async with session_factory() as session:
            vessel = await CurrentVesselStore(session).find_by_mmsi(111111111)
            assert vessel.timestamp == T2
            assert await VesselLogStore(session).count() == 1

    @pytest.mark.asyncio
    async def test_nothing_collected(self, session_factory):
        result = await make_collector(FakeAdapter(), session_factory).collect()
        assert result.collected == 0
        assert result.stored == 0
        assert result.to_dict()["errors"] == []

    @pytest.mark.asyncio
    async def test_single_flight(self, session_factory):
        adapter = FakeAdapter(pages={1: [make_report()]}, delay=0.05)
        collector = make_collector(adapter, session_factory)

        first = asyncio.create_task(collector.collect())
        await asyncio.sleep(0.01)

        with pytest.raises(CollectionInProgressError, match="already in progress"):
            await collector.collect()

        result = await first
        assert result.collected == 1
        assert not collector.is_collecting

    @pytest.mark.asyncio
    async def test_busy_flag_cleared_after_failure(self, session_factory):
        collector = make_collector(FakeAdapter(), session_factory)
        collector.collect_massively = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await collector.collect()
        assert not collector.is_collecting


class TestScheduledAndManual:
    @pytest.mark.asyncio
    async def test_scheduled_skips_when_busy(self, session_factory):
        collector = make_collector(FakeAdapter(), session_factory)
        collector.state.is_collecting = True

        assert await collector.run_scheduled() is None
        assert collector.state.total_collections == 0

    @pytest.mark.asyncio
    async def test_scheduled_broadcasts_and_counts(self, session_factory):
        broadcaster = fake_broadcaster()
        adapter = FakeAdapter(pages={1: [make_report(timestamp=utc_now())]})
        collector = make_collector(adapter, session_factory, broadcaster=broadcaster)

        result = await collector.run_scheduled()

        assert result.collected == 1
        assert collector.state.total_collections == 1
        assert collector.state.successful_collections == 1
        broadcaster.broadcast_vessel_update.assert_awaited_once()
        payload = broadcaster.broadcast_vessel_update.await_args.args[0]
        assert payload[0]["mmsi"] == 123456789

    @pytest.mark.asyncio
    async def test_scheduled_records_failure(self, session_factory):
        collector = make_collector(FakeAdapter(), session_factory)
        collector.collect = AsyncMock(side_effect=RuntimeError("database down"))

        assert await collector.run_scheduled() is None
        assert collector.state.total_collections == 1
        assert collector.state.successful_collections == 0
        assert collector.state.last_error == "database down"

    @pytest.mark.asyncio
    async def test_manual_collection_marks_broadcast(self, session_factory):
        broadcaster = fake_broadcaster()
        adapter = FakeAdapter(pages={1: [make_report()]})
        collector = make_collector(adapter, session_factory, broadcaster=broadcaster)

        result = await collector.manual_collection()
        assert result.broadcasted is True


class TestAggressiveAndSpecific:
    @pytest.mark.asyncio
    async def test_aggressive_unions_and_deduplicates(self, session_factory):
        adapter = FakeAdapter(pages={
            (1, 100): [make_report(mmsi=111111111, timestamp=T1)],
            (1, 1000): [make_report(mmsi=111111111, timestamp=T2), make_report(mmsi=222222222)],
            (2, 1000): AISDataFetchError("timeout"),
            (3, 500): [make_report(mmsi=333333333)],
        })
        collector = make_collector(adapter, session_factory)

        result = await collector.force_aggressive_collection()

        assert result.unique == 3
        assert result.stored == 3
        assert result.collected == 4
        assert len(result.errors) == 1
        assert "Batch 3 failed" in result.errors[0]

        async with session_factory() as session:
            vessel = await CurrentVesselStore(session).find_by_mmsi(111111111)
            assert vessel.timestamp == T2

    @pytest.mark.asyncio
    async def test_aggressive_respects_single_flight(self, session_factory):
        collector = make_collector(FakeAdapter(), session_factory)
        collector.state.is_collecting = True

        with pytest.raises(CollectionInProgressError):
            await collector.force_aggressive_collection()

    @pytest.mark.asyncio
    async def test_specific_vessels_broadcast_positions(self, session_factory):
        broadcaster = fake_broadcaster()
        adapter = FakeAdapter(specific=[
            make_report(mmsi=111111111),
            make_report(mmsi=222222222),
        ])
        collector = make_collector(adapter, session_factory, broadcaster=broadcaster)

        result = await collector.collect_specific_vessels([111111111])

        assert result.collected == 1
        assert result.stored == 1
        broadcaster.broadcast_vessel_position.assert_awaited_once()
        assert broadcaster.broadcast_vessel_position.await_args.args[0] == 111111111


class TestStatusAndHealth:
    @pytest.mark.asyncio
    async def test_health_levels(self, session_factory):
        healthy = make_collector(FakeAdapter(), session_factory, broadcaster=fake_broadcaster())
        no_live = make_collector(FakeAdapter(), session_factory)
        upstream_down = make_collector(FakeAdapter(healthy=False), session_factory)

        assert (await healthy.health_check())["system_status"] == "healthy"
        assert (await healthy.health_check())["connected_clients"] == 3
        assert (await no_live.health_check())["system_status"] == "degraded"
        assert (await upstream_down.health_check())["system_status"] == "degraded"

    @pytest.mark.asyncio
    async def test_unhealthy_when_upstream_and_database_fail(self):
        def broken_factory():
            raise RuntimeError("no database")

        collector = make_collector(FakeAdapter(healthy=False), broken_factory)
        health = await collector.health_check()

        assert health["database"] is False
        assert health["system_status"] == "unhealthy"

    def test_metrics_and_reset(self):
        state = CollectorState(total_collections=4, successful_collections=3)
        state.durations.extend([100, 200, 300])
        collector = VesselCollector(FakeAdapter(), session_factory=None, state=state)

        metrics = collector.get_performance_metrics()
        assert metrics["success_rate"] == 75
        assert metrics["average_duration"] == 200
        assert metrics["last_duration"] == 300
        assert metrics["is_real_time"] is False

        collector.reset_metrics()
        assert collector.get_performance_metrics()["total_collections"] == 0

    def test_status_reports_next_collection(self):
        collector = VesselCollector(FakeAdapter(), session_factory=None, interval_seconds=30)
        status = collector.get_status()

        next_collection = datetime.fromisoformat(status["next_collection"])
        assert next_collection > utc_now() + timedelta(seconds=25)
        assert status["last_collection"] is None

    @pytest.mark.asyncio
    async def test_close_releases_adapter(self, session_factory):
        adapter = FakeAdapter()
        collector = make_collector(adapter, session_factory)
        collector.state.is_collecting = True

        await collector.close()
        assert adapter.closed
        assert not collector.is_collecting
