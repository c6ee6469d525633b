"""Tests for the read-side query service."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from factories import make_report
from vesseltrack.ais.models import DataType
from vesseltrack.ais.query_builder import AreaQuery, AreaQueryError, BoundingBox
from vesseltrack.ais.query_service import (
    VesselNotFoundError,
    VesselQueryService,
    sample_track,
)
from vesseltrack.ais.reconciler import ARCHIVE_REASON_SCHEDULED, VesselReconciler
from vesseltrack.ais.stores import CurrentVesselStore, VesselLogStore
from vesseltrack.models import VesselLog

BASE = datetime(2025, 1, 14, 0, 0)

STRAIT = BoundingBox(min_longitude=103.0, max_longitude=105.0, min_latitude=0.0, max_latitude=2.0)


def make_service(session, **kwargs) -> VesselQueryService:
    kwargs.setdefault("page_pause_seconds", 0)
    return VesselQueryService(session, **kwargs)


async def add_log(session, mmsi=123456789, minutes=0, latitude=1.0, longitude=104.0, **extra):
    values = {
        "mmsi": mmsi,
        "latitude": latitude,
        "longitude": longitude,
        "speed": 10.0,
        "timestamp": BASE + timedelta(minutes=minutes),
        "archived_at": BASE + timedelta(minutes=minutes, seconds=30),
        "archive_reason": ARCHIVE_REASON_SCHEDULED,
        "source": "telkomsat",
    }
    values.update(extra)
    return await VesselLogStore(session).append(values)


async def add_current(session, *reports):
    reconciler = VesselReconciler(session, batch_pause_seconds=0)
    await reconciler.bulk_reconcile(list(reports))


class TestSampleTrack:
    def _points(self, minutes):
        return [
            VesselLog(mmsi=1, latitude=0, longitude=0, timestamp=BASE + timedelta(minutes=m))
            for m in minutes
        ]

    def test_gap_property(self):
        points = self._points([0, 1, 2, 4, 5, 6, 9, 10, 16])
        sampled = sample_track(points, 5)

        kept = [(p.timestamp - BASE).total_seconds() / 60 for p in sampled]
        assert kept == [0, 5, 10, 16]
        for prev, curr in zip(sampled, sampled[1:]):
            assert curr.timestamp - prev.timestamp >= timedelta(minutes=5)

    def test_first_point_always_kept(self):
        sampled = sample_track(self._points([3, 4]), 60)
        assert [p.timestamp for p in sampled] == [BASE + timedelta(minutes=3)]

    @pytest.mark.parametrize("interval", [0, 1])
    def test_small_interval_returns_everything(self, interval):
        points = self._points([0, 1, 2])
        assert sample_track(points, interval) == points


class TestCurrentQueries:
    @pytest.mark.asyncio
    async def test_current_vessel_lookup(self, session):
        await add_current(session, make_report(mmsi=111111111), make_report(mmsi=222222222))
        service = make_service(session)

        vessel = await service.get_current_vessel(222222222)
        assert vessel.mmsi == 222222222
        assert len(await service.get_current_vessels()) == 2
        assert len(await service.get_current_vessels(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_unknown_vessel(self, session):
        with pytest.raises(VesselNotFoundError, match="Vessel with MMSI 555555555 not found"):
            await make_service(session).get_current_vessel(555555555)


class TestLogQueries:
    @pytest.mark.asyncio
    async def test_pagination(self, session):
        for minute in range(5):
            await add_log(session, minutes=minute)
        await add_log(session, mmsi=999999999, minutes=10)
        await session.commit()

        result = await make_service(session).query_logs(mmsi=123456789, page=2, limit=2)

        assert [log.timestamp for log in result["data"]] == [
            BASE + timedelta(minutes=2),
            BASE + timedelta(minutes=1),
        ]
        assert result["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 5,
            "total_pages": 3,
            "has_next": True,
            "has_prev": True,
        }

    @pytest.mark.asyncio
    async def test_mmsi_list_and_ascending_sort(self, session):
        await add_log(session, mmsi=111111111, minutes=5)
        await add_log(session, mmsi=222222222, minutes=1)
        await add_log(session, mmsi=333333333, minutes=3)
        await session.commit()

        result = await make_service(session).query_logs(
            mmsi_list=[111111111, 222222222], sort_order="asc"
        )
        assert [log.mmsi for log in result["data"]] == [222222222, 111111111]

    @pytest.mark.asyncio
    async def test_date_window_and_source(self, session):
        await add_log(session, minutes=0)
        await add_log(session, minutes=30)
        await add_log(session, minutes=60, source="manual")
        await session.commit()

        result = await make_service(session).query_logs(
            start_date=BASE + timedelta(minutes=10),
            end_date=BASE + timedelta(minutes=90),
            source="telkomsat",
        )
        assert result["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, session):
        service = make_service(session)
        with pytest.raises(AreaQueryError):
            await service.query_logs(sort_by="name; DROP TABLE")
        with pytest.raises(AreaQueryError):
            await service.query_logs(sort_order="sideways")
        with pytest.raises(AreaQueryError):
            await service.query_logs(page=0)


class TestPlayback:
    @pytest.mark.asyncio
    async def test_playback_sampled_and_ascending(self, session):
        for minute in [7, 0, 2, 5, 11, 12]:
            await add_log(session, minutes=minute)
        await session.commit()

        points = await make_service(session).get_playback(
            123456789, BASE, BASE + timedelta(hours=1), interval_minutes=5
        )

        assert [p["timestamp"] for p in points] == [
            (BASE + timedelta(minutes=m)).isoformat() for m in (0, 5, 11)
        ]
        assert points[0]["data_source"] == "archived"
        assert points[0]["vessel_type"] == "Not available"

    @pytest.mark.asyncio
    async def test_reversed_window_rejected(self, session):
        with pytest.raises(AreaQueryError):
            await make_service(session).get_playback(123456789, BASE, BASE - timedelta(hours=1))


class TestStatistics:
    @pytest.mark.asyncio
    async def test_statistics(self, session):
        await add_current(session, make_report(mmsi=111111111))
        await add_log(session, mmsi=111111111, minutes=5)
        await add_log(session, mmsi=222222222, minutes=1)
        await add_log(session, mmsi=222222222, minutes=2, status="purged")
        await session.commit()

        stats = await make_service(session).get_statistics()

        assert stats["current_vessels"] == 1
        assert stats["total_logs"] == 2
        assert stats["unique_vessels"] == 2
        assert stats["oldest_log"] == BASE + timedelta(minutes=1)
        assert stats["last_update"] is not None

    @pytest.mark.asyncio
    async def test_counts_by_source(self, session):
        await add_current(
            session,
            make_report(mmsi=111111111),
            make_report(mmsi=222222222),
            make_report(mmsi=333333333, source="manual"),
        )
        await add_log(session, mmsi=111111111)
        await add_log(session, mmsi=444444444, source="legacy")
        await session.commit()

        counts = await make_service(session).get_vessel_counts_by_source()
        by_source = {item["source"]: item for item in counts}

        assert counts[0]["source"] == "telkomsat"
        assert by_source["telkomsat"]["current_count"] == 2
        assert by_source["telkomsat"]["archived_count"] == 1
        assert by_source["manual"]["archived_count"] == 0
        assert by_source["legacy"]["current_count"] == 0
        assert by_source["legacy"]["unique_vessels"] == 1


class TestAreaCount:
    @pytest.mark.asyncio
    async def test_three_current_vessels_all_type(self, session):
        await add_current(
            session,
            make_report(mmsi=111111111, latitude=0.5, longitude=103.5),
            make_report(mmsi=222222222, latitude=1.0, longitude=104.0),
            make_report(mmsi=333333333, latitude=1.5, longitude=104.5),
            make_report(mmsi=444444444, latitude=10.0, longitude=120.0),
        )
        await session.commit()

        result = await make_service(session).get_area_count(
            AreaQuery(bounds=STRAIT, data_type=DataType.ALL)
        )

        assert result["total_count"] == 3
        assert result["data_breakdown"] == {
            "current_vessels": 3,
            "archived_vessels": 0,
            "total_unique": 3,
        }
        assert result["total_pages"] == 1
        assert result["estimated_time"] == 0.5

    @pytest.mark.asyncio
    async def test_unique_across_collections(self, session):
        await add_current(session, make_report(mmsi=111111111))
        await add_log(session, mmsi=111111111)
        await add_log(session, mmsi=222222222)
        await session.commit()

        service = make_service(session)
        both = await service.get_area_count(AreaQuery(bounds=STRAIT, data_type=DataType.ALL))
        track = await service.get_area_count(AreaQuery(bounds=STRAIT, data_type=DataType.TRACK))

        assert both["total_count"] == 3
        assert both["data_breakdown"]["total_unique"] == 2
        assert track["total_count"] == 2
        assert track["data_breakdown"]["current_vessels"] == 0

    @pytest.mark.asyncio
    async def test_oversized_area_rejected_before_storage(self):
        session = AsyncMock()
        service = make_service(session)
        globe = BoundingBox(min_longitude=-180, max_longitude=180, min_latitude=-90, max_latitude=90)

        with pytest.raises(AreaQueryError, match="Search area too large"):
            await service.get_area_count(AreaQuery(bounds=globe))

        session.execute.assert_not_called()


class TestAreaPages:
    @pytest.mark.asyncio
    async def test_vessel_page(self, session):
        await add_current(
            session, *[make_report(mmsi=100000000 + i) for i in range(5)]
        )
        await session.commit()

        result = await make_service(session).get_area_page(
            AreaQuery(bounds=STRAIT, page=2, page_size=2)
        )

        assert len(result["vessels"]) == 2
        assert result["pagination"] == {
            "page": 2,
            "page_size": 2,
            "total_count": 5,
            "total_pages": 3,
            "has_next_page": True,
            "has_prev_page": True,
            "current_page_count": 2,
        }
        assert result["statistics"]["total_vessels"] == 5
        assert result["export_data"]["summary"]["total_records"] == 2
        assert result["export_data"]["headers"][0] == "MMSI"

    @pytest.mark.asyncio
    async def test_all_type_splits_page(self, session):
        await add_current(session, *[make_report(mmsi=100000000 + i) for i in range(3)])
        for minute in range(3):
            await add_log(session, mmsi=200000000 + minute, minutes=minute)
        await session.commit()

        result = await make_service(session).get_area_page(
            AreaQuery(bounds=STRAIT, data_type=DataType.ALL, page_size=4)
        )

        sources = [v["data_source"] for v in result["vessels"]]
        assert sources == ["current", "current", "archived", "archived"]
        archived = [v["mmsi"] for v in result["vessels"] if v["data_source"] == "archived"]
        assert archived == [200000002, 200000001]
        assert result["pagination"]["total_count"] == 6

    @pytest.mark.asyncio
    async def test_ais_type_orders_by_archive_time(self, session):
        await add_log(session, mmsi=111111111, minutes=0, archived_at=BASE + timedelta(hours=2))
        await add_log(session, mmsi=222222222, minutes=5, archived_at=BASE + timedelta(hours=1))
        await session.commit()

        result = await make_service(session).get_area_page(
            AreaQuery(bounds=STRAIT, data_type=DataType.AIS)
        )
        assert [v["mmsi"] for v in result["vessels"]] == [111111111, 222222222]


class TestAreaAll:
    @pytest.mark.asyncio
    async def test_fetches_every_page(self, session):
        await add_current(session, *[make_report(mmsi=100000000 + i) for i in range(5)])
        await session.commit()

        result = await make_service(session).get_area_all(AreaQuery(bounds=STRAIT, page_size=2))

        assert result["total_pages"] == 3
        assert result["total_fetched"] == 5
        assert result["expected_total"] == 5
        assert result["is_complete"] is True
        assert result["errors"] == []
        assert len({v["mmsi"] for v in result["vessels"]}) == 5

    @pytest.mark.asyncio
    async def test_failed_page_recorded(self, session):
        await add_current(session, *[make_report(mmsi=100000000 + i) for i in range(3)])
        await session.commit()

        service = make_service(session)
        original = service.get_area_page

        async def flaky_page(query):
            if query.page == 2:
                raise RuntimeError("connection reset")
            return await original(query)

        service.get_area_page = flaky_page
        result = await service.get_area_all(AreaQuery(bounds=STRAIT, page_size=1))

        assert result["total_fetched"] == 2
        assert result["errors"] == ["Page 2 failed: connection reset"]
        assert result["is_complete"] is False

    @pytest.mark.asyncio
    async def test_quick_count(self, session):
        await add_current(
            session,
            make_report(mmsi=111111111),
            make_report(mmsi=222222222, latitude=-30.0, longitude=10.0),
        )
        await session.commit()

        assert await make_service(session).get_quick_count(STRAIT) == 1
