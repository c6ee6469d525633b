"""Read-side queries over current state and the archive log.

Serves the current fleet snapshot, paginated log queries, playback
sampling, statistics and POI (point of interest) area queries. Area
queries are validated before any storage access; an invalid or oversized
bounding box never reaches the database.
"""

import asyncio
import logging
import math
import time
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais.export import prepare_export_data, transform_for_export
from vesseltrack.ais.insights import estimated_seconds
from vesseltrack.ais.models import DataType, to_naive_utc
from vesseltrack.ais.query_builder import (
    DEFAULT_MAX_AREA_KM2,
    MAX_PAGE_SIZE,
    AreaQuery,
    AreaQueryError,
    BoundingBox,
    VesselFilter,
    build_area_filter,
    build_log_filter,
    build_query_filter,
    calculate_density,
    classify_density,
    validate_area_query,
)
from vesseltrack.ais.stores import CurrentVesselStore, SortSpec, VesselLogStore
from vesseltrack.models import LOG_STATUS_ARCHIVED, CurrentVessel, VesselLog

logger = logging.getLogger(__name__)

DEFAULT_PLAYBACK_INTERVAL_MINUTES = 5
DEFAULT_PAGE_PAUSE_SECONDS = 0.1

LOG_SORT_FIELDS = frozenset({
    "timestamp",
    "archived_at",
    "mmsi",
    "speed",
    "course",
    "latitude",
    "longitude",
    "source",
})

# Page ordering per data type; the trailing key keeps pages stable
CURRENT_PAGE_SORT: tuple[SortSpec, ...] = (("last_updated", "desc"), ("mmsi", "asc"))
TRACK_PAGE_SORT: tuple[SortSpec, ...] = (("timestamp", "desc"), ("id", "desc"))
AIS_PAGE_SORT: tuple[SortSpec, ...] = (("archived_at", "desc"), ("id", "desc"))


class VesselNotFoundError(LookupError):
    """Raised when no current state exists for an MMSI."""

    def __init__(self, mmsi: int):
        self.mmsi = mmsi
        super().__init__(f"Vessel with MMSI {mmsi} not found")


def sample_track(
    points: Sequence[VesselLog],
    interval_minutes: float,
) -> list[VesselLog]:
    """Greedy forward sampling of a time-ascending track.

    The first point is always kept; a later point is kept only when at
    least ``interval_minutes`` have passed since the last kept point.
    With ``interval_minutes <= 1`` every point is returned.
    """
    if interval_minutes <= 1:
        return list(points)

    sampled: list[VesselLog] = []
    last_kept: Optional[datetime] = None

    for point in points:
        if last_kept is None or (point.timestamp - last_kept).total_seconds() >= interval_minutes * 60:
            sampled.append(point)
            last_kept = point.timestamp

    return sampled


class VesselQueryService:
    """Query operations over one database session."""

    def __init__(
        self,
        session: AsyncSession,
        page_size: int = MAX_PAGE_SIZE,
        max_area_km2: float = DEFAULT_MAX_AREA_KM2,
        page_pause_seconds: float = DEFAULT_PAGE_PAUSE_SECONDS,
    ):
        self.session = session
        self.current_store = CurrentVesselStore(session)
        self.log_store = VesselLogStore(session)
        self.page_size = page_size
        self.max_area_km2 = max_area_km2
        self.page_pause_seconds = page_pause_seconds

    # Current state

    async def get_current_vessels(self, limit: Optional[int] = None) -> list[CurrentVessel]:
        """Current vessels, most recently updated first."""
        return await self.current_store.find(sort=[("last_updated", "desc")], limit=limit)

    async def get_current_vessel(self, mmsi: int) -> CurrentVessel:
        """Current state of one vessel.

        Raises:
            VesselNotFoundError: If the MMSI has never been seen
        """
        vessel = await self.current_store.find_by_mmsi(mmsi)
        if vessel is None:
            raise VesselNotFoundError(mmsi)
        return vessel

    # Archive log

    async def query_logs(
        self,
        mmsi: Optional[int] = None,
        mmsi_list: Optional[Sequence[int]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        source: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ) -> dict[str, Any]:
        """Paginated archive query.

        A single ``mmsi`` takes priority over ``mmsi_list``.

        Returns:
            ``{"data": [VesselLog], "pagination": {...}}``
        """
        if page < 1:
            raise AreaQueryError("page must be at least 1")
        if limit < 1:
            raise AreaQueryError("limit must be at least 1")
        if sort_by not in LOG_SORT_FIELDS:
            raise AreaQueryError(f"Unsupported sortBy field: {sort_by}")
        if sort_order not in ("asc", "desc"):
            raise AreaQueryError("sortOrder must be 'asc' or 'desc'")

        flt = build_log_filter(
            mmsi=mmsi,
            mmsi_list=mmsi_list,
            start_date=start_date,
            end_date=end_date,
            source=source,
            status=LOG_STATUS_ARCHIVED,
        )
        logger.info(f"Querying vessel logs {flt.describe()} page {page} (limit {limit})")

        logs = await self.log_store.find(
            flt,
            sort=[(sort_by, sort_order), ("id", sort_order)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = await self.log_store.count(flt)

        return {
            "data": logs,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
                "has_next": page * limit < total,
                "has_prev": page > 1,
            },
        }

    async def get_playback(
        self,
        mmsi: int,
        start_date: datetime,
        end_date: datetime,
        interval_minutes: float = DEFAULT_PLAYBACK_INTERVAL_MINUTES,
    ) -> list[dict[str, Any]]:
        """Archived track points for a vessel, time ascending, sampled."""
        start = to_naive_utc(start_date)
        end = to_naive_utc(end_date)
        if start > end:
            raise AreaQueryError("startDate must be before endDate")

        logger.info(f"Getting playback data for MMSI {mmsi} from {start} to {end}")

        flt = VesselFilter(mmsi=mmsi, start_date=start, end_date=end, status=LOG_STATUS_ARCHIVED)
        logs = await self.log_store.find(flt, sort=[("timestamp", "asc"), ("id", "asc")])

        sampled = sample_track(logs, interval_minutes)
        if interval_minutes > 1:
            logger.info(
                f"Playback data: {len(logs)} raw points, {len(sampled)} sampled points"
            )
        return [transform_for_export(log) for log in sampled]

    # Statistics

    async def get_statistics(self) -> dict[str, Any]:
        archived = VesselFilter(status=LOG_STATUS_ARCHIVED)

        current_count = await self.current_store.count()
        total_logs = await self.log_store.count(archived)
        latest = await self.current_store.find_one(sort=[("last_updated", "desc")])
        oldest = await self.log_store.find_one(archived, sort=[("timestamp", "asc")])
        unique_mmsis = await self.log_store.distinct("mmsi", archived)

        return {
            "current_vessels": current_count,
            "total_logs": total_logs,
            "last_update": latest.last_updated if latest else None,
            "oldest_log": oldest.timestamp if oldest else None,
            "unique_vessels": len(unique_mmsis),
        }

    async def get_vessel_counts_by_source(self) -> list[dict[str, Any]]:
        """Current and archived counts per ingest source, largest first."""
        current = await self.current_store.summarize_by("source", "last_updated")
        archived = await self.log_store.summarize_by(
            "source", "archived_at", VesselFilter(status=LOG_STATUS_ARCHIVED)
        )

        by_source: dict[str, dict[str, Any]] = {}
        for source in list(current) + [s for s in archived if s not in current]:
            name = source or "unknown"
            cur = current.get(source, {})
            arc = archived.get(source, {})
            by_source[name] = {
                "source": name,
                "current_count": cur.get("count", 0),
                "archived_count": arc.get("count", 0),
                "unique_vessels": arc.get("unique_mmsis", 0),
                "last_update": cur.get("latest"),
                "last_archived": arc.get("latest"),
            }

        return sorted(
            by_source.values(),
            key=lambda item: item["current_count"] + item["archived_count"],
            reverse=True,
        )

    # POI area

    def _validate(self, query: AreaQuery) -> float:
        return validate_area_query(query, self.max_area_km2)

    def area_statistics(
        self,
        query: AreaQuery,
        total_count: int,
        area_km2: Optional[float] = None,
    ) -> dict[str, Any]:
        area = query.bounds.area_km2 if area_km2 is None else area_km2
        return {
            "total_vessels": total_count,
            "area_size": f"{area} km²",
            "area_km2": area,
            "density": calculate_density(total_count, area),
            "classification": classify_density(total_count, area),
            "bounds": query.bounds.to_dict(),
            "data_type": query.data_type.value,
            "time_range": query.time_range(),
        }

    async def _count_archived(self, flt: VesselFilter) -> int:
        return await self.log_store.count(flt.with_status(LOG_STATUS_ARCHIVED))

    async def _unique_mmsis(self, flt: VesselFilter, data_type: DataType) -> set[int]:
        mmsis: set[int] = set()
        if data_type.reads_current:
            mmsis.update(await self.current_store.distinct("mmsi", flt))
        if data_type.reads_archive:
            mmsis.update(
                await self.log_store.distinct("mmsi", flt.with_status(LOG_STATUS_ARCHIVED))
            )
        return mmsis

    async def get_area_count(self, query: AreaQuery) -> dict[str, Any]:
        """Count matching records and estimate the paging effort.

        ``vessel`` counts current state, ``track``/``ais`` the archive and
        ``all`` both; ``total_unique`` deduplicates MMSIs across them.
        """
        self._validate(query)
        flt = build_query_filter(query)

        breakdown = {"current_vessels": 0, "archived_vessels": 0, "total_unique": 0}
        if query.data_type.reads_current:
            breakdown["current_vessels"] = await self.current_store.count(flt)
        if query.data_type.reads_archive:
            breakdown["archived_vessels"] = await self._count_archived(flt)

        total = breakdown["current_vessels"] + breakdown["archived_vessels"]
        if total > 0:
            breakdown["total_unique"] = len(await self._unique_mmsis(flt, query.data_type))

        total_pages = math.ceil(total / self.page_size)
        logger.info(f"POI area count: {total} records, {total_pages} pages")

        return {
            "total_count": total,
            "total_pages": total_pages,
            "estimated_time": estimated_seconds(total),
            "data_breakdown": breakdown,
        }

    async def get_area_page(self, query: AreaQuery) -> dict[str, Any]:
        """One page of area results.

        For ``all`` the page is half current state (newest update first)
        followed by half archive (newest report first); the two halves are
        concatenated, not merged chronologically.
        """
        started = time.monotonic()
        area = self._validate(query)
        flt = build_query_filter(query)

        page_size = query.page_size
        skip = (query.page - 1) * page_size
        data_type = query.data_type

        logger.info(f"Fetching POI area page {query.page} ({page_size} per page), type: {data_type.value}")

        rows: list[Any]
        if data_type is DataType.VESSEL:
            rows = await self.current_store.find(flt, sort=CURRENT_PAGE_SORT, skip=skip, limit=page_size)
            total = await self.current_store.count(flt)
        elif data_type in (DataType.TRACK, DataType.AIS):
            archived = flt.with_status(LOG_STATUS_ARCHIVED)
            sort = TRACK_PAGE_SORT if data_type is DataType.TRACK else AIS_PAGE_SORT
            rows = await self.log_store.find(archived, sort=sort, skip=skip, limit=page_size)
            total = await self.log_store.count(archived)
        else:
            half = page_size // 2
            archived = flt.with_status(LOG_STATUS_ARCHIVED)
            current_rows = await self.current_store.find(
                flt, sort=CURRENT_PAGE_SORT, skip=skip // 2, limit=half
            )
            archived_rows = await self.log_store.find(
                archived, sort=TRACK_PAGE_SORT, skip=skip // 2, limit=half
            )
            rows = [*current_rows, *archived_rows]
            total = await self.current_store.count(flt) + await self.log_store.count(archived)

        total_pages = math.ceil(total / page_size)
        statistics = self.area_statistics(query, total, area)
        records = [transform_for_export(row) for row in rows]

        logger.info(f"POI area page {query.page} completed: {len(records)} records")

        return {
            "vessels": records,
            "pagination": {
                "page": query.page,
                "page_size": page_size,
                "total_count": total,
                "total_pages": total_pages,
                "has_next_page": query.page < total_pages,
                "has_prev_page": query.page > 1,
                "current_page_count": len(records),
            },
            "statistics": statistics,
            "processing_time": int((time.monotonic() - started) * 1000),
            "export_data": prepare_export_data(records, statistics, data_type),
        }

    async def get_area_all(self, query: AreaQuery) -> dict[str, Any]:
        """Fetch every page sequentially, pausing between pages.

        Failed pages are recorded in ``errors`` and skipped;
        ``is_complete`` is true only when no page failed.
        """
        started = time.monotonic()
        count_info = await self.get_area_count(query)
        total_pages = math.ceil(count_info["total_count"] / query.page_size)

        logger.info(
            f"Starting auto-fetch for {count_info['total_count']} records in {total_pages} pages"
        )

        vessels: list[dict[str, Any]] = []
        errors: list[str] = []

        for page in range(1, total_pages + 1):
            try:
                async with self.session.begin_nested():
                    result = await self.get_area_page(query.for_page(page))
                vessels.extend(result["vessels"])
            except Exception as e:
                message = f"Page {page} failed: {e}"
                logger.error(message)
                errors.append(message)

            if page < total_pages and self.page_pause_seconds > 0:
                await asyncio.sleep(self.page_pause_seconds)

        statistics = self.area_statistics(query, len(vessels))

        logger.info(f"Auto-fetch completed: {len(vessels)}/{count_info['total_count']} records")

        return {
            "vessels": vessels,
            "total_fetched": len(vessels),
            "expected_total": count_info["total_count"],
            "total_pages": total_pages,
            "processing_time": int((time.monotonic() - started) * 1000),
            "errors": errors,
            "statistics": statistics,
            "export_data": prepare_export_data(vessels, statistics, query.data_type),
            "is_complete": not errors,
        }

    async def get_quick_count(self, bounds: BoundingBox) -> int:
        """Current vessels inside a bounding box."""
        count = await self.current_store.count(build_area_filter(bounds))
        logger.info(f"Found {count} current vessels in bounds")
        return count
