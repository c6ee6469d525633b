"""Upstream vessel collector.

Polls the upstream adapter, deduplicates what it returns and feeds the
reconciler. Collections are single-flight: a call made while another is
running fails immediately with ``CollectionInProgressError`` instead of
queueing behind it.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais.adapters.base import AISDataAdapter
from vesseltrack.ais.models import PositionReport, utc_now
from vesseltrack.ais.reconciler import (
    DEFAULT_BATCH_PAUSE_SECONDS,
    DEFAULT_BATCH_SIZE,
    ReconcileResult,
    VesselReconciler,
)
from vesseltrack.ais.stores import CurrentVesselStore
from vesseltrack.socketio.serializers import serialize_vessel

if TYPE_CHECKING:
    from vesseltrack.socketio.broadcaster import LiveBroadcaster

logger = logging.getLogger(__name__)

PAGE_LIMIT = 100
FALLBACK_LIMIT = 10
EXTRA_PAGES = (2, 3, 4)

# (page, limit) for the explicit fetches of an aggressive collection
AGGRESSIVE_FETCHES = ((1, 1000), (2, 1000), (3, 500), (4, 500))

SessionFactory = Callable[[], AsyncSession]


class CollectionInProgressError(RuntimeError):
    """Raised when a collection is requested while one is running."""

    def __init__(self, message: str = "Collection already in progress"):
        super().__init__(message)


@dataclass
class CollectorState:
    """Busy flag and running totals owned by one collector instance."""

    is_collecting: bool = False
    last_collection_time: Optional[datetime] = None
    total_collections: int = 0
    successful_collections: int = 0
    durations: deque = field(default_factory=lambda: deque(maxlen=100))
    last_error: Optional[str] = None

    @property
    def average_duration(self) -> int:
        if not self.durations:
            return 0
        return round(sum(self.durations) / len(self.durations))

    @property
    def last_duration(self) -> int:
        return self.durations[-1] if self.durations else 0

    def reset(self) -> None:
        self.total_collections = 0
        self.successful_collections = 0
        self.durations.clear()
        self.last_error = None


@dataclass
class CollectionResult:
    """Outcome of one collection run (durations in milliseconds)."""

    collected: int = 0
    stored: int = 0
    duration: int = 0
    errors: list[str] = field(default_factory=list)
    broadcasted: bool = False
    unique: Optional[int] = None
    archived: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "collected": self.collected,
            "stored": self.stored,
            "duration": self.duration,
            "errors": list(self.errors),
            "broadcasted": self.broadcasted,
        }
        if self.unique is not None:
            data["unique"] = self.unique
        if self.archived is not None:
            data["archived"] = self.archived
        return data


def deduplicate_reports(reports: Iterable[PositionReport]) -> list[PositionReport]:
    """Keep one report per MMSI, the one with the latest timestamp."""
    latest: dict[int, PositionReport] = {}
    duplicates = 0

    for report in reports:
        existing = latest.get(report.mmsi)
        if existing is None:
            latest[report.mmsi] = report
            continue
        duplicates += 1
        if report.timestamp > existing.timestamp:
            latest[report.mmsi] = report

    if duplicates:
        logger.info(f"Removed {duplicates} duplicates, {len(latest)} unique vessels remain")
    return list(latest.values())


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class VesselCollector:
    """Collects vessel reports from an upstream adapter and stores them."""

    def __init__(
        self,
        adapter: AISDataAdapter,
        session_factory: SessionFactory,
        broadcaster: Optional["LiveBroadcaster"] = None,
        interval_seconds: float = 30.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS,
        state: Optional[CollectorState] = None,
    ):
        """Initialize collector.

        Args:
            adapter: Upstream data source
            session_factory: Callable returning a new ``AsyncSession``
            broadcaster: Live broadcaster notified after each collection
            interval_seconds: Scheduled polling interval (for status reporting)
            batch_size: Reconciliation batch size
            batch_pause_seconds: Pause between reconciliation batches
            state: Existing state to resume from
        """
        self.adapter = adapter
        self.session_factory = session_factory
        self.broadcaster = broadcaster
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.batch_pause_seconds = batch_pause_seconds
        self.state = state or CollectorState()

    # Single-flight guard. No await between the check and the set.

    def _acquire(self) -> None:
        if self.state.is_collecting:
            raise CollectionInProgressError()
        self.state.is_collecting = True

    def _release(self) -> None:
        self.state.is_collecting = False

    @property
    def is_collecting(self) -> bool:
        return self.state.is_collecting

    async def collect(self) -> CollectionResult:
        """Fetch, deduplicate and reconcile one round of upstream data.

        Raises:
            CollectionInProgressError: If another collection is running
        """
        self._acquire()
        started = time.monotonic()

        try:
            logger.info("Starting vessel collection from upstream")
            reports = await self.collect_massively()

            if not reports:
                logger.warning("No vessels collected from upstream")
                return CollectionResult(duration=_elapsed_ms(started))

            outcome = await self._store(reports)

            self.state.last_collection_time = utc_now()
            duration = _elapsed_ms(started)
            self.state.durations.append(duration)

            logger.info(
                f"Collection completed: {len(reports)} collected, "
                f"{outcome.new_current_count} stored, "
                f"{outcome.archived_count} archived ({duration}ms)"
            )

            return CollectionResult(
                collected=len(reports),
                stored=outcome.new_current_count,
                duration=duration,
                errors=outcome.errors,
                broadcasted=self.broadcaster is not None,
                archived=outcome.archived_count,
            )
        finally:
            self._release()

    async def collect_massively(self) -> list[PositionReport]:
        """Fetch page 1, then pages 2-4 concurrently, and deduplicate.

        An empty page 1 is retried once as a minimal request. Failed extra
        pages are logged and skipped. If page 1 itself fails the minimal
        request is tried as a fallback, and an empty list is returned when
        that fails too.
        """
        try:
            first_page = await self.adapter.fetch_vessels(page=1, limit=PAGE_LIMIT)

            if not first_page:
                logger.warning("No vessels from page 1, trying smaller batch")
                return await self.adapter.fetch_vessels(page=1, limit=FALLBACK_LIMIT)

            results = await asyncio.gather(
                *(self.adapter.fetch_vessels(page=p, limit=PAGE_LIMIT) for p in EXTRA_PAGES),
                return_exceptions=True,
            )

            reports = list(first_page)
            for page, result in zip(EXTRA_PAGES, results):
                if isinstance(result, BaseException):
                    logger.warning(f"Page {page} failed: {result}")
                elif result:
                    reports.extend(result)
                    logger.info(f"Page {page}: {len(result)} vessels")

            unique = deduplicate_reports(reports)
            logger.info(
                f"Collection fetched {len(unique)} unique vessels from {len(reports)} total"
            )
            return unique

        except Exception as e:
            logger.error(f"Collection fetch failed: {e}")

            try:
                logger.info("Attempting fallback minimal request")
                return await self.adapter.fetch_vessels(page=1, limit=FALLBACK_LIMIT)
            except Exception as fallback_error:
                logger.error(f"Fallback also failed: {fallback_error}")
                return []

    async def run_scheduled(self) -> Optional[CollectionResult]:
        """Scheduled tick: skip if busy, collect, broadcast, update totals.

        Never raises; failures are recorded on the state.
        """
        if self.state.is_collecting:
            logger.warning("Collection already in progress, skipping")
            return None

        logger.info("Starting scheduled upstream collection")
        result = None

        try:
            result = await self.collect()

            if self.broadcaster is not None and result.collected > 0:
                await self._broadcast_latest(result.collected)

            self.state.successful_collections += 1
            self.state.last_error = None

        except Exception as e:
            self.state.last_error = str(e)
            logger.error(f"Scheduled collection failed: {e}")

        self.state.total_collections += 1
        return result

    async def manual_collection(self) -> CollectionResult:
        """On-demand collection followed by a broadcast of the latest vessels."""
        logger.info("Manual collection triggered")

        result = await self.collect()

        if self.broadcaster is not None and result.collected > 0:
            await self._broadcast_latest(result.collected)
            result.broadcasted = True

        return result

    async def force_aggressive_collection(self) -> CollectionResult:
        """Issue five fetches in parallel and reconcile the deduplicated union.

        Raises:
            CollectionInProgressError: If another collection is running
        """
        self._acquire()
        started = time.monotonic()

        try:
            logger.info("Starting aggressive vessel collection")

            results = await asyncio.gather(
                self.collect_massively(),
                *(
                    self.adapter.fetch_vessels(page=page, limit=limit)
                    for page, limit in AGGRESSIVE_FETCHES
                ),
                return_exceptions=True,
            )

            collected: list[PositionReport] = []
            errors: list[str] = []
            for index, result in enumerate(results, start=1):
                if isinstance(result, BaseException):
                    message = f"Batch {index} failed: {result}"
                    errors.append(message)
                    logger.warning(message)
                else:
                    collected.extend(result)
                    logger.info(f"Aggressive collection batch {index}: {len(result)} vessels")

            unique = deduplicate_reports(collected)

            stored = 0
            archived = 0
            if unique:
                outcome = await self._store(unique)
                stored = outcome.new_current_count
                archived = outcome.archived_count
                errors.extend(outcome.errors)
                self.state.last_collection_time = utc_now()

                if self.broadcaster is not None:
                    await self._broadcast_latest(len(unique))

            duration = _elapsed_ms(started)
            self.state.durations.append(duration)

            logger.info(
                f"Aggressive collection completed: {len(collected)} total, "
                f"{len(unique)} unique vessels stored ({duration}ms)"
            )

            return CollectionResult(
                collected=len(collected),
                unique=len(unique),
                stored=stored,
                archived=archived,
                duration=duration,
                errors=errors,
                broadcasted=self.broadcaster is not None,
            )
        finally:
            self._release()

    async def collect_specific_vessels(self, mmsis: Sequence[int]) -> CollectionResult:
        """Refresh an explicit set of vessels and push their new positions."""
        logger.info(f"Collecting specific vessels: {', '.join(str(m) for m in mmsis)}")
        started = time.monotonic()

        reports = await self.adapter.fetch_specific_vessels(mmsis)
        if not reports:
            return CollectionResult(duration=_elapsed_ms(started))

        outcome = await self._store(reports)

        if self.broadcaster is not None:
            for report in reports:
                await self.broadcaster.broadcast_vessel_position(
                    report.mmsi,
                    {
                        "latitude": report.latitude,
                        "longitude": report.longitude,
                        "timestamp": report.timestamp.isoformat(),
                        "course": report.course,
                        "speed": report.speed,
                    },
                )

        duration = _elapsed_ms(started)
        logger.info(f"Specific collection completed: {len(reports)} vessels ({duration}ms)")

        return CollectionResult(
            collected=len(reports),
            stored=outcome.new_current_count,
            duration=duration,
            errors=outcome.errors,
            broadcasted=self.broadcaster is not None,
        )

    async def _store(self, reports: Sequence[PositionReport]) -> ReconcileResult:
        async with self.session_factory() as session:
            reconciler = VesselReconciler(
                session,
                batch_size=self.batch_size,
                batch_pause_seconds=self.batch_pause_seconds,
            )
            return await reconciler.reconcile(reports)

    async def _broadcast_latest(self, count: int) -> None:
        """Push the most recently updated vessels to live subscribers."""
        if self.broadcaster is None:
            return

        try:
            async with self.session_factory() as session:
                vessels = await CurrentVesselStore(session).find(
                    sort=[("last_updated", "desc")],
                    limit=count,
                )
                payload = [serialize_vessel(vessel) for vessel in vessels]

            sent = await self.broadcaster.broadcast_vessel_update(payload)
            logger.info(f"Broadcasted {sent} of {len(payload)} vessels to connected clients")
        except Exception as e:
            logger.error(f"Failed to broadcast data: {e}")

    # Status and metrics

    def get_status(self) -> dict[str, Any]:
        next_collection = utc_now() + timedelta(seconds=self.interval_seconds)
        last = self.state.last_collection_time
        return {
            "is_collecting": self.state.is_collecting,
            "last_collection": last.isoformat() if last else None,
            "next_collection": next_collection.isoformat(),
            "total_collections": self.state.total_collections,
            "successful_collections": self.state.successful_collections,
            "average_duration": self.state.average_duration,
            "last_error": self.state.last_error,
        }

    async def health_check(self) -> dict[str, Any]:
        """Check the upstream API, the database and the live channel.

        ``healthy`` needs all three, ``degraded`` at least one of upstream
        or database, ``unhealthy`` neither.
        """
        upstream_ok = await self.adapter.health_check()

        database_ok = False
        try:
            async with self.session_factory() as session:
                await CurrentVesselStore(session).count()
            database_ok = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")

        live_ok = False
        connected_clients = 0
        if self.broadcaster is not None:
            stats = self.broadcaster.get_connection_stats()
            live_ok = True
            connected_clients = stats["connected_clients"]

        if upstream_ok and database_ok:
            system_status = "healthy" if live_ok else "degraded"
        elif upstream_ok or database_ok:
            system_status = "degraded"
        else:
            system_status = "unhealthy"

        last = self.state.last_collection_time
        return {
            "upstream_api": upstream_ok,
            "database": database_ok,
            "web_socket": live_ok,
            "last_collection": last.isoformat() if last else None,
            "is_collecting": self.state.is_collecting,
            "connected_clients": connected_clients,
            "system_status": system_status,
        }

    def get_performance_metrics(self) -> dict[str, Any]:
        total = self.state.total_collections
        success_rate = round(self.state.successful_collections / total * 100) if total else 0

        last = self.state.last_collection_time
        uptime = round((utc_now() - last).total_seconds()) if last else 0

        return {
            "total_collections": total,
            "successful_collections": self.state.successful_collections,
            "success_rate": success_rate,
            "average_duration": self.state.average_duration,
            "last_duration": self.state.last_duration,
            "is_real_time": self.broadcaster is not None,
            "uptime": uptime,
        }

    def reset_metrics(self) -> None:
        self.state.reset()
        logger.info("Collector performance metrics reset")

    async def close(self) -> None:
        """Release the adapter and clear the busy flag."""
        self._release()
        await self.adapter.close()
