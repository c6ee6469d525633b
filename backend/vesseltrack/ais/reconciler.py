"""Vessel state reconciliation.

For each incoming position report:
1. Look up the vessel's current state by MMSI
2. If one exists, copy it into the archive log (reason ``scheduled_update``)
3. Upsert the current state with the new report, bumping ``update_count``

Reports are processed in fixed-size batches with a short pause between
batches to throttle database load. Each report runs inside its own
savepoint, so a failing report is recorded and skipped without aborting
the rest of the batch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais.models import PositionReport, utc_now
from vesseltrack.ais.query_builder import VesselFilter
from vesseltrack.ais.stores import CurrentVesselStore, VesselLogStore
from vesseltrack.models import LOG_STATUS_ARCHIVED, VESSEL_FIELD_NAMES, CurrentVessel

logger = logging.getLogger(__name__)

ARCHIVE_REASON_SCHEDULED = "scheduled_update"
DEFAULT_BATCH_SIZE = 50
DEFAULT_BATCH_PAUSE_SECONDS = 0.1
DEFAULT_RETENTION_DAYS = 90


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation run."""

    archived_count: int = 0
    new_current_count: int = 0
    total_processed: int = 0
    duration_ms: int = 0
    errors: list[str] = field(default_factory=list)
    reconciled_mmsis: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "archived_count": self.archived_count,
            "new_current_count": self.new_current_count,
            "total_processed": self.total_processed,
            "duration": self.duration_ms,
            "errors": list(self.errors),
        }


def archive_values(
    vessel: CurrentVessel,
    archived_at: datetime,
    reason: str = ARCHIVE_REASON_SCHEDULED,
) -> dict[str, Any]:
    """Column values for an archive entry frozen from a current state."""
    values = {name: getattr(vessel, name) for name in VESSEL_FIELD_NAMES}
    values.update(
        archived_at=archived_at,
        archive_reason=reason,
        status=LOG_STATUS_ARCHIVED,
    )
    return values


class VesselReconciler:
    """Applies position reports to the current-state and archive stores."""

    def __init__(
        self,
        session: AsyncSession,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS,
        archive_reason: str = ARCHIVE_REASON_SCHEDULED,
        commit_batches: bool = True,
    ):
        """Initialize reconciler.

        Args:
            session: Database session
            batch_size: Reports per batch
            batch_pause_seconds: Pause between batches
            archive_reason: Tag recorded on archive entries
            commit_batches: Commit the session after every batch
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.session = session
        self.current_store = CurrentVesselStore(session)
        self.log_store = VesselLogStore(session)
        self.batch_size = batch_size
        self.batch_pause_seconds = batch_pause_seconds
        self.archive_reason = archive_reason
        self.commit_batches = commit_batches

    async def reconcile(self, reports: Sequence[PositionReport]) -> ReconcileResult:
        """Archive-then-upsert every report.

        Args:
            reports: Position reports, any order, any size

        Returns:
            Counts of archived and upserted vessels plus per-report errors
        """
        started = time.monotonic()
        result = ReconcileResult()

        logger.info(
            f"Reconciling {len(reports)} reports in batches of {self.batch_size}"
        )

        for start in range(0, len(reports), self.batch_size):
            batch = reports[start:start + self.batch_size]

            for report in batch:
                try:
                    archived = await self._reconcile_one(report)
                except Exception as e:
                    message = f"Failed to process vessel {report.mmsi}: {e}"
                    logger.error(message)
                    result.errors.append(message)
                    continue

                if archived:
                    result.archived_count += 1
                result.new_current_count += 1
                result.total_processed += 1
                result.reconciled_mmsis.append(report.mmsi)

            if self.commit_batches:
                await self.session.commit()

            if start + self.batch_size < len(reports) and self.batch_pause_seconds > 0:
                await asyncio.sleep(self.batch_pause_seconds)

        result.duration_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            f"Reconciliation complete: {result.archived_count} archived, "
            f"{result.new_current_count} current, {len(result.errors)} errors "
            f"({result.duration_ms}ms)"
        )
        return result

    async def _reconcile_one(self, report: PositionReport) -> bool:
        """Reconcile a single report.

        Returns:
            True if a previous current state was archived
        """
        now = utc_now()
        archived = False

        async with self.session.begin_nested():
            existing = await self.current_store.find_by_mmsi(report.mmsi, for_update=True)

            if existing is not None:
                await self.log_store.append(
                    archive_values(existing, now, self.archive_reason)
                )
                archived = True

            record = report.to_record()
            record["last_updated"] = now
            await self.current_store.upsert(record)

        return archived

    async def bulk_reconcile(self, reports: Sequence[PositionReport]) -> ReconcileResult:
        """Upsert all reports without archiving previous states.

        Faster than ``reconcile`` but loses history; chosen explicitly by
        the caller. Rows that fail are reported and skipped.
        """
        started = time.monotonic()
        now = utc_now()

        rows = []
        for report in reports:
            record = report.to_record()
            record["last_updated"] = now
            rows.append(record)

        outcome = await self.current_store.bulk_upsert(rows)
        if self.commit_batches:
            await self.session.commit()

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Bulk upsert complete: {outcome.upserted}/{len(rows)} vessels "
            f"({len(outcome.errors)} errors, {duration_ms}ms)"
        )

        return ReconcileResult(
            archived_count=0,
            new_current_count=outcome.upserted,
            total_processed=outcome.upserted,
            duration_ms=duration_ms,
            errors=outcome.errors,
        )


async def cleanup_old_logs(
    session: AsyncSession,
    days_to_keep: int = DEFAULT_RETENTION_DAYS,
    now: Optional[datetime] = None,
) -> int:
    """Delete archived log entries older than the retention horizon.

    Args:
        session: Database session
        days_to_keep: Retention horizon in days
        now: Reference time (defaults to current UTC)

    Returns:
        Number of entries deleted
    """
    if days_to_keep < 0:
        raise ValueError("days_to_keep must not be negative")

    cutoff = (now or utc_now()) - timedelta(days=days_to_keep)
    deleted = await VesselLogStore(session).delete(
        VesselFilter(timestamp_before=cutoff, status=LOG_STATUS_ARCHIVED)
    )

    logger.info(f"Deleted {deleted} archived logs older than {cutoff.isoformat()}")
    return deleted
