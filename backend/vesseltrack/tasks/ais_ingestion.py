"""Vessel collection Celery tasks.

Provides:
- The scheduled upstream poll (reconcile, broadcast, cache positions)
- Archive log retention cleanup
- Daily statistics logging
- On-demand aggressive collection
"""

import logging
from typing import Any

from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded

from vesseltrack.ais.collector import CollectionInProgressError
from vesseltrack.ais.query_service import VesselQueryService
from vesseltrack.ais.reconciler import cleanup_old_logs as delete_old_logs
from vesseltrack.ais.startup import get_collector
from vesseltrack.ais.stores import CurrentVesselStore
from vesseltrack.cache import get_redis_client
from vesseltrack.celery_app import is_worker_initialized, run_async
from vesseltrack.database.connection import get_async_session

logger = logging.getLogger(__name__)


def _not_initialized(task_id: str) -> dict[str, Any]:
    logger.error(f"[{task_id}] Worker not initialized - collector not available")
    return {
        "status": "error",
        "message": "Worker not initialized - collector not available",
        "task_id": task_id,
    }


# ==================== Scheduled Collection Task ====================

@shared_task(
    name="ais.collect_vessels",
    bind=True,
    soft_time_limit=25,
    time_limit=60,
    acks_late=True,
)
def collect_vessels(self) -> dict[str, Any]:
    """Scheduled upstream poll.

    Runs every 30 seconds via Celery Beat. A tick that finds a collection
    already running is skipped rather than queued.

    Returns:
        Dictionary with collection results
    """
    task_id = self.request.id or "manual"
    logger.info(f"[{task_id}] Starting scheduled vessel collection")

    if not is_worker_initialized():
        return _not_initialized(task_id)

    try:
        return run_async(_collect_impl(task_id))

    except SoftTimeLimitExceeded:
        logger.warning(f"[{task_id}] Task soft time limit exceeded")
        return {
            "status": "timeout",
            "message": "Task exceeded soft time limit",
            "task_id": task_id,
        }

    except Exception as e:
        logger.exception(f"[{task_id}] Unexpected error: {e}")
        return {
            "status": "error",
            "message": str(e),
            "task_id": task_id,
        }


async def _collect_impl(task_id: str) -> dict[str, Any]:
    collector = get_collector()
    if collector is None:
        return _not_initialized(task_id)

    result = await collector.run_scheduled()
    if result is None:
        logger.info(f"[{task_id}] Collection already in progress, tick skipped")
        return {"status": "skipped", "message": "Collection already in progress", "task_id": task_id}

    cached = 0
    if result.collected > 0:
        cached = await _cache_latest_positions(result.collected)

    await _publish_status(collector.get_status())

    logger.info(
        f"[{task_id}] Collected {result.collected}, stored {result.stored}, "
        f"cached {cached} in {result.duration}ms (errors: {len(result.errors)})"
    )

    return {
        "status": "success",
        **result.to_dict(),
        "positions_cached": cached,
        "task_id": task_id,
    }


async def _cache_latest_positions(count: int) -> int:
    """Cache the positions of the most recently updated vessels in Redis."""
    redis_client = get_redis_client()
    if not redis_client or not redis_client.is_connected:
        return 0

    async with get_async_session() as session:
        vessels = await CurrentVesselStore(session).find(
            sort=[("last_updated", "desc")],
            limit=count,
        )

    return await redis_client.set_vessel_positions_batch(vessels)


async def _publish_status(status: dict[str, Any]) -> None:
    redis_client = get_redis_client()
    if redis_client and redis_client.is_connected:
        await redis_client.set_collector_status(status)


# ==================== Cleanup Task ====================

@shared_task(
    name="ais.cleanup_old_logs",
    bind=True,
    soft_time_limit=600,
    time_limit=720,
)
def cleanup_old_logs(self, days_to_keep: int = 90) -> dict[str, Any]:
    """Delete archived log entries older than ``days_to_keep`` days.

    Scheduled daily at 2 AM UTC. Current state is never touched.
    """
    task_id = self.request.id or "manual"
    logger.info(f"[{task_id}] Starting archive cleanup task (keeping {days_to_keep} days)")

    try:
        return run_async(_cleanup_impl(days_to_keep, task_id))

    except Exception as e:
        logger.exception(f"[{task_id}] Error cleaning up archived logs: {e}")
        return {
            "status": "error",
            "message": str(e),
            "task_id": task_id,
        }


async def _cleanup_impl(days_to_keep: int, task_id: str) -> dict[str, Any]:
    async with get_async_session() as session:
        deleted = await delete_old_logs(session, days_to_keep)
        await session.commit()

    logger.info(f"[{task_id}] Cleaned up {deleted} archived logs")

    return {
        "status": "success",
        "deleted_count": deleted,
        "days_to_keep": days_to_keep,
        "task_id": task_id,
    }


# ==================== Statistics Task ====================

@shared_task(name="ais.log_daily_statistics", bind=True)
def log_daily_statistics(self) -> dict[str, Any]:
    """Log current/archived counts for the daily report."""
    task_id = self.request.id or "manual"

    try:
        stats = run_async(_statistics_impl())
    except Exception as e:
        logger.exception(f"[{task_id}] Error collecting statistics: {e}")
        return {"status": "error", "message": str(e), "task_id": task_id}

    logger.info(
        f"[{task_id}] Daily statistics: {stats['current_vessels']} current vessels, "
        f"{stats['total_logs']} archived logs, {stats['unique_vessels']} unique vessels"
    )
    return {
        "status": "success",
        "current_vessels": stats["current_vessels"],
        "total_logs": stats["total_logs"],
        "unique_vessels": stats["unique_vessels"],
        "task_id": task_id,
    }


async def _statistics_impl() -> dict[str, Any]:
    async with get_async_session() as session:
        return await VesselQueryService(session).get_statistics()


# ==================== Manual Trigger Task ====================

@shared_task(name="ais.trigger_aggressive_collection", bind=True)
def trigger_aggressive_collection(self) -> dict[str, Any]:
    """Run an aggressive multi-request collection in the worker."""
    task_id = self.request.id or "manual"
    logger.info(f"[{task_id}] Aggressive collection triggered")

    if not is_worker_initialized():
        return _not_initialized(task_id)

    collector = get_collector()
    if collector is None:
        return _not_initialized(task_id)

    try:
        result = run_async(collector.force_aggressive_collection())
        return {"status": "success", **result.to_dict(), "task_id": task_id}

    except CollectionInProgressError as e:
        return {"status": "skipped", "message": str(e), "task_id": task_id}

    except Exception as e:
        logger.exception(f"[{task_id}] Error in aggressive collection: {e}")
        return {
            "status": "error",
            "message": str(e),
            "task_id": task_id,
        }
