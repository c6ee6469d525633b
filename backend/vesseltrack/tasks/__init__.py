"""Celery tasks for VesselTrack.

Usage:
    # Start Celery worker (initializes the collector automatically)
    celery -A vesseltrack.celery_app worker -Q ais,default -c 1 -l info

    # Start Celery beat (scheduler)
    celery -A vesseltrack.celery_app beat -l info

Note:
    The worker initializes its own collector when the worker process
    starts (via the worker_process_init signal), separately from the
    FastAPI app's collector.
"""

from vesseltrack.celery_app import (
    celery_app,
    get_celery_app,
    is_worker_initialized,
    run_async,
)

from vesseltrack.tasks.ais_ingestion import (
    cleanup_old_logs,
    collect_vessels,
    log_daily_statistics,
    trigger_aggressive_collection,
)

__all__ = [
    # Celery app
    "celery_app",
    "get_celery_app",
    # Utilities
    "run_async",
    "is_worker_initialized",
    # Tasks
    "collect_vessels",
    "cleanup_old_logs",
    "log_daily_statistics",
    "trigger_aggressive_collection",
]
