"""Celery application configuration for VesselTrack.

Provides:
- Celery app instance with Redis broker
- Task routing configuration
- Beat schedule for the 30-second upstream poll and daily maintenance
- Worker initialization with the vessel collector
"""

import asyncio
import logging
from typing import Optional

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init, worker_process_shutdown
from kombu import Exchange, Queue

from vesseltrack.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Global event loop for async operations in Celery worker
_worker_loop: Optional[asyncio.AbstractEventLoop] = None
_worker_collector_initialized = False


def get_worker_loop() -> asyncio.AbstractEventLoop:
    """Get or create the worker's event loop."""
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop


def run_async(coro):
    """Run an async coroutine in the worker's event loop.

    The collector, its HTTP client and the database engine are bound to
    this loop, so every task must go through it.
    """
    loop = get_worker_loop()
    return loop.run_until_complete(coro)


def create_celery_app() -> Celery:
    """Create and configure Celery application.

    Returns:
        Configured Celery app instance
    """
    app = Celery(
        "vesseltrack",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=[
            "vesseltrack.tasks.ais_ingestion",
        ],
    )

    app.conf.update(
        # Serialization
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # Timezone
        timezone="UTC",
        enable_utc=True,

        # Task execution
        task_track_started=True,
        task_time_limit=300,  # 5 minute hard limit
        task_soft_time_limit=240,  # 4 minute soft limit
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        # Worker configuration
        worker_prefetch_multiplier=1,
        worker_concurrency=1,  # One collector per worker process

        # Result backend
        result_expires=3600,  # Results expire after 1 hour
        result_extended=True,

        # Task routing
        task_routes={
            "ais.*": {"queue": "ais"},
            "default": {"queue": "default"},
        },

        # Queue definitions
        task_queues=(
            Queue("default", Exchange("default"), routing_key="default"),
            Queue("ais", Exchange("ais"), routing_key="ais"),
        ),
        task_default_queue="default",
        task_default_exchange="default",
        task_default_routing_key="default",
    )

    app.conf.beat_schedule = {
        # Poll upstream every 30 seconds; stale ticks are dropped
        "ais-collect-every-30s": {
            "task": "ais.collect_vessels",
            "schedule": settings.collection_interval_seconds,
            "args": (),
            "options": {"queue": "ais", "expires": 25},
        },
        # Delete archived logs past retention daily at 2 AM UTC
        "ais-cleanup-daily": {
            "task": "ais.cleanup_old_logs",
            "schedule": crontab(hour=2, minute=0),
            "args": (settings.log_retention_days,),
            "options": {"queue": "ais"},
        },
        # Log store statistics daily at 1 AM UTC
        "ais-daily-statistics": {
            "task": "ais.log_daily_statistics",
            "schedule": crontab(hour=1, minute=0),
            "args": (),
            "options": {"queue": "ais"},
        },
    }

    return app


# Global Celery app instance
celery_app = create_celery_app()


@worker_process_init.connect
def init_worker_process(**kwargs):
    """Initialize the vessel collector when a worker process starts.

    Each worker process owns its collector; the single-flight guard is
    therefore per process, which is why the ais queue runs with
    concurrency 1.
    """
    global _worker_collector_initialized

    logger.info("Initializing Celery worker process...")

    try:
        loop = get_worker_loop()

        from vesseltrack.ais.startup import initialize_collector
        from vesseltrack.cache import init_redis_client

        async def _init():
            collector = await initialize_collector()
            try:
                await init_redis_client()
            except Exception as e:
                logger.warning(f"Redis unavailable in worker, position caching disabled: {e}")
            return collector

        collector = loop.run_until_complete(_init())
        _worker_collector_initialized = collector is not None

        logger.info("Celery worker process initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize worker process: {e}")
        _worker_collector_initialized = False


@worker_process_shutdown.connect
def shutdown_worker_process(**kwargs):
    """Cleanup when Celery worker process shuts down."""
    global _worker_loop, _worker_collector_initialized

    logger.info("Shutting down Celery worker process...")

    try:
        if _worker_loop and not _worker_loop.is_closed():
            from vesseltrack.ais.startup import shutdown_collector
            from vesseltrack.cache import close_redis_client

            _worker_loop.run_until_complete(shutdown_collector())
            _worker_loop.run_until_complete(close_redis_client())

            _worker_loop.close()
            _worker_loop = None

        _worker_collector_initialized = False
        logger.info("Celery worker process shutdown complete")

    except Exception as e:
        logger.error(f"Error during worker shutdown: {e}")


def is_worker_initialized() -> bool:
    """Check if the worker's collector is initialized."""
    return _worker_collector_initialized


def get_celery_app() -> Celery:
    return celery_app
