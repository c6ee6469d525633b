"""Collector initialization for application and worker startup.

Provides:
- Upstream adapter construction from settings
- Process-wide collector lifecycle (initialize, get, shutdown)
"""

import logging
from typing import Any, Optional

from vesseltrack.ais.adapters.telkomsat import TelkomsatAdapter
from vesseltrack.ais.collector import VesselCollector
from vesseltrack.config import get_settings
from vesseltrack.database.connection import AsyncSessionLocal

logger = logging.getLogger(__name__)
settings = get_settings()

_collector: Optional[VesselCollector] = None


def get_default_adapter_config() -> dict[str, Any]:
    """Telkomsat adapter configuration from environment settings."""
    return {
        "name": "Telkomsat",
        "api_url": settings.telkomsat_api_url,
        "api_key": settings.telkomsat_api_key,
        "timeout_seconds": settings.telkomsat_timeout_seconds,
        "specific_timeout_seconds": settings.telkomsat_specific_timeout_seconds,
        "health_timeout_seconds": settings.telkomsat_health_timeout_seconds,
        "timezone": settings.telkomsat_timezone,
    }


def get_collector() -> Optional[VesselCollector]:
    """Get the process-wide collector, if initialized."""
    return _collector


def set_collector(collector: Optional[VesselCollector]) -> None:
    global _collector
    _collector = collector


async def initialize_collector(
    adapter_config: Optional[dict[str, Any]] = None,
    with_broadcaster: bool = True,
) -> VesselCollector:
    """Create the upstream adapter and collector and register them globally.

    Args:
        adapter_config: Overrides for the adapter configuration
        with_broadcaster: Attach the live broadcaster so collections push
            updates to connected clients

    Returns:
        Initialized VesselCollector
    """
    existing = get_collector()
    if existing is not None:
        return existing

    config = get_default_adapter_config()
    if adapter_config:
        config.update(adapter_config)

    if not config.get("api_key"):
        logger.warning("TELKOMSAT_API_KEY is not set; upstream requests will be rejected")

    broadcaster = None
    if with_broadcaster:
        from vesseltrack.socketio.server import get_broadcaster
        broadcaster = get_broadcaster()

    collector = VesselCollector(
        adapter=TelkomsatAdapter(config),
        session_factory=AsyncSessionLocal,
        broadcaster=broadcaster,
        interval_seconds=settings.collection_interval_seconds,
        batch_size=settings.reconcile_batch_size,
        batch_pause_seconds=settings.reconcile_batch_pause_seconds,
    )
    set_collector(collector)

    logger.info(
        f"Vessel collector initialized with adapter {collector.adapter.name} "
        f"(interval {settings.collection_interval_seconds:g}s)"
    )
    return collector


async def shutdown_collector() -> None:
    """Close the collector's adapter and clear the global reference."""
    collector = get_collector()

    if collector:
        logger.info("Shutting down vessel collector...")
        await collector.close()
        set_collector(None)
        logger.info("Vessel collector shutdown complete")
