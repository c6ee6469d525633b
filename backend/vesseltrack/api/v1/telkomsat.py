"""Upstream collection API endpoints.

Provides endpoints for:
- Manual, aggressive and targeted collection triggers
- Collector status, health and performance metrics
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from vesseltrack.ais.collector import VesselCollector
from vesseltrack.ais.models import utc_now
from vesseltrack.ais.startup import get_collector
from vesseltrack.api.v1.schemas import SpecificVesselsRequest
from vesseltrack.cache import get_redis_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telkomsat", tags=["Telkomsat Collection"])


def require_collector() -> VesselCollector:
    collector = get_collector()

    if collector is None:
        raise HTTPException(
            status_code=503,
            detail="Vessel collector not initialized",
        )

    return collector


def _failure(action: str, error: Exception) -> dict[str, Any]:
    logger.error(f"{action} failed: {error}")
    return {
        "success": False,
        "error": str(error),
        "timestamp": utc_now(),
    }


@router.post("/collect")
async def trigger_collection(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    """Collect from upstream now; fails fast if a collection is running."""
    try:
        result = await collector.manual_collection()
    except Exception as e:
        return _failure("Manual collection", e)

    return {"success": True, "data": result.to_dict(), "timestamp": utc_now()}


@router.post("/collect/aggressive")
async def trigger_aggressive_collection(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    """Issue several large upstream requests in parallel and merge them."""
    try:
        result = await collector.force_aggressive_collection()
    except Exception as e:
        return _failure("Aggressive collection", e)

    return {"success": True, "data": result.to_dict(), "timestamp": utc_now()}


@router.post("/collect/vessels")
async def collect_specific_vessels(
    request: SpecificVesselsRequest,
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    """Refresh an explicit list of vessels from upstream."""
    try:
        result = await collector.collect_specific_vessels(request.mmsis)
    except Exception as e:
        return _failure("Specific vessel collection", e)

    return {
        "success": True,
        "data": result.to_dict(),
        "requested": len(request.mmsis),
        "timestamp": utc_now(),
    }


@router.get("/status")
async def get_status(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    """Collector status of this process plus the last status published by the worker."""
    worker_status = None
    redis_client = get_redis_client()
    if redis_client and redis_client.is_connected:
        worker_status = await redis_client.get_collector_status()

    return {
        "success": True,
        "data": collector.get_status(),
        "worker": worker_status,
        "source": collector.adapter.get_source_info().to_dict(),
        "timestamp": utc_now(),
    }


@router.get("/health")
async def health_check(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    health = await collector.health_check()
    return {"success": True, "data": health, "timestamp": utc_now()}


@router.get("/metrics")
async def get_performance_metrics(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    return {
        "success": True,
        "data": collector.get_performance_metrics(),
        "timestamp": utc_now(),
    }


@router.post("/metrics/reset")
async def reset_metrics(
    collector: VesselCollector = Depends(require_collector),
) -> dict[str, Any]:
    collector.reset_metrics()
    return {
        "success": True,
        "message": "Collector metrics reset",
        "timestamp": utc_now(),
    }
