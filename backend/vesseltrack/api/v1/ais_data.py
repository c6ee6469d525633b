"""AIS data API endpoints.

Provides endpoints for:
- Batch ingest of position reports (reconciled or bulk upsert)
- Current fleet and single-vessel reads
- Archive log queries, playback and statistics
- POI (point of interest) area count, paging and auto-fetch
- Manual archive cleanup and service health
"""

import logging
import math
import platform
import sys
import time
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vesseltrack.ais import insights
from vesseltrack.ais.models import DataType, to_naive_utc, utc_now
from vesseltrack.ais.query_builder import (
    AreaQuery,
    AreaQueryError,
    BoundingBox,
    calculate_density,
    classify_density,
)
from vesseltrack.ais.query_service import VesselNotFoundError, VesselQueryService
from vesseltrack.ais.reconciler import VesselReconciler, cleanup_old_logs
from vesseltrack.api.v1.schemas import VesselReportIn
from vesseltrack.config import get_settings
from vesseltrack.database.connection import get_async_db
from vesseltrack.socketio.serializers import serialize_vessel

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/ais-data", tags=["AIS Data"])

_started_at = time.monotonic()


def _percent(part: float, whole: float, digits: int = 0) -> float:
    if not whole:
        return 0
    value = part / whole * 100
    return round(value, digits) if digits else round(value)


def get_query_service(db: AsyncSession = Depends(get_async_db)) -> VesselQueryService:
    return VesselQueryService(
        db,
        page_size=settings.poi_page_size,
        max_area_km2=settings.poi_max_area_km2,
        page_pause_seconds=settings.poi_page_pause_seconds,
    )


def get_bounds(
    min_longitude: float = Query(..., description="Western edge (degrees)"),
    max_longitude: float = Query(..., description="Eastern edge (degrees)"),
    min_latitude: float = Query(..., description="Southern edge (degrees)"),
    max_latitude: float = Query(..., description="Northern edge (degrees)"),
) -> BoundingBox:
    """Bounding box from query parameters; invalid boxes are a 400."""
    try:
        return BoundingBox(
            min_longitude=min_longitude,
            max_longitude=max_longitude,
            min_latitude=min_latitude,
            max_latitude=max_latitude,
        )
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_area_query(
    bounds: BoundingBox = Depends(get_bounds),
    start_date: Optional[datetime] = Query(None, description="Window start (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Window end (ISO 8601)"),
    data_type: DataType = Query(DataType.VESSEL, description="vessel, track, ais or all"),
    page: int = Query(1, ge=1, description="Page number"),
) -> AreaQuery:
    """POI area query from query parameters; invalid queries are a 400."""
    try:
        return AreaQuery(
            bounds=bounds,
            start_date=start_date,
            end_date=end_date,
            data_type=data_type,
            page=page,
            page_size=settings.poi_page_size,
        )
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ==================== Ingest ====================


@router.post("/update")
async def update_vessel_data(
    reports: list[VesselReportIn] = Body(...),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Reconcile a batch of position reports.

    Each report archives the vessel's previous state before overwriting
    it. Failures are reported per report and never abort the batch.
    """
    started = time.monotonic()
    try:
        reconciler = VesselReconciler(
            db,
            batch_size=settings.reconcile_batch_size,
            batch_pause_seconds=settings.reconcile_batch_pause_seconds,
        )
        result = await reconciler.reconcile([r.to_report() for r in reports])
        elapsed = max(time.monotonic() - started, 1e-6)

        return {
            "success": True,
            "result": result.to_dict(),
            "performance": {
                "processing_time": int(elapsed * 1000),
                "vessels_per_second": round(len(reports) / elapsed),
                "batch_size": len(reports),
            },
            "timestamp": utc_now(),
        }
    except Exception as e:
        logger.error(f"Update vessel data failed: {e}")
        return {
            "success": False,
            "error": str(e),
            "batch_size": len(reports),
            "timestamp": utc_now(),
        }


@router.post("/bulk-upsert")
async def bulk_upsert_vessels(
    reports: list[VesselReportIn] = Body(...),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Overwrite current state for many vessels without archiving."""
    try:
        if len(reports) > settings.bulk_upsert_max_batch:
            raise ValueError(
                f"Batch too large: {len(reports)} vessels. "
                f"Maximum allowed: {settings.bulk_upsert_max_batch:,} vessels per batch."
            )

        logger.info(f"Bulk upserting {len(reports)} vessels")
        result = await VesselReconciler(db).bulk_reconcile([r.to_report() for r in reports])

        duration_ms = max(result.duration_ms, 1)
        error_count = len(result.errors)
        return {
            "success": True,
            "result": result.to_dict(),
            "performance": {
                "vessels_per_second": round(len(reports) / (duration_ms / 1000)),
                "avg_time_per_vessel": round(duration_ms / len(reports)) if reports else 0,
                "efficiency": "Perfect" if error_count == 0
                else f"{100 - _percent(error_count, len(reports), 1):.1f}%",
            },
            "operation": {
                "batch_size": len(reports),
                "processing_time": f"{duration_ms / 1000:.2f} seconds",
                "success_rate": f"{100 - _percent(error_count, len(reports), 1):.1f}%",
                "error_count": error_count,
            },
            "timestamp": utc_now(),
        }
    except Exception as e:
        logger.error(f"Bulk upsert failed: {e}")
        return {
            "success": False,
            "error": str(e),
            "batch_size": len(reports),
            "timestamp": utc_now(),
        }


# ==================== Current State ====================


@router.get("/current")
async def get_current_vessels(
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of vessels"),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Current vessel positions, most recently updated first."""
    try:
        vessels = await service.get_current_vessels(limit)
    except Exception as e:
        logger.error(f"Get current vessels failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get current vessels: {e}")

    return {
        "success": True,
        "count": len(vessels),
        "data": [serialize_vessel(v) for v in vessels],
        "metadata": {
            "limited": limit is not None,
            "requested_limit": limit,
            "has_more": limit is not None and len(vessels) == limit,
        },
        "timestamp": utc_now(),
    }


@router.get("/current/{mmsi}")
async def get_current_vessel(
    mmsi: int,
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    try:
        vessel = await service.get_current_vessel(mmsi)
    except VesselNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "success": True,
        "data": serialize_vessel(vessel),
        "metadata": {
            "mmsi": mmsi,
            "found": True,
            "last_update": vessel.last_updated,
        },
        "timestamp": utc_now(),
    }


# ==================== Archive ====================


@router.get("/logs")
async def query_vessel_logs(
    mmsi: Optional[int] = Query(None, description="Single MMSI"),
    mmsis: Optional[list[int]] = Query(None, description="Several MMSIs"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    source: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    sort_by: str = Query("timestamp"),
    sort_order: str = Query("desc"),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Paginated archive query."""
    try:
        result = await service.query_logs(
            mmsi=mmsi,
            mmsi_list=mmsis,
            start_date=start_date,
            end_date=end_date,
            source=source,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=f"Failed to query vessel logs: {e}")

    return {
        "success": True,
        "data": [serialize_vessel(log) for log in result["data"]],
        "pagination": result["pagination"],
        "query_info": {
            "filters": {
                "mmsi": mmsi,
                "date_range": f"{start_date.isoformat()} to {end_date.isoformat()}"
                if start_date and end_date else "All time",
                "source": source or "All sources",
            },
            "performance": {"page": page, "page_size": limit},
        },
        "timestamp": utc_now(),
    }


@router.get("/playback/{mmsi}")
async def get_playback_data(
    mmsi: int,
    start_date: datetime = Query(..., description="Start of playback window"),
    end_date: datetime = Query(..., description="End of playback window"),
    interval: int = Query(5, ge=0, description="Sampling interval in minutes"),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Archived track of one vessel, sampled for replay."""
    try:
        points = await service.get_playback(mmsi, start_date, end_date, interval)
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=f"Failed to get playback data: {e}")

    duration_hours = (to_naive_utc(end_date) - to_naive_utc(start_date)).total_seconds() / 3600

    return {
        "success": True,
        "mmsi": mmsi,
        "count": len(points),
        "data": points,
        "playback_info": {
            "start_date": start_date,
            "end_date": end_date,
            "interval_minutes": interval,
            "total_duration": f"{duration_hours:.1f} hours",
            "track_points": len(points),
            "sampling_rate": "Full resolution" if interval <= 1 else f"{interval} minute intervals",
        },
        "statistics": insights.playback_statistics(points, duration_hours),
        "timestamp": utc_now(),
    }


@router.get("/stats")
async def get_statistics(
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    stats = await service.get_statistics()
    current = stats["current_vessels"]
    total_logs = stats["total_logs"]

    return {
        "success": True,
        "data": stats,
        "analysis": {
            "data_health": "Active" if current > 0 else "No current data",
            "archive_status": f"{total_logs:,} archived records" if total_logs > 0 else "No archive",
            "unique_vessel_ratio": _percent(stats["unique_vessels"], current),
            "data_age": f"Last updated {insights.time_ago(stats['last_update'])}"
            if stats["last_update"] else "Unknown",
        },
        "timestamp": utc_now(),
    }


@router.get("/vessel-counts-by-source")
async def get_vessel_counts_by_source(
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Current and archived counts per ingest source."""
    counts = await service.get_vessel_counts_by_source()

    total_current = sum(item["current_count"] for item in counts)
    total_archived = sum(item["archived_count"] for item in counts)

    return {
        "success": True,
        "data": [
            {
                **item,
                "total_vessels": item["current_count"] + item["archived_count"],
                "current_percentage": _percent(item["current_count"], total_current),
                "archived_percentage": _percent(item["archived_count"], total_archived),
            }
            for item in counts
        ],
        "summary": {
            "total_sources": len(counts),
            "total_current_vessels": total_current,
            "total_archived_vessels": total_archived,
            "grand_total": total_current + total_archived,
            "most_active_source": counts[0]["source"] if counts else "None",
        },
        "timestamp": utc_now(),
    }


@router.post("/cleanup")
async def manual_cleanup(
    days: int = Query(settings.log_retention_days, ge=0, description="Days of archive to keep"),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Delete archived entries older than ``days``; current state is untouched."""
    started = time.monotonic()
    try:
        deleted = await cleanup_old_logs(db, days)
        await db.commit()
    except Exception as e:
        logger.error(f"Manual cleanup failed: {e}")
        return {"success": False, "error": str(e), "timestamp": utc_now()}

    duration_ms = int((time.monotonic() - started) * 1000)
    return {
        "success": True,
        "deleted_count": deleted,
        "days_to_keep": days,
        "message": f"Cleaned up {deleted:,} old logs older than {days} days",
        "performance": {"duration": duration_ms},
        "timestamp": utc_now(),
    }


# ==================== POI Area ====================


@router.get("/poi-area/count")
async def get_poi_area_count(
    query: AreaQuery = Depends(get_area_query),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Count records in a POI area and recommend how to fetch them."""
    try:
        result = await service.get_area_count(query)
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = result["total_count"]
    breakdown = result["data_breakdown"]
    area = query.bounds.area_km2

    return {
        "success": True,
        **result,
        "page_size": settings.poi_page_size,
        "bounds": query.bounds.to_dict(),
        "recommendations": insights.recommendations(total),
        "area_analysis": {
            "bounding_box_size": area,
            "density": calculate_density(total, area) if breakdown["total_unique"] > 0 else 0,
            "classification": classify_density(total, area),
            "data_distribution": {
                "current_vessels": breakdown["current_vessels"],
                "archived_vessels": breakdown["archived_vessels"],
                "unique_vessels": breakdown["total_unique"],
                "data_quality": _percent(breakdown["total_unique"], total),
            },
        },
        "timestamp": utc_now(),
    }


@router.get("/poi-area")
async def get_vessels_by_poi_area(
    query: AreaQuery = Depends(get_area_query),
    auto_fetch: bool = Query(False, description="Fetch every page in one request"),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """One page of a POI area, or every page with ``auto_fetch``."""
    try:
        if auto_fetch:
            result = await service.get_area_all(query)
        else:
            result = await service.get_area_page(query)
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=f"Failed to query POI area: {e}")

    if auto_fetch:
        total_pages = result["total_pages"]
        processing_time = max(result["processing_time"], 1)
        return {
            "success": True,
            "mode": "auto-fetch",
            **result,
            "performance": {
                "avg_time_per_page": round(processing_time / total_pages) if total_pages else 0,
                "vessels_per_second": round(result["total_fetched"] / (processing_time / 1000)),
                "efficiency": f"{_percent(result['total_fetched'], result['expected_total'], 1):.1f}%",
                "data_quality": {
                    "completeness": result["is_complete"],
                    "error_count": len(result["errors"]),
                },
            },
            "export_info": insights.export_readiness(result["total_fetched"]),
            "timestamp": utc_now(),
        }

    pagination = result["pagination"]
    page = pagination["page"]
    total_pages = pagination["total_pages"]
    return {
        "success": True,
        "mode": "paginated",
        **result,
        "navigation": {
            "is_first_page": page == 1,
            "is_last_page": not pagination["has_next_page"],
            "next_page": page + 1 if pagination["has_next_page"] else None,
            "prev_page": page - 1 if pagination["has_prev_page"] else None,
            "progress": f"{page}/{total_pages}",
            "completion_percentage": _percent(page, total_pages),
            "remaining_pages": max(total_pages - page, 0),
            "remaining_vessels": max(pagination["total_count"] - page * pagination["page_size"], 0),
        },
        "timestamp": utc_now(),
    }


@router.get("/poi-area/all")
async def get_all_poi_area_data(
    query: AreaQuery = Depends(get_area_query),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Every page of a POI area, refused above the auto-fetch ceiling."""
    started = time.monotonic()
    try:
        pre_check = await service.get_area_count(query)
        if pre_check["total_count"] > settings.poi_max_auto_fetch:
            raise AreaQueryError(
                f"Dataset too large: {pre_check['total_count']:,} vessels. "
                f"Please use pagination or refine your search area. "
                f"Maximum allowed: {settings.poi_max_auto_fetch:,} vessels."
            )

        logger.info(
            f"Auto-fetching all POI area data for {query.data_type.value} "
            f"({pre_check['total_count']} records)"
        )
        result = await service.get_area_all(query)
    except AreaQueryError as e:
        raise HTTPException(status_code=400, detail=f"Failed to fetch all POI area data: {e}")

    total_ms = max(int((time.monotonic() - started) * 1000), 1)
    total_pages = result["total_pages"]
    fetched = result["total_fetched"]
    failed_pages = len(result["errors"])

    return {
        "success": True,
        "mode": "complete-fetch",
        **result,
        "performance": {
            "total_time": total_ms,
            "avg_time_per_page": round(total_ms / total_pages) if total_pages else 0,
            "vessels_per_second": round(fetched / (total_ms / 1000)),
            "efficiency": "Optimal" if result["is_complete"] else "Partial",
        },
        "summary": {
            "total_time": f"{total_ms / 1000:.2f} seconds",
            "data_integrity": {
                "expected_vessels": result["expected_total"],
                "actual_vessels": fetched,
                "completeness": f"{_percent(fetched, result['expected_total'], 1):.1f}%",
                "errors": failed_pages,
                "successful_pages": total_pages - failed_pages,
                "failed_pages": failed_pages,
            },
        },
        "download_ready": insights.export_readiness(fetched),
        "timestamp": utc_now(),
    }


@router.get("/poi-area/quick-count")
async def get_quick_vessel_count(
    bounds: BoundingBox = Depends(get_bounds),
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    """Count current vessels inside a bounding box."""
    started = time.monotonic()
    count = await service.get_quick_count(bounds)
    query_ms = int((time.monotonic() - started) * 1000)
    area = bounds.area_km2

    return {
        "success": True,
        "count": count,
        "bounds": bounds.to_dict(),
        "estimates": {
            "total_pages": math.ceil(count / settings.poi_page_size),
            "estimated_time": insights.estimated_download_time(count),
            "recommended_approach": insights.recommended_approach(count),
            "memory_estimate": insights.estimated_memory_usage(count),
            "query_time": f"{query_ms}ms",
        },
        "area_info": {
            "size_km2": area,
            "density": calculate_density(count, area),
            "classification": classify_density(count, area),
            "coordinates": {"center": bounds.center, "span": bounds.span},
        },
        "timestamp": utc_now(),
    }


# ==================== Health ====================


@router.get("/health")
async def health_check(
    service: VesselQueryService = Depends(get_query_service),
) -> dict[str, Any]:
    try:
        stats = await service.get_statistics()
    except Exception as e:
        return {
            "success": False,
            "status": "unhealthy",
            "service": "ais-data",
            "error": str(e),
            "timestamp": utc_now(),
        }

    return {
        "success": True,
        "status": "healthy",
        "service": "ais-data",
        "uptime": round(time.monotonic() - _started_at),
        "data": {
            **stats,
            "data_age": insights.time_ago(stats["last_update"]),
        },
        "system_health": {
            "python_version": sys.version.split()[0],
            "platform": platform.system().lower(),
        },
        "timestamp": utc_now(),
    }
