"""Advisory estimates and summary statistics attached to HTTP responses."""

import math
from datetime import datetime
from typing import Any, Optional, Sequence

from vesseltrack.ais.models import utc_now

EARTH_RADIUS_KM = 6371.0
PDF_MAX_RECORDS = 5000


def recommended_approach(count: int) -> str:
    if count <= 100:
        return "single-page"
    if count <= 1000:
        return "manual-pagination"
    if count <= 5000:
        return "auto-fetch"
    if count <= 20000:
        return "auto-fetch-with-patience"
    return "consider-refinement"


def estimated_seconds(count: int) -> float:
    """Half a second per 100-record page."""
    return math.ceil(count / 100) * 0.5


def estimated_download_time(count: int) -> str:
    seconds = estimated_seconds(count)
    if seconds < 60:
        return f"~{seconds:g} seconds"
    if seconds < 3600:
        return f"~{math.ceil(seconds / 60)} minutes"
    return f"~{math.ceil(seconds / 3600)} hours"


def estimated_memory_usage(count: int) -> str:
    # Roughly 2 KB per vessel
    total_mb = math.ceil(count * 0.002)
    if total_mb < 1:
        return "< 1 MB"
    if total_mb < 1024:
        return f"~{total_mb} MB"
    return f"~{total_mb / 1024:.1f} GB"


def optimization_suggestion(count: int) -> str:
    if count <= 500:
        return "Perfect size for quick processing"
    if count <= 2000:
        return "Good size - recommended for auto-fetch"
    if count <= 10000:
        return "Large dataset - consider smaller date range"
    return "Very large dataset - strongly recommend area or time refinement"


def estimate_file_size(count: int, file_format: str) -> str:
    """Rough size of a CSV (200 B/row) or PDF (100 B/row + 50 KB) export."""
    if file_format == "csv":
        total = count * 200
        if total < 1024:
            return f"{math.ceil(total)} bytes"
        if total < 1024 * 1024:
            return f"{math.ceil(total / 1024)} KB"
        return f"{total / (1024 * 1024):.1f} MB"

    total = count * 100 + 50000
    if total < 1024 * 1024:
        return f"{math.ceil(total / 1024)} KB"
    return f"{total / (1024 * 1024):.1f} MB"


def export_readiness(count: int) -> dict[str, Any]:
    pdf_ready = count <= PDF_MAX_RECORDS
    return {
        "pdf_ready": pdf_ready,
        "csv_ready": True,
        "recommended_format": "PDF or CSV" if pdf_ready else "CSV",
        "estimated_file_size": {
            "csv": estimate_file_size(count, "csv"),
            "pdf": estimate_file_size(count, "pdf") if pdf_ready else "Too large for PDF",
        },
    }


def recommendations(count: int) -> dict[str, str]:
    return {
        "approach": recommended_approach(count),
        "estimated_download_time": estimated_download_time(count),
        "memory_usage": estimated_memory_usage(count),
        "suggestion": optimization_suggestion(count),
    }


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def track_distance_km(points: Sequence[dict[str, Any]]) -> float:
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        if None in (prev.get("latitude"), prev.get("longitude"),
                    curr.get("latitude"), curr.get("longitude")):
            continue
        total += haversine_km(
            prev["latitude"], prev["longitude"], curr["latitude"], curr["longitude"]
        )
    return total


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)} m"
    return f"{km:.1f} km"


def playback_statistics(points: Sequence[dict[str, Any]], duration_hours: float) -> dict[str, Any]:
    """Average/max speed and distance covered along a playback track."""
    speeds = [p.get("speed") or 0 for p in points]
    return {
        "avg_speed": round(sum(speeds) / len(speeds), 1) if speeds else 0,
        "max_speed": max(speeds) if speeds else 0,
        "distance_covered": format_distance(track_distance_km(points)),
        "time_span": f"{duration_hours:.1f} hours",
    }


def time_ago(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    if moment is None:
        return "Unknown"
    elapsed = ((now or utc_now()) - moment).total_seconds()
    minutes = int(elapsed // 60)
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = int(elapsed // 3600)
    if hours < 24:
        return f"{hours} hours ago"
    return f"{int(elapsed // 86400)} days ago"
