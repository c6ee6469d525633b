"""Export shaping for POI area and playback results."""

from typing import Any, Optional, Sequence, Union

from vesseltrack.ais.models import (
    DEFAULT_SOURCE,
    DataType,
    nav_status_name,
    utc_now,
    vessel_type_name,
)
from vesseltrack.models import CurrentVessel, VesselLog

EXPORT_HEADERS = (
    "MMSI",
    "Vessel Name",
    "Latitude",
    "Longitude",
    "Speed (knots)",
    "Course (°)",
    "Heading (°)",
    "Vessel Type",
    "Navigation Status",
    "Call Sign",
    "Destination",
    "ETA",
    "Length (m)",
    "Width (m)",
    "Timestamp",
    "Source",
    "Data Source",
)


def _number(value: Optional[float]) -> float:
    return value if value is not None else 0


def transform_for_export(vessel: Union[CurrentVessel, VesselLog]) -> dict[str, Any]:
    """Flatten a vessel row into an export record.

    Missing optional values get display defaults, and classification codes
    are accompanied by their names.
    """
    archived = isinstance(vessel, VesselLog)
    timestamp = vessel.timestamp or utc_now()

    record = {
        "mmsi": vessel.mmsi,
        "name": vessel.name or "Unknown",
        "latitude": _number(vessel.latitude),
        "longitude": _number(vessel.longitude),
        "speed": _number(vessel.speed),
        "course": _number(vessel.course),
        "heading": _number(vessel.heading),
        "vessel_type": vessel_type_name(vessel.vessel_type),
        "vessel_type_code": vessel.vessel_type or 0,
        "nav_status": nav_status_name(vessel.nav_status),
        "nav_status_code": vessel.nav_status or 0,
        "call_sign": vessel.call_sign or "",
        "destination": vessel.destination or "",
        "eta": vessel.eta or "",
        "length": _number(vessel.length),
        "width": _number(vessel.width),
        "timestamp": timestamp.isoformat(),
        "source": vessel.source or DEFAULT_SOURCE,
        "data_source": "archived" if archived else "current",
    }

    if archived:
        record["last_updated"] = timestamp.isoformat()
        record["archived_at"] = vessel.archived_at.isoformat() if vessel.archived_at else None
        record["archive_reason"] = vessel.archive_reason
        record["status"] = vessel.status
    else:
        last_updated = vessel.last_updated or timestamp
        record["last_updated"] = last_updated.isoformat()

    return record


def prepare_export_data(
    records: Sequence[dict[str, Any]],
    statistics: dict[str, Any],
    data_type: Union[DataType, str],
) -> dict[str, Any]:
    """Summary, CSV headers and records for a client-side download."""
    valid = [r for r in records if r is not None]
    return {
        "summary": {
            "exported_at": utc_now().isoformat(),
            "total_records": len(valid),
            "area_size": statistics.get("area_size", "Unknown"),
            "bounds": statistics.get("bounds", {}),
            "data_type": DataType(data_type).value,
            "time_range": statistics.get("time_range", {}),
        },
        "headers": list(EXPORT_HEADERS),
        "records": valid,
    }
