"""Serializers for Socket.IO and HTTP payloads.

Converts vessel models to JSON-compatible dictionaries.
"""

from datetime import datetime
from typing import Any, Optional, Union

from vesseltrack.ais.models import nav_status_name, vessel_type_name
from vesseltrack.models import CurrentVessel, VesselLog


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_vessel(vessel: Union[CurrentVessel, VesselLog]) -> dict[str, Any]:
    """Serialize a current vessel or an archive entry.

    Includes display names for the classification codes. Fields that
    only exist on one table are included when present.

    Args:
        vessel: CurrentVessel or VesselLog instance

    Returns:
        Vessel dictionary for clients
    """
    data = {
        "mmsi": vessel.mmsi,
        "latitude": vessel.latitude,
        "longitude": vessel.longitude,
        "course": vessel.course,
        "speed": vessel.speed,
        "heading": vessel.heading,
        "name": vessel.name,
        "call_sign": vessel.call_sign,
        "vessel_type": vessel.vessel_type,
        "vessel_type_name": vessel_type_name(vessel.vessel_type),
        "nav_status": vessel.nav_status,
        "nav_status_name": nav_status_name(vessel.nav_status),
        "destination": vessel.destination,
        "eta": vessel.eta,
        "length": vessel.length,
        "width": vessel.width,
        "source": vessel.source,
        "timestamp": _iso(vessel.timestamp),
    }

    if isinstance(vessel, CurrentVessel):
        data["last_updated"] = _iso(vessel.last_updated)
        data["update_count"] = vessel.update_count
    else:
        data["id"] = vessel.id
        data["archived_at"] = _iso(vessel.archived_at)
        data["archive_reason"] = vessel.archive_reason
        data["status"] = vessel.status

    return data
