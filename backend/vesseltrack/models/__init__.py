"""Database models for VesselTrack."""

from vesseltrack.models.current_vessel import CurrentVessel
from vesseltrack.models.vessel_fields import VESSEL_FIELD_NAMES
from vesseltrack.models.vessel_log import (
    LOG_STATUS_ACTIVE,
    LOG_STATUS_ARCHIVED,
    LOG_STATUS_PURGED,
    VesselLog,
)

__all__ = [
    "CurrentVessel",
    "VesselLog",
    "VESSEL_FIELD_NAMES",
    "LOG_STATUS_ACTIVE",
    "LOG_STATUS_ARCHIVED",
    "LOG_STATUS_PURGED",
]
