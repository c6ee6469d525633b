"""Pydantic request schemas for API v1 endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from vesseltrack.ais.models import DEFAULT_SOURCE, PositionReport, to_naive_utc


# =============================================================================
# Ingest
# =============================================================================


class VesselReportIn(BaseModel):
    """One position report submitted for ingest.

    Example:
        {
            "mmsi": 123456789,
            "latitude": 1.0,
            "longitude": 104.0,
            "course": 90,
            "speed": 10,
            "vessel_type": 70,
            "nav_status": 0,
            "timestamp": "2025-01-14T12:30:00Z"
        }
    """

    mmsi: int = Field(..., ge=100000000, le=999999999, description="Maritime Mobile Service Identity")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    course: float = Field(..., ge=0, le=359.9, description="Course over ground (degrees)")
    speed: float = Field(..., ge=0, description="Speed over ground (knots)")
    heading: Optional[float] = Field(None, ge=0, le=359.9, description="True heading (degrees)")
    name: Optional[str] = Field(None, description="Vessel name")
    call_sign: Optional[str] = Field(None, description="Radio call sign")
    vessel_type: int = Field(..., description="AIS ship type code")
    nav_status: int = Field(..., description="AIS navigation status code")
    destination: Optional[str] = Field(None, description="Reported destination")
    eta: Optional[str] = Field(None, description="Estimated time of arrival as reported")
    timestamp: datetime = Field(..., description="Report time (ISO 8601)")
    length: Optional[float] = Field(None, description="Vessel length (meters)")
    width: Optional[float] = Field(None, description="Vessel width (meters)")
    source: str = Field(DEFAULT_SOURCE, description="Ingest source tag")

    def to_report(self) -> PositionReport:
        return PositionReport(
            mmsi=self.mmsi,
            latitude=self.latitude,
            longitude=self.longitude,
            timestamp=to_naive_utc(self.timestamp),
            course=self.course,
            speed=self.speed,
            heading=self.heading,
            name=self.name,
            call_sign=self.call_sign,
            vessel_type=self.vessel_type,
            nav_status=self.nav_status,
            destination=self.destination,
            eta=self.eta,
            length=self.length,
            width=self.width,
            source=self.source or DEFAULT_SOURCE,
        )


class SpecificVesselsRequest(BaseModel):
    """Targeted upstream refresh request."""

    mmsis: list[int] = Field(..., min_length=1, description="MMSIs to refresh")
