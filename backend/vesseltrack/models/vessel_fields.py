"""Columns shared by current vessel state and archived log entries."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column


class VesselFieldsMixin:
    """Kinematic, identity and classification fields of a position report."""

    # Kinematics
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    course: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    speed: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    heading: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Identity and voyage
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    call_sign: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    eta: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    length: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    width: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Classification codes (AIS ship type / navigation status)
    vessel_type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    nav_status: Mapped[int] = mapped_column(Integer, nullable=False, default=15)

    # Provenance
    source: Mapped[str] = mapped_column(
        String(50), nullable=False, default="telkomsat", server_default="telkomsat"
    )
    timestamp: Mapped[datetime] = mapped_column(nullable=False)


# Attribute names copied from a current vessel into an archive entry
VESSEL_FIELD_NAMES: tuple[str, ...] = (
    "mmsi",
    "latitude",
    "longitude",
    "course",
    "speed",
    "heading",
    "name",
    "call_sign",
    "destination",
    "eta",
    "length",
    "width",
    "vessel_type",
    "nav_status",
    "source",
    "timestamp",
)
