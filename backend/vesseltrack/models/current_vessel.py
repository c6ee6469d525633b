"""Current vessel state model (one row per MMSI)."""

from datetime import datetime

from sqlalchemy import Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from vesseltrack.database.base import AIS_SCHEMA, Base, TimestampMixin
from vesseltrack.models.vessel_fields import VesselFieldsMixin


class CurrentVessel(Base, VesselFieldsMixin, TimestampMixin):
    """Most recent known position and status of a vessel.

    Overwritten in place on every reconciliation; superseded states are
    copied into ``VesselLog`` first.
    """

    __tablename__ = "current_vessels"
    __table_args__ = (
        Index("ix_current_vessels_timestamp", "timestamp"),
        Index("ix_current_vessels_last_updated", "last_updated"),
        Index("ix_current_vessels_geo_location", "latitude", "longitude"),
        {"schema": AIS_SCHEMA},
    )

    # Maritime Mobile Service Identity (9 digits)
    mmsi: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    last_updated: Mapped[datetime] = mapped_column(nullable=False)
    update_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    def __repr__(self) -> str:
        return f"<CurrentVessel(mmsi={self.mmsi}, updates={self.update_count})>"
