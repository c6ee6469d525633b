"""Archived vessel position model (append-only time series)."""

from datetime import datetime

from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from vesseltrack.database.base import AIS_SCHEMA, Base, TimestampMixin
from vesseltrack.models.vessel_fields import VesselFieldsMixin

LOG_STATUS_ACTIVE = "active"
LOG_STATUS_ARCHIVED = "archived"
LOG_STATUS_PURGED = "purged"


class VesselLog(Base, VesselFieldsMixin, TimestampMixin):
    """Snapshot of a superseded current vessel state."""

    __tablename__ = "vessel_logs"
    __table_args__ = (
        Index("ix_vessel_logs_mmsi_timestamp", "mmsi", "timestamp"),
        Index("ix_vessel_logs_timestamp", "timestamp"),
        Index("ix_vessel_logs_archived_at", "archived_at"),
        Index("ix_vessel_logs_status", "status"),
        Index("ix_vessel_logs_playback", "mmsi", "timestamp", "status"),
        Index("ix_vessel_logs_geo_temporal", "latitude", "longitude", "timestamp"),
        {"schema": AIS_SCHEMA},
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    mmsi: Mapped[int] = mapped_column(Integer, nullable=False)

    # Archival metadata
    archived_at: Mapped[datetime] = mapped_column(nullable=False)
    archive_reason: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LOG_STATUS_ARCHIVED,
        server_default=LOG_STATUS_ARCHIVED,
    )

    def __repr__(self) -> str:
        return (
            f"<VesselLog(id={self.id}, mmsi={self.mmsi}, "
            f"timestamp={self.timestamp}, status={self.status})>"
        )
