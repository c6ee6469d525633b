"""Database module for VesselTrack."""

from vesseltrack.database.base import AIS_SCHEMA, Base, TimestampMixin
from vesseltrack.database.connection import (
    AsyncSessionLocal,
    async_engine,
    check_database_connection,
    close_db_engine,
    get_async_db,
    get_async_session,
    init_db_engine,
)

__all__ = [
    "AIS_SCHEMA",
    "Base",
    "TimestampMixin",
    "async_engine",
    "AsyncSessionLocal",
    "get_async_db",
    "get_async_session",
    "check_database_connection",
    "init_db_engine",
    "close_db_engine",
]
