"""AIS data adapters for upstream providers."""

from vesseltrack.ais.adapters.base import (
    AISDataAdapter,
    AISDataFetchError,
    SourceInfo,
)
from vesseltrack.ais.adapters.telkomsat import TelkomsatAdapter

__all__ = [
    "AISDataAdapter",
    "AISDataFetchError",
    "SourceInfo",
    "TelkomsatAdapter",
]
