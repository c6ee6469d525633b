"""Geographic and temporal query building.

Translates a bounding box plus optional date range into a storage-agnostic
``VesselFilter``. Both stores accept the same filter, so a single query
definition can be run against current state and the archive.

Validation happens here, before any storage access:

- longitudes within [-180, 180], latitudes within [-90, 90]
- min strictly less than max on both axes
- start date strictly before end date when both are given
- approximate area no larger than the configured maximum
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional, Sequence

from vesseltrack.ais.models import DataType, to_naive_utc

# Degrees to kilometres at the equator
KM_PER_DEGREE_LONGITUDE = 111.32
KM_PER_DEGREE_LATITUDE = 110.54

DEFAULT_MAX_AREA_KM2 = 1_000_000.0
MAX_PAGE_SIZE = 100


class AreaQueryError(ValueError):
    """Raised when a geographic/temporal query is rejected."""


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular geographic area (degrees)."""

    min_longitude: float
    max_longitude: float
    min_latitude: float
    max_latitude: float

    def __post_init__(self) -> None:
        """Validate bounding box coordinates."""
        values = (
            self.min_longitude,
            self.max_longitude,
            self.min_latitude,
            self.max_latitude,
        )
        if any(v is None or math.isnan(v) for v in values):
            raise AreaQueryError("All coordinate values must be valid numbers")
        if not (-180 <= self.min_longitude <= 180 and -180 <= self.max_longitude <= 180):
            raise AreaQueryError("Longitude must be between -180 and 180")
        if not (-90 <= self.min_latitude <= 90 and -90 <= self.max_latitude <= 90):
            raise AreaQueryError("Latitude must be between -90 and 90")
        if self.min_longitude >= self.max_longitude:
            raise AreaQueryError("minLongitude must be less than maxLongitude")
        if self.min_latitude >= self.max_latitude:
            raise AreaQueryError("minLatitude must be less than maxLatitude")

    @property
    def area_km2(self) -> float:
        return calculate_area_size(
            self.min_longitude,
            self.max_longitude,
            self.min_latitude,
            self.max_latitude,
        )

    @property
    def center(self) -> dict[str, float]:
        return {
            "latitude": (self.min_latitude + self.max_latitude) / 2,
            "longitude": (self.min_longitude + self.max_longitude) / 2,
        }

    @property
    def span(self) -> dict[str, float]:
        return {
            "latitude_degrees": self.max_latitude - self.min_latitude,
            "longitude_degrees": self.max_longitude - self.min_longitude,
        }

    def to_dict(self) -> dict[str, float]:
        return {
            "min_longitude": self.min_longitude,
            "max_longitude": self.max_longitude,
            "min_latitude": self.min_latitude,
            "max_latitude": self.max_latitude,
        }


@dataclass(frozen=True)
class AreaQuery:
    """A POI area request: bounds, optional time window, collection selector."""

    bounds: BoundingBox
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    data_type: DataType = DataType.VESSEL
    page: int = 1
    page_size: int = MAX_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.start_date is not None:
            object.__setattr__(self, "start_date", to_naive_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", to_naive_utc(self.end_date))
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date >= self.end_date
        ):
            raise AreaQueryError("startDate must be before endDate")
        if self.page < 1:
            raise AreaQueryError("page must be at least 1")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise AreaQueryError(f"pageSize must be between 1 and {MAX_PAGE_SIZE}")

    def for_page(self, page: int) -> "AreaQuery":
        return replace(self, page=page)

    def time_range(self) -> dict[str, Optional[str]]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class VesselFilter:
    """Storage-agnostic predicate understood by both vessel stores.

    Unset fields do not constrain the result. Bounds are inclusive,
    ``start_date``/``end_date`` are inclusive on ``timestamp`` and
    ``timestamp_before`` is exclusive.
    """

    min_longitude: Optional[float] = None
    max_longitude: Optional[float] = None
    min_latitude: Optional[float] = None
    max_latitude: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    timestamp_before: Optional[datetime] = None
    mmsi: Optional[int] = None
    mmsi_in: Optional[tuple[int, ...]] = None
    source: Optional[str] = None
    status: Optional[str] = None

    def with_status(self, status: Optional[str]) -> "VesselFilter":
        return replace(self, status=status)

    def describe(self) -> dict[str, Any]:
        """Non-empty criteria, for logging."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def calculate_area_size(
    min_longitude: float,
    max_longitude: float,
    min_latitude: float,
    max_latitude: float,
) -> float:
    """Approximate bounding box area in km², rounded to 2 decimals.

    Longitude span is scaled by the cosine of the mean latitude; this is
    a flat approximation, not a geodesic area.
    """
    lon_diff = abs(max_longitude - min_longitude)
    lat_diff = abs(max_latitude - min_latitude)
    mean_lat = math.radians((min_latitude + max_latitude) / 2)

    lon_km = lon_diff * KM_PER_DEGREE_LONGITUDE * math.cos(mean_lat)
    lat_km = lat_diff * KM_PER_DEGREE_LATITUDE
    return round(lon_km * lat_km, 2)


def calculate_density(count: int, area_km2: float) -> float:
    """Vessels per km², rounded to 2 decimals (0 for empty or degenerate areas)."""
    if count <= 0 or area_km2 <= 0:
        return 0.0
    return round(count / area_km2, 2)


def classify_density(count: int, area_km2: float) -> str:
    """Classify vessel density of an area."""
    if area_km2 == 0:
        return "undefined"

    density = count / area_km2
    if density < 0.1:
        return "sparse"
    if density < 1:
        return "moderate"
    if density < 10:
        return "dense"
    return "very-dense"


def validate_area_query(
    query: AreaQuery,
    max_area_km2: float = DEFAULT_MAX_AREA_KM2,
) -> float:
    """Reject queries whose bounding box is too large.

    Coordinate and date checks already ran when the query was built.

    Returns:
        The computed area in km²
    """
    area = query.bounds.area_km2
    if area > max_area_km2:
        raise AreaQueryError(
            f"Search area too large: {area:.0f} km². "
            f"Please use a smaller area (max: {max_area_km2:,.0f} km²)."
        )
    return area


def build_area_filter(
    bounds: BoundingBox,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> VesselFilter:
    """Translate bounds and an optional time window into a ``VesselFilter``."""
    return VesselFilter(
        min_longitude=bounds.min_longitude,
        max_longitude=bounds.max_longitude,
        min_latitude=bounds.min_latitude,
        max_latitude=bounds.max_latitude,
        start_date=to_naive_utc(start_date) if start_date else None,
        end_date=to_naive_utc(end_date) if end_date else None,
    )


def build_query_filter(query: AreaQuery) -> VesselFilter:
    """Filter for an ``AreaQuery``."""
    return build_area_filter(query.bounds, query.start_date, query.end_date)


def build_log_filter(
    mmsi: Optional[int] = None,
    mmsi_list: Optional[Sequence[int]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    source: Optional[str] = None,
    status: Optional[str] = None,
) -> VesselFilter:
    """Filter for archive log queries.

    A single ``mmsi`` takes priority over ``mmsi_list`` when both are given.
    """
    if (
        start_date is not None
        and end_date is not None
        and to_naive_utc(start_date) > to_naive_utc(end_date)
    ):
        raise AreaQueryError("startDate must be before endDate")

    mmsi_in = None
    if mmsi is None and mmsi_list:
        mmsi_in = tuple(mmsi_list)

    return VesselFilter(
        start_date=to_naive_utc(start_date) if start_date else None,
        end_date=to_naive_utc(end_date) if end_date else None,
        mmsi=mmsi,
        mmsi_in=mmsi_in,
        source=source,
        status=status,
    )
