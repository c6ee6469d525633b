"""Internal AIS data representation models.

Source-agnostic position report plus the static classification tables
used to translate between AIS codes and display names.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

DEFAULT_SOURCE = "telkomsat"
DEFAULT_VESSEL_TYPE = 0
DEFAULT_NAV_STATUS = 15
HEADING_NOT_AVAILABLE = 511

VESSEL_TYPE_NAMES: Mapping[int, str] = MappingProxyType({
    0: "Not available",
    30: "Fishing",
    31: "Towing",
    32: "Towing: length exceeds 200m",
    33: "Dredging or underwater ops",
    34: "Diving ops",
    35: "Military ops",
    36: "Sailing",
    37: "Pleasure Craft",
    40: "High speed craft",
    50: "Pilot Vessel",
    51: "Search and Rescue vessel",
    52: "Tug",
    53: "Port Tender",
    54: "Anti-pollution equipment",
    55: "Law Enforcement",
    58: "Medical Transport",
    59: "Noncombatant ship",
    60: "Passenger",
    70: "Cargo",
    80: "Tanker",
    90: "Other Type",
})

NAV_STATUS_NAMES: Mapping[int, str] = MappingProxyType({
    0: "Under way using engine",
    1: "At anchor",
    2: "Not under command",
    3: "Restricted manoeuvrability",
    4: "Constrained by her draught",
    5: "Moored",
    6: "Aground",
    7: "Engaged in Fishing",
    8: "Under way sailing",
    11: "Power-driven vessel towing astern",
    12: "Power-driven vessel pushing ahead",
    14: "AIS-SART is active",
    15: "Not defined (default)",
})

# Provider classification labels -> AIS codes
PROVIDER_VESSEL_TYPE_CODES: Mapping[str, int] = MappingProxyType({
    "Cargo": 70,
    "Tanker": 80,
    "Tankers": 80,
    "Passenger": 60,
    "Fishing": 30,
    "Tug": 52,
    "Pilot": 50,
    "Search and Rescue": 51,
    "Pleasure Craft": 37,
    "High Speed Craft": 40,
    "Other": 90,
    "Military": 35,
    "Sailing": 36,
    "Unknown": 0,
})

PROVIDER_NAV_STATUS_CODES: Mapping[str, int] = MappingProxyType({
    "Under Way Using Engine": 0,
    "At Anchor": 1,
    "Not Under Command": 2,
    "Restricted Manoeuvrability": 3,
    "Constrained by Draught": 4,
    "Moored": 5,
    "Aground": 6,
    "Engaged in Fishing": 7,
    "Under Way Sailing": 8,
    "Not Defined Default": 15,
    "Not Defined": 15,
})


def vessel_type_name(code: Optional[int]) -> str:
    """Return display name for an AIS ship type code."""
    if code is None:
        code = DEFAULT_VESSEL_TYPE
    name = VESSEL_TYPE_NAMES.get(code)
    if name is None:
        return f"Unknown Type ({code})"
    return name


def nav_status_name(code: Optional[int]) -> str:
    """Return display name for an AIS navigation status code."""
    if code is None:
        code = DEFAULT_NAV_STATUS
    name = NAV_STATUS_NAMES.get(code)
    if name is None:
        return f"Unknown Status ({code})"
    return name


def vessel_type_code(label: Optional[str]) -> int:
    """Map a provider vessel type label to an AIS code (0 when unknown)."""
    if not label:
        return DEFAULT_VESSEL_TYPE
    return PROVIDER_VESSEL_TYPE_CODES.get(label.strip(), DEFAULT_VESSEL_TYPE)


def nav_status_code(label: Optional[str]) -> int:
    """Map a provider navigation status label to an AIS code (15 when unknown)."""
    if not label:
        return DEFAULT_NAV_STATUS
    return PROVIDER_NAV_STATUS_CODES.get(label.strip(), DEFAULT_NAV_STATUS)


class DataType(str, Enum):
    """Which collection(s) a POI area query reads."""

    VESSEL = "vessel"
    TRACK = "track"
    AIS = "ais"
    ALL = "all"

    @property
    def reads_current(self) -> bool:
        return self in (DataType.VESSEL, DataType.ALL)

    @property
    def reads_archive(self) -> bool:
        return self is not DataType.VESSEL


def utc_now() -> datetime:
    """Current time as naive UTC (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a report time into naive UTC.

    Accepts datetimes, ISO 8601 strings (with ``Z`` or offsets) and the
    provider's ``"YYYY-MM-DD HH:MM:SS"`` form. Returns None when the
    value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


@dataclass
class Dimension:
    """Vessel dimensions from the AIS reference point (meters)."""

    a: Optional[float] = None  # Bow
    b: Optional[float] = None  # Stern
    c: Optional[float] = None  # Port
    d: Optional[float] = None  # Starboard
    width: Optional[float] = None
    length: Optional[float] = None


@dataclass
class PositionReport:
    """Internal representation of one vessel position report.

    This is the single format consumed by the reconciliation engine,
    whichever source (upstream poll or HTTP ingest) produced it.
    """

    mmsi: int
    latitude: float
    longitude: float
    timestamp: datetime
    course: float = 0.0
    speed: float = 0.0
    heading: Optional[float] = None
    name: Optional[str] = None
    call_sign: Optional[str] = None
    vessel_type: int = DEFAULT_VESSEL_TYPE
    nav_status: int = DEFAULT_NAV_STATUS
    destination: Optional[str] = None
    eta: Optional[str] = None
    length: Optional[float] = None
    width: Optional[float] = None
    source: str = DEFAULT_SOURCE

    # Provider extras, not persisted
    imo: Optional[str] = None
    flag: Optional[str] = None
    vessel_class: Optional[str] = None
    dimension: Optional[Dimension] = None

    def __post_init__(self) -> None:
        """Validate report fields."""
        if self.mmsi <= 0:
            raise ValueError(f"Invalid MMSI: {self.mmsi}")
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Invalid latitude: {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"Invalid longitude: {self.longitude}")
        if self.heading == HEADING_NOT_AVAILABLE:
            self.heading = None

    def to_record(self) -> dict[str, Any]:
        """Column values for the current-state and archive tables."""
        return {
            "mmsi": self.mmsi,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "course": self.course if self.course is not None else 0.0,
            "speed": self.speed if self.speed is not None else 0.0,
            "heading": self.heading,
            "name": self.name,
            "call_sign": self.call_sign,
            "destination": self.destination,
            "eta": self.eta,
            "length": self.length,
            "width": self.width,
            "vessel_type": self.vessel_type,
            "nav_status": self.nav_status,
            "source": self.source or DEFAULT_SOURCE,
            "timestamp": self.timestamp,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data
