"""Abstract base class for upstream AIS data adapters.

Defines the interface the collector relies on: paged fetches, targeted
fetches by MMSI, health checks and source statistics.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from vesseltrack.ais.models import PositionReport, utc_now

logger = logging.getLogger(__name__)


class AISDataFetchError(Exception):
    """Exception raised when fetching AIS data fails."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"[{source}] {message}" if source else message)


@dataclass
class SourceInfo:
    """Metadata about an upstream AIS data source."""

    name: str
    source_type: str
    api_url: str
    has_api_key: bool
    total_requests: int = 0
    successful_requests: int = 0
    error_count: int = 0
    last_request_time: Optional[datetime] = None
    last_successful_fetch: Optional[datetime] = None
    total_messages_received: int = 0
    average_latency_seconds: float = 0.0
    extra_info: dict[str, Any] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return round(self.successful_requests / self.total_requests * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "type": self.source_type,
            "api_url": self.api_url,
            "has_api_key": self.has_api_key,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "success_rate": self.success_rate,
            "error_count": self.error_count,
            "last_request_time": (
                self.last_request_time.isoformat() if self.last_request_time else None
            ),
            "last_successful_fetch": (
                self.last_successful_fetch.isoformat()
                if self.last_successful_fetch
                else None
            ),
            "total_messages_received": self.total_messages_received,
            "average_latency_seconds": self.average_latency_seconds,
            "extra_info": self.extra_info,
        }


class AISDataAdapter(ABC):
    """Abstract base class for all upstream AIS sources.

    Implementations must provide:
    - fetch_vessels(): One page of position reports
    - fetch_specific_vessels(): Reports for an explicit MMSI list
    - health_check(): Verify the source is reachable
    - get_source_info(): Return metadata about the source
    """

    def __init__(self, config: dict[str, Any]):
        """Initialize adapter with configuration.

        Args:
            config: Adapter-specific configuration dictionary
        """
        self.config = config
        self.name = config.get("name", "unknown")
        self._error_count = 0
        self._request_count = 0
        self._successful_requests = 0
        self._total_messages = 0
        self._last_request_time: Optional[datetime] = None
        self._last_fetch_time: Optional[datetime] = None
        self._latency_samples: deque[float] = deque(maxlen=100)

    @abstractmethod
    async def fetch_vessels(
        self,
        page: int = 1,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PositionReport]:
        """Fetch one page of vessel position reports.

        Raises:
            AISDataFetchError: If the request fails or the source rejects it
        """

    @abstractmethod
    async def fetch_specific_vessels(self, mmsis: Sequence[int]) -> list[PositionReport]:
        """Fetch reports for the given MMSIs; empty list on failure."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the data source is available and healthy."""

    @abstractmethod
    def get_source_info(self) -> SourceInfo:
        """Get metadata about this data source."""

    async def close(self) -> None:
        """Release network resources. Override in subclasses that hold any."""
        logger.info(f"Adapter '{self.name}' closed")

    def reset_stats(self) -> None:
        """Reset request counters."""
        self._request_count = 0
        self._successful_requests = 0
        self._error_count = 0
        self._latency_samples.clear()
        self._last_request_time = utc_now()
        logger.info(f"Adapter '{self.name}' stats reset")

    def _record_request(self) -> None:
        self._request_count += 1
        self._last_request_time = utc_now()

    def _record_success(self, message_count: int, latency_seconds: float = 0.0) -> None:
        """Record a successful fetch operation."""
        self._last_fetch_time = utc_now()
        self._successful_requests += 1
        self._error_count = 0
        self._total_messages += message_count
        self._latency_samples.append(latency_seconds)

    def _record_error(self) -> None:
        """Record a failed fetch operation."""
        self._error_count += 1

    def _get_average_latency(self) -> float:
        if not self._latency_samples:
            return 0.0
        return sum(self._latency_samples) / len(self._latency_samples)

    @property
    def error_count(self) -> int:
        """Consecutive error count."""
        return self._error_count

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def successful_requests(self) -> int:
        return self._successful_requests

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
