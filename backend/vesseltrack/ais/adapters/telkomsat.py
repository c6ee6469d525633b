"""Telkomsat satellite AIS provider adapter.

The provider exposes two form-encoded POST endpoints:

- ``/vesselArea``: paginated fleet listing (``key``, ``page``, ``limit``)
- ``/vessel``: targeted lookup for an explicit ``mmsi[]`` list

Both answer ``{code, message, data[], count, total_count}`` where every
numeric field of a data item arrives as a string that may be empty.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

import httpx

from vesseltrack.ais.adapters.base import AISDataAdapter, AISDataFetchError, SourceInfo
from vesseltrack.ais.models import (
    DEFAULT_SOURCE,
    HEADING_NOT_AVAILABLE,
    Dimension,
    PositionReport,
    nav_status_code,
    parse_timestamp,
    utc_now,
    vessel_type_code,
)

logger = logging.getLogger(__name__)

PROVIDER_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
USER_AGENT = "VesselTrack/1.0"


def _clean_str(value: Any) -> Optional[str]:
    """Trim a provider string; empty or whitespace-only becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    text = _clean_str(value)
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def _positive_or_none(value: Any) -> Optional[float]:
    number = _to_float(value)
    if number is None or number == 0:
        return None
    return number


class TelkomsatAdapter(AISDataAdapter):
    """Adapter for the Telkomsat AIS REST API.

    Configuration options:
    - api_url: Base URL of the provider API
    - api_key: Provider API key
    - timeout_seconds: Paginated fetch timeout (default 30)
    - specific_timeout_seconds: Targeted MMSI fetch timeout (default 15)
    - health_timeout_seconds: Health check timeout (default 10)
    - timezone: Zone of the provider's data_date/data_time (default UTC)
    - transport: Optional httpx transport (used by tests)
    """

    def __init__(self, config: dict[str, Any]):
        config = {"name": "Telkomsat", **config}
        super().__init__(config)

        self.api_url = config.get("api_url", "https://ais.telkomsat.co.id/api").rstrip("/")
        self.api_key = config.get("api_key", "")
        self.timeout_seconds = float(config.get("timeout_seconds", 30.0))
        self.specific_timeout_seconds = float(config.get("specific_timeout_seconds", 15.0))
        self.health_timeout_seconds = float(config.get("health_timeout_seconds", 10.0))
        tz_name = config.get("timezone") or "UTC"
        self.provider_tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)

        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=config.get("transport"),
        )
        self._last_total_count: Optional[int] = None

        logger.info(
            f"Telkomsat adapter initialized: url={self.api_url}, "
            f"key={'set' if self.api_key else 'missing'}"
        )

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Telkomsat HTTP client closed")

    async def _post(self, path: str, data: dict[str, Any], timeout: float) -> dict[str, Any]:
        """POST a form and return the decoded JSON envelope."""
        response = await self._client.post(
            f"{self.api_url}{path}",
            data=data,
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise AISDataFetchError("Malformed response envelope", self.name)
        return payload

    async def fetch_vessels(
        self,
        page: int = 1,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PositionReport]:
        """Fetch one page from ``/vesselArea``.

        Raises:
            AISDataFetchError: On network failure, timeout, HTTP error or a
                non-200 ``code`` in the envelope
        """
        logger.info(f"Fetching vessels: limit={limit}, page={page}, offset={offset}")
        self._record_request()
        started = time.monotonic()

        form: dict[str, Any] = {"key": self.api_key, "page": str(page), "limit": str(limit)}
        if offset > 0:
            form["offset"] = str(offset)

        try:
            payload = await self._post("/vesselArea", form, self.timeout_seconds)
        except httpx.HTTPError as e:
            self._record_error()
            logger.error(f"Telkomsat request failed (page {page}): {e}")
            raise AISDataFetchError(f"Telkomsat API error: {e}", self.name) from e
        except (AISDataFetchError, ValueError) as e:
            self._record_error()
            logger.error(f"Telkomsat returned an unreadable response (page {page}): {e}")
            raise AISDataFetchError(f"Telkomsat API error: {e}", self.name) from e

        code = payload.get("code")
        if code != 200:
            self._record_error()
            message = payload.get("message")
            logger.error(f"Telkomsat API error: {code} - {message}")
            raise AISDataFetchError(f"Telkomsat API error: {message}", self.name)

        items = payload.get("data")
        if not isinstance(items, list):
            logger.warning("No vessel data in Telkomsat response")
            return []

        reports = self.parse_vessels(items)
        self._last_total_count = payload.get("total_count")
        self._record_success(len(reports), time.monotonic() - started)

        logger.info(
            f"Processed {len(reports)}/{len(items)} vessels from page {page} "
            f"({self._last_total_count} total available)"
        )
        return reports

    async def fetch_specific_vessels(self, mmsis: Sequence[int]) -> list[PositionReport]:
        """Fetch reports for an explicit MMSI list from ``/vessel``.

        Never raises; any failure yields an empty list.
        """
        if not mmsis:
            return []

        logger.info(f"Fetching {len(mmsis)} specific vessels")
        self._record_request()
        started = time.monotonic()

        form = {"key": self.api_key, "mmsi[]": [str(m) for m in mmsis]}
        try:
            payload = await self._post("/vessel", form, self.specific_timeout_seconds)
        except (httpx.HTTPError, AISDataFetchError, ValueError) as e:
            self._record_error()
            logger.error(f"Failed to fetch specific vessels: {e}")
            return []

        items = payload.get("data")
        if payload.get("code") != 200 or not isinstance(items, list):
            self._record_error()
            return []

        reports = self.parse_vessels(items)
        self._record_success(len(reports), time.monotonic() - started)
        logger.info(f"Retrieved {len(reports)} specific vessels")
        return reports

    async def health_check(self) -> bool:
        """Minimal one-row request against ``/vesselArea``."""
        form = {"key": self.api_key, "page": "1", "limit": "1"}
        try:
            payload = await self._post("/vesselArea", form, self.health_timeout_seconds)
        except (httpx.HTTPError, AISDataFetchError, ValueError) as e:
            logger.error(f"Telkomsat health check failed: {e}")
            return False

        healthy = payload.get("code") == 200
        if healthy and payload.get("total_count"):
            logger.debug(f"Telkomsat reports {payload['total_count']} vessels available")
        return healthy

    def get_source_info(self) -> SourceInfo:
        return SourceInfo(
            name=self.name,
            source_type="telkomsat",
            api_url=self.api_url,
            has_api_key=bool(self.api_key),
            total_requests=self._request_count,
            successful_requests=self._successful_requests,
            error_count=self._error_count,
            last_request_time=self._last_request_time,
            last_successful_fetch=self._last_fetch_time,
            total_messages_received=self._total_messages,
            average_latency_seconds=round(self._get_average_latency(), 3),
            extra_info={
                "key_preview": f"{self.api_key[:8]}..." if self.api_key else None,
                "total_count": self._last_total_count,
            },
        )

    async def get_stats(self) -> dict[str, Any]:
        """Request counters plus a live health probe."""
        info = self.get_source_info()
        return {
            "total_requests": info.total_requests,
            "successful_requests": info.successful_requests,
            "success_rate": round(info.success_rate),
            "last_request_time": (
                info.last_request_time.isoformat() if info.last_request_time else None
            ),
            "api_health": await self.health_check(),
            "connection_info": {
                "api_url": info.api_url,
                "has_api_key": info.has_api_key,
                "key_preview": info.extra_info["key_preview"],
            },
        }

    # Parsing

    def parse_vessels(self, items: list[Any]) -> list[PositionReport]:
        """Parse provider items, skipping any that fail validation."""
        reports = []
        filtered = 0

        for item in items:
            report = self.parse_vessel(item)
            if report is None:
                filtered += 1
                continue
            reports.append(report)

        if filtered:
            logger.debug(f"Skipped {filtered} invalid vessel records")
        return reports

    def parse_vessel(self, item: Any) -> Optional[PositionReport]:
        """Parse one provider item into a ``PositionReport`` (None if invalid)."""
        if not isinstance(item, dict):
            return None

        raw_mmsi = _clean_str(item.get("mmsi"))
        raw_lat = _clean_str(item.get("lat"))
        raw_lon = _clean_str(item.get("lon"))
        if raw_mmsi is None or raw_lat is None or raw_lon is None:
            logger.debug(f"Filtered vessel: mmsi={raw_mmsi}, lat={raw_lat}, lon={raw_lon}")
            return None

        try:
            mmsi = int(float(raw_mmsi))
            latitude = float(raw_lat)
            longitude = float(raw_lon)
        except (ValueError, OverflowError):
            logger.debug(f"Unparseable vessel record: mmsi={raw_mmsi}")
            return None

        heading = _to_float(item.get("heading"))
        if heading == HEADING_NOT_AVAILABLE:
            heading = None

        dimension = None
        raw_dimension = item.get("dimension")
        if isinstance(raw_dimension, dict):
            dimension = Dimension(
                a=_positive_or_none(raw_dimension.get("a")),
                b=_positive_or_none(raw_dimension.get("b")),
                c=_positive_or_none(raw_dimension.get("c")),
                d=_positive_or_none(raw_dimension.get("d")),
                width=_positive_or_none(raw_dimension.get("width")),
                length=_positive_or_none(raw_dimension.get("length")),
            )

        timestamp = self.parse_report_time(item.get("data_date"), item.get("data_time"))

        try:
            return PositionReport(
                mmsi=mmsi,
                latitude=latitude,
                longitude=longitude,
                timestamp=timestamp,
                course=_to_float(item.get("cog"), 0.0),
                speed=_to_float(item.get("sog"), 0.0),
                heading=heading,
                name=_clean_str(item.get("name")),
                call_sign=_clean_str(item.get("callsign")),
                vessel_type=vessel_type_code(item.get("type")),
                nav_status=nav_status_code(item.get("status")),
                destination=_clean_str(item.get("destination")),
                eta=_clean_str(item.get("eta")),
                length=dimension.length if dimension else None,
                width=dimension.width if dimension else None,
                source=_clean_str(item.get("source")) or DEFAULT_SOURCE,
                imo=_clean_str(item.get("imo")),
                flag=_clean_str(item.get("flag")),
                vessel_class=_clean_str(item.get("class")),
                dimension=dimension,
            )
        except ValueError as e:
            logger.debug(f"Invalid vessel data: {e}")
            return None

    def parse_report_time(self, data_date: Any, data_time: Any) -> datetime:
        """Combine the provider's date and time fields into naive UTC.

        Falls back to the current time when the fields are missing or
        cannot be parsed.
        """
        date_text = _clean_str(data_date)
        time_text = _clean_str(data_time)
        if date_text and time_text:
            try:
                local = datetime.strptime(
                    f"{date_text} {time_text}", PROVIDER_DATETIME_FORMAT
                ).replace(tzinfo=self.provider_tz)
                return local.astimezone(timezone.utc).replace(tzinfo=None)
            except ValueError:
                parsed = parse_timestamp(f"{date_text} {time_text}")
                if parsed is not None:
                    return parsed
        logger.debug(f"Unparseable report time: {data_date!r} {data_time!r}")
        return utc_now()
