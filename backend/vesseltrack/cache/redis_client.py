"""Redis caching layer for VesselTrack.

Provides:
- Connection pooling for Redis
- Last-known vessel position caching with TTL
- Collector status snapshots shared between the worker and the web process
"""

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Union

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from vesseltrack.ais.models import PositionReport, utc_now
from vesseltrack.config import get_settings
from vesseltrack.models import CurrentVessel

logger = logging.getLogger(__name__)
settings = get_settings()

# Cache key prefixes
VESSEL_POSITION_PREFIX = "vessel:position:"
COLLECTOR_STATUS_KEY = "collector:status"

# Default TTLs (in seconds)
VESSEL_POSITION_TTL = 300  # 5 minutes
COLLECTOR_STATUS_TTL = 120


def position_payload(report: Union[PositionReport, CurrentVessel]) -> dict[str, Any]:
    """Cacheable position fields of a report or current-state row."""
    return {
        "mmsi": report.mmsi,
        "latitude": report.latitude,
        "longitude": report.longitude,
        "speed": report.speed,
        "course": report.course,
        "heading": report.heading,
        "name": report.name,
        "timestamp": report.timestamp.isoformat(),
        "source": report.source,
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class RedisClient:
    """Redis client with connection pooling for caching operations."""

    def __init__(self, redis_url: str, position_ttl: int = VESSEL_POSITION_TTL):
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL
            position_ttl: Time-to-live of cached positions in seconds
        """
        self.redis_url = redis_url
        self.position_ttl = position_ttl
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._is_connected = False

    async def connect(self) -> None:
        """Establish connection to Redis with connection pooling."""
        if self._is_connected:
            return

        try:
            self._pool = ConnectionPool.from_url(
                self.redis_url,
                max_connections=20,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True
            logger.info("Redis client connected successfully")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

        if self._pool:
            await self._pool.disconnect()
            self._pool = None

        self._is_connected = False
        logger.info("Redis client disconnected")

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def health_check(self) -> bool:
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except Exception:
            return False

    # ==================== Vessel Position Caching ====================

    async def set_vessel_positions_batch(
        self,
        reports: Iterable[Union[PositionReport, CurrentVessel]],
        ttl: Optional[int] = None,
    ) -> int:
        """Cache the latest position of many vessels in one pipeline.

        Returns:
            Number of positions cached
        """
        if not self._client:
            return 0

        payloads = [position_payload(r) for r in reports]
        if not payloads:
            return 0

        cached_at = utc_now().isoformat()
        try:
            pipe = self._client.pipeline()
            for payload in payloads:
                payload["cached_at"] = cached_at
                pipe.setex(
                    f"{VESSEL_POSITION_PREFIX}{payload['mmsi']}",
                    ttl or self.position_ttl,
                    json.dumps(payload),
                )
            await pipe.execute()
            return len(payloads)

        except Exception as e:
            logger.error(f"Failed to batch cache vessel positions: {e}")
            return 0

    # ==================== Collector Status ====================

    async def set_collector_status(self, status: dict[str, Any]) -> bool:
        """Publish the worker-side collector status."""
        return await self.set_json(COLLECTOR_STATUS_KEY, status, ttl=COLLECTOR_STATUS_TTL)

    async def get_collector_status(self) -> Optional[dict[str, Any]]:
        return await self.get_json(COLLECTOR_STATUS_KEY)

    # ==================== Generic Cache Operations ====================

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set a JSON-serialized cache value, with optional TTL in seconds."""
        if not self._client:
            return False

        try:
            data = json.dumps(value, default=_json_default)
            if ttl:
                await self._client.setex(key, ttl, data)
            else:
                await self._client.set(key, data)
            return True
        except Exception as e:
            logger.error(f"Failed to set cache key {key}: {e}")
            return False

    async def get_json(self, key: str) -> Optional[Any]:
        if not self._client:
            return None

        try:
            data = await self._client.get(key)
            return json.loads(data) if data else None
        except Exception as e:
            logger.error(f"Failed to get cache key {key}: {e}")
            return None

    async def get_stats(self) -> dict[str, Any]:
        """Get Redis statistics."""
        if not self._client:
            return {"status": "disconnected"}

        try:
            info = await self._client.info()
            return {
                "status": "connected",
                "used_memory": info.get("used_memory_human"),
                "connected_clients": info.get("connected_clients"),
                "total_commands_processed": info.get("total_commands_processed"),
                "keyspace_hits": info.get("keyspace_hits"),
                "keyspace_misses": info.get("keyspace_misses"),
            }
        except Exception as e:
            return {"status": "error", "error": str(e)}


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


async def init_redis_client() -> RedisClient:
    """Initialize the global Redis client."""
    global _redis_client

    if _redis_client is None:
        client = RedisClient(settings.redis_url, settings.position_cache_ttl_seconds)
        await client.connect()
        _redis_client = client

    return _redis_client


async def close_redis_client() -> None:
    """Close the global Redis client."""
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None


def get_redis_client() -> Optional[RedisClient]:
    """Get the global Redis client instance, or None if not initialized."""
    return _redis_client
