"""Cache module for VesselTrack.

Provides Redis-based caching for last-known vessel positions and collector status.
"""

from vesseltrack.cache.redis_client import (
    RedisClient,
    close_redis_client,
    get_redis_client,
    init_redis_client,
)

__all__ = [
    "RedisClient",
    "get_redis_client",
    "init_redis_client",
    "close_redis_client",
]
