"""Main FastAPI application entry point.

Initializes:
- FastAPI application with CORS middleware
- Database connection
- Redis cache client
- Socket.IO live channel
- Vessel collector for on-demand collection (scheduled polling runs in Celery)

Run with: uvicorn vesseltrack.main:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vesseltrack.ais.startup import (
    get_collector,
    initialize_collector,
    shutdown_collector,
)
from vesseltrack.api.routes import router as api_router
from vesseltrack.cache import (
    close_redis_client,
    get_redis_client,
    init_redis_client,
)
from vesseltrack.config import get_settings
from vesseltrack.database.connection import (
    check_database_connection,
    close_db_engine,
    init_db_engine,
)
from vesseltrack.socketio import get_broadcaster, init_socketio_server, sio

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("=" * 60)
    logger.info("Starting VesselTrack AIS Service")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    logger.info("Initializing database connection...")
    await init_db_engine()

    logger.info("Initializing Redis cache...")
    try:
        app.state.redis_client = await init_redis_client()
        logger.info("Redis cache initialized")
    except Exception as e:
        logger.error(f"Failed to initialize Redis: {e}")
        app.state.redis_client = None

    logger.info("Initializing Socket.IO server...")
    try:
        await init_socketio_server()
        logger.info("Socket.IO server initialized")
    except Exception as e:
        logger.error(f"Failed to initialize Socket.IO: {e}")

    logger.info("Initializing vessel collector...")
    try:
        app.state.collector = await initialize_collector()
    except Exception as e:
        logger.error(f"Failed to initialize vessel collector: {e}")
        app.state.collector = None

    logger.info("=" * 60)
    logger.info("VesselTrack startup complete")
    logger.info("=" * 60)

    yield

    logger.info("=" * 60)
    logger.info("Shutting down VesselTrack AIS Service")
    logger.info("=" * 60)

    logger.info("Shutting down vessel collector...")
    await shutdown_collector()

    logger.info("Closing Redis connection...")
    await close_redis_client()

    logger.info("Closing database connection...")
    await close_db_engine()

    logger.info("Shutdown complete")


fastapi_app = FastAPI(
    title=settings.app_name,
    description="""
## VesselTrack AIS Service API

Collects vessel positions from the Telkomsat satellite AIS feed, keeps one
current state per vessel plus an archive of superseded states, and serves
live, historical and area queries.

### Features
- **AIS Data**: Ingest, current fleet, archive logs, playback and statistics
- **POI Areas**: Bounding box counts, paging and full export
- **Collection**: Manual, aggressive and targeted upstream collection
- **Live Updates**: Socket.IO namespace `/vessel-tracking`

### API Versioning
All endpoints are prefixed with `/api/v1`.
    """,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
    openapi_tags=[
        {
            "name": "AIS Data",
            "description": "Vessel state, archive and POI area queries",
        },
        {
            "name": "Telkomsat Collection",
            "description": "Upstream collection triggers and collector monitoring",
        },
        {
            "name": "Live Updates",
            "description": "Live channel statistics",
        },
    ],
)

fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

fastapi_app.include_router(api_router, prefix="/api/v1")


@fastapi_app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint for container orchestration."""
    db_healthy = await check_database_connection()

    collector_ready = get_collector() is not None

    redis_client = get_redis_client()
    redis_healthy = redis_client is not None and await redis_client.health_check()

    return {
        "status": "healthy" if db_healthy and collector_ready else "degraded",
        "service": "vesseltrack",
        "environment": settings.environment,
        "database": db_healthy,
        "collector": collector_ready,
        "redis_cache": redis_healthy,
    }


@fastapi_app.get("/")
async def root() -> dict[str, str]:
    return {
        "service": settings.app_name,
        "version": VERSION,
        "environment": settings.environment,
        "docs": "/docs" if settings.debug else "disabled",
    }


@fastapi_app.get("/status")
async def system_status() -> dict[str, Any]:
    """Detailed system status endpoint."""
    collector = get_collector()
    collector_status = collector.get_status() if collector else None

    redis_client = get_redis_client()
    redis_status = await redis_client.get_stats() if redis_client else None

    return {
        "service": settings.app_name,
        "version": VERSION,
        "environment": settings.environment,
        "collector": collector_status,
        "live": get_broadcaster().get_connection_stats(),
        "redis": redis_status,
    }


# Wrap FastAPI app with Socket.IO for WebSocket support
app = socketio.ASGIApp(sio, fastapi_app)
