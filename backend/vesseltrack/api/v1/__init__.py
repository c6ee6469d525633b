"""API v1 router aggregation.

Combines all v1 API routers into a single router for mounting.
"""

from fastapi import APIRouter

from vesseltrack.api.v1.ais_data import router as ais_data_router
from vesseltrack.api.v1.live import router as live_router
from vesseltrack.api.v1.telkomsat import router as telkomsat_router

router = APIRouter()

router.include_router(ais_data_router)
router.include_router(telkomsat_router)
router.include_router(live_router)

__all__ = ["router"]
