"""API routes for VesselTrack.

Main API router that combines all route modules.
"""

from fastapi import APIRouter

from vesseltrack.api.v1 import router as v1_router

router = APIRouter()

router.include_router(v1_router)
