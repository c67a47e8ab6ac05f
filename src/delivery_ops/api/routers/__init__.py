"""
API routers for the delivery operations engine.

All routers are mounted under the /api prefix by the application.
"""

from fastapi import APIRouter

from .dashboard import router as dashboard_router
from .data import router as data_router
from .deliveries import router as deliveries_router
from .notices import router as notices_router
from .simulation import router as simulation_router

router = APIRouter()
router.include_router(deliveries_router, tags=["deliveries"])
router.include_router(dashboard_router, tags=["dashboard"])
router.include_router(simulation_router, tags=["simulation"])
router.include_router(data_router, tags=["data"])
router.include_router(notices_router, tags=["notices"])

__all__ = ["router"]
