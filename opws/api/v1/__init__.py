"""API v1 routers."""

from fastapi import APIRouter

from .catalog import router as catalog_router
from .monitoring import router as monitoring_router
from .series import router as series_router
from .stations import router as stations_router
from .uplink import router as uplink_router

# Main v1 router
router = APIRouter(prefix="/api/v1")

# Include sub-routers
router.include_router(uplink_router, prefix="/ttn")  # /api/v1/ttn/uplink
router.include_router(series_router)  # /api/v1/series
router.include_router(catalog_router, prefix="/catalog")  # /api/v1/catalog/kinds
router.include_router(stations_router)  # /api/v1/stations
router.include_router(monitoring_router)  # /api/v1/health

__all__ = ["router"]
