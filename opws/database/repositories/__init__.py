"""
Repositories for database operations.

Organized by domain (catalog, station, device, measurement).
"""

from .catalog_repo import CatalogRepository, KindCache, KindRef, kind_cache
from .device_repo import DeviceRepository
from .measurement_repo import MAX_BATCH_ROWS, MeasurementRepository
from .station_repo import StationRepository

__all__ = [
    "CatalogRepository",
    "KindCache",
    "KindRef",
    "kind_cache",
    "StationRepository",
    "DeviceRepository",
    "MeasurementRepository",
    "MAX_BATCH_ROWS",
]
