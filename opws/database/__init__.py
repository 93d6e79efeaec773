"""
Package database - SQLAlchemy ORM for OPWS.

Simple usage:
    from opws.database import get_db_session, StationRepository

    async with get_db_session() as session:
        station_repo = StationRepository(session)
        station = await station_repo.get_by_code("EST-01")
"""

from .engine import close_db, get_db_session, get_engine, get_session, get_session_factory
from .models import (
    SCHEMA,
    Base,
    Device,
    FieldMapping,
    Measurement,
    MeasurementKind,
    Station,
)
from .repositories import (
    CatalogRepository,
    DeviceRepository,
    MeasurementRepository,
    StationRepository,
)

__all__ = [
    # Models
    "SCHEMA",
    "Base",
    "MeasurementKind",
    "Station",
    "Device",
    "FieldMapping",
    "Measurement",
    # Engine
    "get_engine",
    "get_session_factory",
    "get_db_session",
    "get_session",
    "close_db",
    # Repositories
    "CatalogRepository",
    "StationRepository",
    "DeviceRepository",
    "MeasurementRepository",
]
