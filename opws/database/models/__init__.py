"""
OPWS database models.

Split into one module per concern (catalog, topology, measurements).
"""

from .base import SCHEMA, Base
from .catalog import MeasurementKind
from .measurement import Measurement
from .station import Device, FieldMapping, Station

__all__ = [
    "SCHEMA",
    "Base",
    "MeasurementKind",
    "Station",
    "Device",
    "FieldMapping",
    "Measurement",
]
