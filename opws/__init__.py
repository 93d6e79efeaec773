"""
OPWS - Open Precision Weather Station telemetry core

Ingestion of field station uplinks, time-bucketed series queries and
synthetic history generation on top of PostgreSQL/TimescaleDB.
"""

__version__ = "0.1.0"

from .catalog import DEFAULT_KINDS, AggregationPolicy, KindDefinition, get_kind_definition
from .config import Config, settings
from .exceptions import (
    InvalidQueryError,
    PreconditionError,
    SchemaError,
    StorageError,
    TelemetryError,
    ValidationError,
)
from .logger import get_logger
from .utils import format_duration, format_timestamp, parse_timestamp

# Public API
__all__ = [
    # Config
    "Config",
    "settings",
    # Catalog
    "AggregationPolicy",
    "KindDefinition",
    "DEFAULT_KINDS",
    "get_kind_definition",
    # Errors
    "TelemetryError",
    "ValidationError",
    "SchemaError",
    "InvalidQueryError",
    "PreconditionError",
    "StorageError",
    # Utilities
    "get_logger",
    "parse_timestamp",
    "format_timestamp",
    "format_duration",
]

# Initialize configuration
Config.ensure_directories()
