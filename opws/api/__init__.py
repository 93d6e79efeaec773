"""
OPWS API

HTTP surface of the telemetry core: uplink ingestion, series queries,
catalog listing and health.
"""

from opws.api.errors import telemetry_error_handler
from opws.api.v1 import router as v1_router

__all__ = ["v1_router", "telemetry_error_handler"]
