"""Services for the OPWS telemetry core."""

from opws.services.generator import GenerationReport, TelemetryGenerator
from opws.services.ingestion import IngestionGateway, IngestionResult
from opws.services.payloads import PAYLOAD_SHAPES, UplinkRecord, parse_uplink
from opws.services.series import Granularity, SeriesPoint, SeriesQueryEngine

__all__ = [
    "IngestionGateway",
    "IngestionResult",
    "UplinkRecord",
    "PAYLOAD_SHAPES",
    "parse_uplink",
    "SeriesQueryEngine",
    "SeriesPoint",
    "Granularity",
    "TelemetryGenerator",
    "GenerationReport",
]
