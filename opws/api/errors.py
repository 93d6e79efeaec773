"""Mapping of core errors onto HTTP responses."""

from fastapi import Request
from fastapi.responses import JSONResponse

from opws.exceptions import (
    InvalidQueryError,
    PreconditionError,
    SchemaError,
    StorageError,
    TelemetryError,
    ValidationError,
)
from opws.logger import get_logger

logger = get_logger(__name__)

STATUS_CODES = {
    ValidationError: 400,
    SchemaError: 400,
    InvalidQueryError: 400,
    PreconditionError: 409,
    StorageError: 503,
}


def status_for(error: TelemetryError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


async def telemetry_error_handler(request: Request, exc: TelemetryError) -> JSONResponse:
    """Render a core error as ``{"error": kind, "detail": message, ...}``."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())
