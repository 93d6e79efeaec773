"""Uplink ingestion endpoint (The Things Network style webhook)."""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.engine import get_session
from opws.database.repositories import kind_cache
from opws.logger import get_logger
from opws.services.ingestion import IngestionGateway

logger = get_logger(__name__)
router = APIRouter(tags=["\U0001F4E5 Ingestion"])


class UplinkResponse(BaseModel):
    """Outcome of one uplink."""
    ok: bool
    message: str
    station: str
    station_id: int
    inserted: int
    timestamp: datetime
    station_created: bool = False
    device_created: bool = False

    model_config = {
        "json_schema_extra": {
            "example": {
                "ok": True,
                "message": "Data stored",
                "station": "Station 70B3D57ED005A1B2",
                "station_id": 1,
                "inserted": 5,
                "timestamp": "2024-01-01T00:00:00Z",
                "station_created": True,
                "device_created": True,
            }
        }
    }


@router.post("/uplink", response_model=UplinkResponse)
async def receive_uplink(
    uplink: Dict[str, Any] = Body(
        ...,
        examples=[
            {
                "dev_eui": "70B3D57ED005A1B2",
                "timestamp": "2024-01-01T00:00:00Z",
                "payload": {
                    "temperature": 25.3,
                    "humidity": 78.2,
                    "rainfall": 0.0,
                    "soil_moisture": 55.4,
                    "luminosity": 820,
                },
            }
        ],
    ),
    session: AsyncSession = Depends(get_session),
):
    """
    Store one uplink.

    A device seen for the first time gets a station and a device record.
    Replaying an uplink is harmless: readings already stored for the same
    station, kind and instant are skipped and ``inserted`` reports 0.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/v1/ttn/uplink \\
             -H "Content-Type: application/json" \\
             -d '{"dev_eui": "DEV1", "timestamp": "2024-01-01T00:00:00Z",
                  "payload": {"temperature": 25.3}}'
        ```
    """
    gateway = IngestionGateway(session, kind_cache=kind_cache)
    result = await gateway.ingest(uplink)
    await session.commit()

    message = "Data stored" if result.inserted else "Duplicate uplink, nothing stored"
    return UplinkResponse(
        ok=True,
        message=message,
        station=result.station_name,
        station_id=result.station_id,
        inserted=result.inserted,
        timestamp=result.instant,
        station_created=result.station_created,
        device_created=result.device_created,
    )
