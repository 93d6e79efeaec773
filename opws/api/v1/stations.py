"""Station read endpoints (station picker for the series view)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.engine import get_session
from opws.database.repositories import StationRepository

router = APIRouter(prefix="/stations", tags=["\U0001F4E1 Stations"])


class StationResponse(BaseModel):
    """One field station."""
    id: int
    code: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: str
    is_active: bool

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": 1,
                "code": "EST-01",
                "name": "Estação Horta",
                "latitude": -23.55,
                "longitude": -46.63,
                "timezone": "America/Sao_Paulo",
                "is_active": True,
            }
        },
    }


@router.get("", response_model=List[StationResponse])
async def list_stations(
    q: Optional[str] = Query(None, description="Case-insensitive name filter"),
    session: AsyncSession = Depends(get_session),
):
    """List stations ordered by name."""
    stations = await StationRepository(session).search((q or "").strip() or None)
    return [StationResponse.model_validate(station) for station in stations]


@router.get("/{station_id}", response_model=StationResponse)
async def get_station(station_id: int, session: AsyncSession = Depends(get_session)):
    """Station detail; 404 when it does not exist."""
    station = await StationRepository(session).get_by_id(station_id)
    if station is None:
        raise HTTPException(status_code=404, detail=f"Station {station_id} not found")
    return StationResponse.model_validate(station)
