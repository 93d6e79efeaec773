"""Time-series read endpoint."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.engine import get_session
from opws.database.repositories import kind_cache
from opws.services.series import SeriesQueryEngine

router = APIRouter(tags=["\U0001F4CA Series"])


@router.get("/series")
async def get_series(
    station_id: Optional[str] = Query(None, description="Station ID"),
    keys: Optional[str] = Query(None, description="Comma-separated variable keys, e.g. air_temp_c,rainfall_mm"),
    start: Optional[str] = Query(None, alias="from", description="Inclusive start, ISO-8601"),
    end: Optional[str] = Query(None, alias="to", description="Exclusive end, ISO-8601"),
    group: Optional[str] = Query("hour", description="raw | hour | day | week | month"),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, List[dict]]:
    """
    Series for one station over ``[from, to)``.

    ``raw`` returns ``{t, v}`` per stored reading. Bucketed groups return
    ``{t, v, min, max, count}`` per calendar bucket (UTC), where ``v`` is the
    sum for accumulated kinds (rainfall) and the mean for the rest.

    Example:
        ```bash
        curl "http://localhost:8000/api/v1/series?station_id=1&keys=air_temp_c,rainfall_mm&from=2024-01-01T00:00:00Z&to=2024-01-08T00:00:00Z&group=day"
        ```
    """
    engine = SeriesQueryEngine(session, kind_cache=kind_cache)
    series = await engine.query(station_id, keys, start, end, group)
    return {key: [point.to_dict() for point in points] for key, points in series.items()}
