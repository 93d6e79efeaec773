"""Measurement catalog listing."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.engine import get_session
from opws.database.repositories import CatalogRepository

router = APIRouter(tags=["\U0001F4CD Catalog"])


class KindResponse(BaseModel):
    """One measurement kind."""
    id: int
    key: str
    label: str
    unit: str
    aggregation: str
    description: Optional[str] = None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "id": 6,
                "key": "rainfall_mm",
                "label": "Rainfall",
                "unit": "mm",
                "aggregation": "SUM",
                "description": "Accumulated precipitation",
            }
        },
    }


@router.get("/kinds", response_model=List[KindResponse])
async def list_kinds(session: AsyncSession = Depends(get_session)):
    """List every measurement kind with its unit and aggregation policy."""
    kinds = await CatalogRepository(session).get_all()
    return [KindResponse.model_validate(kind) for kind in kinds]
