"""Health check endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.engine import get_session
from opws.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["\U00002699\U0000FE0F System"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "database": "connected"
            }
        }
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Check system health and database connectivity.

    Returns:
        Health status with database connection state
    """
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return HealthResponse(status="unhealthy", database=f"error: {e}")

    return HealthResponse(status="healthy", database="connected")
