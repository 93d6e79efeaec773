"""
FastAPI server for OPWS.

Uplink ingestion and time-series API for field weather stations.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from opws.api import telemetry_error_handler, v1_router
from opws.config import settings
from opws.database.engine import close_db, get_engine
from opws.exceptions import TelemetryError
from opws.logger import get_logger

# Setup logging
logger = get_logger(__name__)

# OpenAPI tags metadata for Swagger organization
tags_metadata = [
    {
        "name": "\U0001F4E5 Ingestion",
        "description": "Device uplinks forwarded by the LoRaWAN network server",
    },
    {
        "name": "\U0001F4CA Series",
        "description": "Raw and time-bucketed series per station (hour, day, week, month)",
    },
    {
        "name": "\U0001F4CD Catalog",
        "description": "Measurement kinds, units and aggregation policies",
    },
    {
        "name": "\U0001F4E1 Stations",
        "description": "Station listing and detail (station picker for series)",
    },
    {
        "name": "\U00002699\U0000FE0F System",
        "description": "API health checks",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app."""
    # Startup
    logger.info("🚀 Starting OPWS API...")
    logger.info(f"Database: {settings.database_url.split('@')[-1]}")

    # Test DB connection
    try:
        engine = get_engine()
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection OK")
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")

    yield

    # Shutdown
    logger.info("👋 Shutting down OPWS API...")
    await close_db()


app = FastAPI(
    title="OPWS API",
    description="🌦️ **Open Precision Weather Station telemetry**\n\n"
                "Ingestion and time-series queries for environmental field stations.\n\n"
                "**Features:**\n"
                "- 📥 Idempotent uplink ingestion with device auto-provisioning\n"
                "- 📊 Raw, hourly, daily, weekly and monthly series\n"
                "- 🌧️ Sum aggregation for rainfall, mean for everything else\n"
                "- 🗄️ TimescaleDB hypertable storage",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    license_info={
        "name": "MIT",
    },
)

app.add_exception_handler(TelemetryError, telemetry_error_handler)

# Include API v1 router
app.include_router(v1_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "opws.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=False,
        log_level="info",
    )
