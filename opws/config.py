"""
Configuration Management for OPWS

Centralized configuration for database, API, generator and simulator settings.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration (process-wide singleton)."""

    _instance: Optional["Config"] = None

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.parent
    LOGS_DIR = Path(os.getenv("LOGS_DIR", str(PROJECT_ROOT / "logs")))

    # Database
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = int(os.getenv("DB_PORT", "5432"))
    DB_NAME = os.getenv("DB_NAME", "opws")
    DB_USER = os.getenv("DB_USER", "opws")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "changeme")
    DB_SCHEMA = os.getenv("DB_SCHEMA", "opws")
    DATABASE_URL = os.getenv("DATABASE_URL", "")
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_ECHO = os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes")

    # API server
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", "8000"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Ingestion
    DEFAULT_PAYLOAD_SCHEMA = os.getenv("DEFAULT_PAYLOAD_SCHEMA", "env.v1")

    # Synthetic generator
    GENERATOR_STEP_MINUTES = int(os.getenv("GENERATOR_STEP_MINUTES", "15"))
    GENERATOR_BATCH_SIZE = int(os.getenv("GENERATOR_BATCH_SIZE", "500"))
    GENERATOR_RAIN_PROBABILITY = float(os.getenv("GENERATOR_RAIN_PROBABILITY", "0.18"))

    # Device simulator
    SIMULATOR_API_URL = os.getenv("SIMULATOR_API_URL", "http://localhost:8000/api/v1/ttn/uplink")
    SIMULATOR_INTERVAL_SECONDS = int(os.getenv("SIMULATOR_INTERVAL_SECONDS", "300"))

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def database_url(self) -> str:
        """Async PostgreSQL URL (asyncpg driver), unless DATABASE_URL overrides it."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def sync_database_url(self) -> str:
        """Synchronous URL used by Alembic migrations."""
        return self.database_url.replace("+asyncpg", "")

    @classmethod
    def ensure_directories(cls):
        """Create necessary directories if they don't exist."""
        cls.LOGS_DIR.mkdir(parents=True, exist_ok=True)


settings = Config()


if __name__ == "__main__":
    print("Configuration Summary")
    print("=" * 60)
    print(f"Project Root: {settings.PROJECT_ROOT}")
    print(f"Database: {settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}")
    print(f"Schema: {settings.DB_SCHEMA}")
    print(f"API: {settings.API_HOST}:{settings.API_PORT}")
    print(f"Generator step: {settings.GENERATOR_STEP_MINUTES} min")
