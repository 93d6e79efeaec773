"""
Pytest configuration and fixtures for OPWS tests.
"""

from typing import AsyncGenerator

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from opws.database.models import SCHEMA, Base, Station
from opws.database.repositories import CatalogRepository


# Test database URL (use in-memory SQLite for fast unit tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine. SQLite has no schemas, so ``opws`` maps to the default one."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {SCHEMA: None}},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def seeded_session(db_session) -> AsyncGenerator[AsyncSession, None]:
    """Session whose catalog holds the default measurement kinds."""
    await CatalogRepository(db_session).ensure_defaults()
    await db_session.commit()
    yield db_session


@pytest.fixture
async def station(seeded_session) -> Station:
    """An administratively created station."""
    station = Station(code="EST-01", name="Estação Horta", timezone="America/Sao_Paulo")
    seeded_session.add(station)
    await seeded_session.commit()
    return station


@pytest.fixture
def sample_uplink():
    """TTN-style uplink of the default payload shape."""
    return {
        "dev_eui": "DEV1",
        "timestamp": "2024-01-01T00:00:00Z",
        "payload": {
            "temperature": 25.3,
            "humidity": 78.2,
            "rainfall": 0.4,
            "soil_moisture": 55.4,
            "luminosity": 820,
        },
    }


# PostgreSQL container fixture for integration tests
@pytest.fixture(scope="module")
def postgres_container():
    """
    PostgreSQL + TimescaleDB container for integration tests.
    Uses the timescale/timescaledb:latest-pg16 image; skipped without Docker.
    """
    postgres_module = pytest.importorskip("testcontainers.postgres")
    try:
        postgres = postgres_module.PostgresContainer(
            image="timescale/timescaledb:latest-pg16",
            username="testuser",
            password="testpass",
            dbname="testdb",
        )
        postgres.start()
    except Exception as e:
        pytest.skip(f"Docker not available: {e}")
    yield postgres
    postgres.stop()


@pytest.fixture(scope="function")
async def postgres_engine(postgres_container):
    """Engine for a real PostgreSQL with TimescaleDB."""
    connection_url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")

    engine = create_async_engine(connection_url, echo=False)

    async with engine.begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS timescaledb"))
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(f"""
            SELECT create_hypertable(
                '{SCHEMA}.measurements',
                'time',
                if_not_exists => TRUE
            )
        """))

    yield engine

    await engine.dispose()


@pytest.fixture
async def postgres_session(postgres_engine) -> AsyncGenerator[AsyncSession, None]:
    """PostgreSQL session with the default catalog seeded."""
    async_session = async_sessionmaker(
        postgres_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        await CatalogRepository(session).ensure_defaults()
        await session.commit()
        yield session
        await session.rollback()
