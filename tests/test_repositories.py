"""
Tests for repository pattern.
"""

from datetime import datetime, timedelta, timezone

import pytest

from opws.database.repositories import (
    CatalogRepository,
    DeviceRepository,
    MeasurementRepository,
    StationRepository,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def sample_station_data():
    """Sample station data for testing."""
    return {
        "code": "EST-02",
        "name": "Estação Pomar",
        "latitude": -22.9056,
        "longitude": -47.0608,
        "elevation_m": 640.0,
        "timezone": "America/Sao_Paulo",
    }


@pytest.mark.asyncio
async def test_station_create(db_session, sample_station_data):
    """Test station creation."""
    repo = StationRepository(db_session)

    station = await repo.create_or_update(sample_station_data)

    assert station.id > 0
    assert station.code == "EST-02"
    assert station.latitude == -22.9056
    assert station.is_active is True


@pytest.mark.asyncio
async def test_station_update(db_session, sample_station_data):
    """Test station update."""
    repo = StationRepository(db_session)

    created = await repo.create_or_update(sample_station_data)
    updated = await repo.create_or_update({**sample_station_data, "name": "Estação Renomeada"})

    assert updated.id == created.id
    assert updated.name == "Estação Renomeada"
    assert updated.updated_at is not None


@pytest.mark.asyncio
async def test_station_list_active(db_session, sample_station_data):
    repo = StationRepository(db_session)
    await repo.create_or_update(sample_station_data)
    await repo.create_or_update({"code": "EST-03", "name": "Desativada", "is_active": False})

    active = await repo.list_active()

    assert [s.code for s in active] == ["EST-02"]


@pytest.mark.asyncio
async def test_station_search(db_session, sample_station_data):
    repo = StationRepository(db_session)
    await repo.create_or_update(sample_station_data)
    await repo.create_or_update({"code": "EST-03", "name": "Desativada", "is_active": False})
    await repo.create_or_update({"code": "EST-04", "name": "100%_umidade"})

    assert [s.code for s in await repo.search()] == ["EST-04", "EST-03", "EST-02"]
    assert [s.code for s in await repo.search("POMAR")] == ["EST-02"]
    assert [s.code for s in await repo.search("%")] == ["EST-04"]
    assert await repo.search("horta") == []


@pytest.mark.asyncio
async def test_station_get_or_create_for_device(db_session):
    repo = StationRepository(db_session)

    station, created = await repo.get_or_create_for_device("70B3D57ED005A1B2")
    again, created_again = await repo.get_or_create_for_device("70B3D57ED005A1B2")

    assert created is True
    assert created_again is False
    assert again.id == station.id
    assert station.name == "Station 70B3D57ED005A1B2"
    assert station.timezone == "UTC"


@pytest.mark.asyncio
async def test_device_get_or_create(db_session):
    station, _ = await StationRepository(db_session).get_or_create_for_device("DEV9")
    repo = DeviceRepository(db_session)

    device, created = await repo.get_or_create("DEV9", station_id=station.id, description="field node")
    again, created_again = await repo.get_or_create("DEV9", station_id=station.id)

    assert created is True
    assert created_again is False
    assert again.id == device.id
    assert device.station.code == "DEV9"
    assert again.description == "field node"


@pytest.mark.asyncio
async def test_device_mappings(seeded_session):
    station, _ = await StationRepository(seeded_session).get_or_create_for_device("DEV9")
    devices = DeviceRepository(seeded_session)
    device, _ = await devices.get_or_create("DEV9", station_id=station.id)
    temp = await CatalogRepository(seeded_session).get_by_key("air_temp_c")

    await devices.set_mapping(device.id, temp.id, "t", scale=0.1)
    await devices.set_mapping(device.id, temp.id, "temp_raw", scale=0.01, offset=-40.0)

    mappings = await devices.get_mappings(device.id)
    assert len(mappings) == 1
    assert mappings[0].payload_key == "temp_raw"
    assert mappings[0].kind.key == "air_temp_c"
    assert (mappings[0].scale, mappings[0].offset) == (0.01, -40.0)


@pytest.mark.asyncio
async def test_measurement_insert_ignores_duplicates(seeded_session):
    """The same (station, kind, time) is written once; the rerun reports 0."""
    station, _ = await StationRepository(seeded_session).get_or_create_for_device("DEV1")
    kind = await CatalogRepository(seeded_session).get_by_key("air_temp_c")
    repo = MeasurementRepository(seeded_session)
    rows = [
        {"station_id": station.id, "kind_id": kind.id, "time": T0 + timedelta(minutes=15 * i), "value": 20.0 + i}
        for i in range(4)
    ]

    assert await repo.insert_ignore_duplicates(rows) == 4
    assert await repo.insert_ignore_duplicates(rows) == 0

    overlapping = rows[2:] + [{**rows[0], "time": T0 + timedelta(hours=1), "value": 99.0}]
    assert await repo.insert_ignore_duplicates(overlapping) == 1
    assert await repo.count(station.id) == 5
    assert await repo.insert_ignore_duplicates([]) == 0


@pytest.mark.asyncio
async def test_measurement_duplicate_keeps_first_value(seeded_session):
    station, _ = await StationRepository(seeded_session).get_or_create_for_device("DEV1")
    kind = await CatalogRepository(seeded_session).get_by_key("air_temp_c")
    repo = MeasurementRepository(seeded_session)
    row = {"station_id": station.id, "kind_id": kind.id, "time": T0, "value": 21.0}

    await repo.insert_ignore_duplicates([row])
    await repo.insert_ignore_duplicates([{**row, "value": 35.0}])

    rows = await repo.fetch_raw(station.id, [kind.id], T0, T0 + timedelta(hours=1))
    assert [r.value for r in rows] == [21.0]


@pytest.mark.asyncio
async def test_measurement_delete_for_station(seeded_session):
    stations = StationRepository(seeded_session)
    first, _ = await stations.get_or_create_for_device("DEV1")
    second, _ = await stations.get_or_create_for_device("DEV2")
    kind = await CatalogRepository(seeded_session).get_by_key("rainfall_mm")
    repo = MeasurementRepository(seeded_session)
    await repo.insert_ignore_duplicates(
        [
            {"station_id": first.id, "kind_id": kind.id, "time": T0, "value": 1.0},
            {"station_id": first.id, "kind_id": kind.id, "time": T0 + timedelta(hours=1), "value": 2.0},
            {"station_id": second.id, "kind_id": kind.id, "time": T0, "value": 3.0},
        ]
    )

    assert await repo.delete_for_station(first.id) == 2
    assert await repo.count(first.id) == 0
    assert await repo.count(second.id, kind.id) == 1

