"""
Tests for the ingestion gateway.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from opws.database.models import Device, Measurement, Station
from opws.database.repositories import (
    CatalogRepository,
    DeviceRepository,
    KindCache,
    MeasurementRepository,
    StationRepository,
)
from opws.exceptions import SchemaError, StorageError, ValidationError
from opws.services.ingestion import IngestionGateway


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_first_uplink_provisions_station_and_device(seeded_session, sample_uplink):
    """Unknown DEV1 at 2024-01-01T00:00:00Z: one station, one device, five rows."""
    gateway = IngestionGateway(seeded_session)

    result = await gateway.ingest(sample_uplink)

    assert result.inserted == 5
    assert result.station_created is True
    assert result.device_created is True
    assert result.station_name == "Station DEV1"
    assert result.instant == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert await _count(seeded_session, Station) == 1
    assert await _count(seeded_session, Device) == 1

    rows = (await seeded_session.execute(select(Measurement))).scalars().all()
    kinds = {k.id: k.key for k in await CatalogRepository(seeded_session).get_all()}
    values = {kinds[row.kind_id]: row.value for row in rows}
    assert values == {
        "air_temp_c": 25.3,
        "air_humidity_pct": 78.2,
        "rainfall_mm": 0.4,
        "soil_moisture_pct": 55.4,
        "luminosity_lx": 820.0,
    }
    assert all(row.station_id == result.station_id for row in rows)
    assert rows[0].raw_payload == sample_uplink["payload"]


@pytest.mark.asyncio
async def test_duplicate_uplink_inserts_nothing(seeded_session, sample_uplink):
    gateway = IngestionGateway(seeded_session)

    first = await gateway.ingest(sample_uplink)
    second = await gateway.ingest(sample_uplink)

    assert first.inserted == 5
    assert second.inserted == 0
    assert second.station_created is False
    assert second.device_created is False
    assert second.station_id == first.station_id
    assert await _count(seeded_session, Measurement) == 5


@pytest.mark.asyncio
async def test_partial_overlap_counts_new_rows_only(seeded_session, sample_uplink):
    gateway = IngestionGateway(seeded_session)
    await gateway.ingest({**sample_uplink, "payload": {"temperature": 25.3}})

    result = await gateway.ingest(sample_uplink)

    assert result.inserted == 4


@pytest.mark.asyncio
async def test_uplink_for_existing_device(station, seeded_session, sample_uplink):
    """A registered device writes to its own station, nothing is provisioned."""
    await DeviceRepository(seeded_session).get_or_create("NODE-7", station_id=station.id)
    await seeded_session.commit()

    result = await IngestionGateway(seeded_session).ingest({**sample_uplink, "dev_eui": "NODE-7"})

    assert result.station_id == station.id
    assert result.station_name == "Estação Horta"
    assert result.station_created is False
    assert result.device_created is False
    assert await _count(seeded_session, Station) == 1


@pytest.mark.asyncio
async def test_explicit_mapping_applies_scale_and_offset(station, seeded_session):
    devices = DeviceRepository(seeded_session)
    device, _ = await devices.get_or_create("NODE-8", station_id=station.id)
    catalog = CatalogRepository(seeded_session)
    temp = await catalog.get_by_key("air_temp_c")
    soil = await catalog.get_by_key("soil_moisture_pct")
    await devices.set_mapping(device.id, temp.id, "t_raw", scale=0.01, offset=-40.0)
    await devices.set_mapping(device.id, soil.id, "vwc", scale=100.0)
    await seeded_session.commit()

    result = await IngestionGateway(seeded_session).ingest(
        {"dev_eui": "NODE-8", "timestamp": "2024-01-01T12:00:00Z", "payload": {"t_raw": 6530, "vwc": 0.42}}
    )

    assert result.inserted == 2
    rows = await MeasurementRepository(seeded_session).fetch_raw(
        station.id, [temp.id, soil.id], datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 2, tzinfo=timezone.utc)
    )
    values = {row.kind_id: row.value for row in rows}
    assert values[temp.id] == pytest.approx(25.3)
    assert values[soil.id] == pytest.approx(42.0)


@pytest.mark.asyncio
async def test_explicit_mapping_rejects_unmapped_field(station, seeded_session):
    devices = DeviceRepository(seeded_session)
    device, _ = await devices.get_or_create("NODE-8", station_id=station.id)
    temp = await CatalogRepository(seeded_session).get_by_key("air_temp_c")
    await devices.set_mapping(device.id, temp.id, "t_raw")
    await seeded_session.commit()

    with pytest.raises(SchemaError) as exc_info:
        await IngestionGateway(seeded_session).ingest(
            {"dev_eui": "NODE-8", "timestamp": "2024-01-01T12:00:00Z", "payload": {"t_raw": 25.0, "temperature": 1.0}}
        )

    assert exc_info.value.details == {"unmapped_fields": ["temperature"]}
    assert await _count(seeded_session, Measurement) == 0


@pytest.mark.asyncio
async def test_unknown_field_is_schema_error_before_any_write(seeded_session, sample_uplink):
    uplink = {**sample_uplink, "payload": {**sample_uplink["payload"], "co2": 410.0}}

    with pytest.raises(SchemaError, match="co2"):
        await IngestionGateway(seeded_session).ingest(uplink)

    assert await _count(seeded_session, Station) == 0
    assert await _count(seeded_session, Device) == 0
    assert await _count(seeded_session, Measurement) == 0


@pytest.mark.asyncio
async def test_v1_shape_does_not_know_soil_temperature(seeded_session, sample_uplink):
    uplink = {**sample_uplink, "payload": {"soil_temperature": 22.1}}

    with pytest.raises(SchemaError):
        await IngestionGateway(seeded_session).ingest(uplink)

    result = await IngestionGateway(seeded_session).ingest({**uplink, "schema": "env.v2"})
    assert result.inserted == 1


@pytest.mark.asyncio
async def test_missing_catalog_kind_is_schema_error(db_session, sample_uplink):
    """Empty catalog: the default shape cannot resolve, nothing is provisioned."""
    with pytest.raises(SchemaError) as exc_info:
        await IngestionGateway(db_session, kind_cache=KindCache()).ingest(sample_uplink)

    assert "air_temp_c" in exc_info.value.details["missing_kinds"]
    assert await _count(db_session, Station) == 0


@pytest.mark.asyncio
async def test_invalid_uplink_is_validation_error(seeded_session, sample_uplink):
    with pytest.raises(ValidationError):
        await IngestionGateway(seeded_session).ingest({**sample_uplink, "timestamp": "soon"})

    with pytest.raises(ValidationError):
        await IngestionGateway(seeded_session).ingest({**sample_uplink, "dev_eui": ""})

    assert await _count(seeded_session, Station) == 0


@pytest.mark.asyncio
async def test_storage_failure_is_wrapped(seeded_session, sample_uplink, monkeypatch):
    async def broken_insert(self, rows):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(MeasurementRepository, "insert_ignore_duplicates", broken_insert)

    with pytest.raises(StorageError) as exc_info:
        await IngestionGateway(seeded_session).ingest(sample_uplink)

    assert exc_info.value.retryable is True
    assert isinstance(exc_info.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_second_session_reuses_provisioned_station(session_factory, seeded_session, sample_uplink):
    """A later session finds the station the first uplink provisioned."""
    async with session_factory() as first, session_factory() as second:
        one = await IngestionGateway(first).ingest(sample_uplink)
        await first.commit()
        two = await IngestionGateway(second).ingest({**sample_uplink, "timestamp": "2024-01-01T00:15:00Z"})
        await second.commit()

    assert one.station_id == two.station_id
    assert two.station_created is False
    assert await StationRepository(seeded_session).get_by_code("DEV1") is not None
