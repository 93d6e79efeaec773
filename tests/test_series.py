"""
Tests for the aggregation query engine.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from opws.database.repositories import CatalogRepository, MeasurementRepository, StationRepository
from opws.exceptions import InvalidQueryError, StorageError
from opws.services.series import (
    Granularity,
    SeriesPoint,
    SeriesQueryEngine,
    parse_variable_keys,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
async def store(seeded_session):
    """Station DEV1 plus a helper writing readings by kind key."""
    station, _ = await StationRepository(seeded_session).get_or_create_for_device("DEV1")
    kinds = {k.key: k.id for k in await CatalogRepository(seeded_session).get_all()}
    measurements = MeasurementRepository(seeded_session)

    async def write(key, readings):
        await measurements.insert_ignore_duplicates(
            [{"station_id": station.id, "kind_id": kinds[key], "time": t, "value": v} for t, v in readings]
        )
        await seeded_session.commit()

    write.station_id = station.id
    return write


@pytest.fixture
def engine(seeded_session):
    return SeriesQueryEngine(seeded_session)


@pytest.mark.asyncio
async def test_day_bucket_sums_rainfall(store, engine):
    """Two rain readings on the same day add up in a single daily point."""
    await store("rainfall_mm", [(utc(2024, 1, 1, 10), 1.2), (utc(2024, 1, 1, 16), 2.3)])

    series = await engine.query(store.station_id, ["rainfall_mm"], utc(2024, 1, 1), utc(2024, 1, 3), "day")

    assert len(series["rainfall_mm"]) == 1
    point = series["rainfall_mm"][0]
    assert point.t == utc(2024, 1, 1)
    assert point.v == pytest.approx(3.5)
    assert point.min == pytest.approx(1.2)
    assert point.max == pytest.approx(2.3)
    assert point.count == 2


@pytest.mark.asyncio
async def test_hour_bucket_averages(store, engine):
    await store(
        "air_temp_c",
        [(utc(2024, 1, 1, 10, 0), 20.0), (utc(2024, 1, 1, 10, 15), 22.0), (utc(2024, 1, 1, 10, 45), 27.0),
         (utc(2024, 1, 1, 11, 0), 30.0)],
    )

    series = await engine.query(store.station_id, "air_temp_c", utc(2024, 1, 1), utc(2024, 1, 2), "hour")

    points = series["air_temp_c"]
    assert [p.t for p in points] == [utc(2024, 1, 1, 10), utc(2024, 1, 1, 11)]
    assert points[0].v == pytest.approx(23.0)
    assert (points[0].min, points[0].max, points[0].count) == (20.0, 27.0, 3)
    assert points[1].v == pytest.approx(30.0)


@pytest.mark.asyncio
async def test_mixed_policies_in_one_query(store, engine):
    await store("rainfall_mm", [(utc(2024, 1, 1, 14), 1.0), (utc(2024, 1, 1, 15), 3.0)])
    await store("soil_moisture_pct", [(utc(2024, 1, 1, 14), 50.0), (utc(2024, 1, 1, 15), 60.0)])

    series = await engine.query(
        store.station_id, "rainfall_mm,soil_moisture_pct", utc(2024, 1, 1), utc(2024, 1, 2), "DAY"
    )

    assert series["rainfall_mm"][0].v == pytest.approx(4.0)
    assert series["soil_moisture_pct"][0].v == pytest.approx(55.0)


@pytest.mark.asyncio
async def test_raw_series_ordered(store, engine):
    await store("luminosity_lx", [(utc(2024, 1, 1, 12), 900.0), (utc(2024, 1, 1, 6), 10.0), (utc(2024, 1, 1, 9), 400.0)])

    series = await engine.query(store.station_id, ["luminosity_lx"], utc(2024, 1, 1), utc(2024, 1, 2), "raw")

    points = series["luminosity_lx"]
    assert [p.v for p in points] == [10.0, 400.0, 900.0]
    assert all(p.min is None and p.count is None for p in points)
    assert points == sorted(points, key=lambda p: p.t)


@pytest.mark.asyncio
@pytest.mark.parametrize("group", ["raw", "hour", "day", "week", "month"])
async def test_half_open_interval(store, engine, group):
    """A reading at 'from' is included, one at 'to' is not."""
    start, end = utc(2024, 1, 1), utc(2024, 3, 1)
    await store("air_humidity_pct", [(start, 70.0), (end, 90.0)])

    series = await engine.query(store.station_id, ["air_humidity_pct"], start, end, group)

    points = series["air_humidity_pct"]
    assert len(points) == 1
    assert points[0].v == pytest.approx(70.0)


@pytest.mark.asyncio
async def test_week_buckets_start_on_monday(store, engine):
    # Wed 3rd, Sun 7th, Mon 8th of January 2024
    await store("air_temp_c", [(utc(2024, 1, 3, 12), 24.0), (utc(2024, 1, 7, 23, 45), 26.0), (utc(2024, 1, 8), 28.0)])

    series = await engine.query(store.station_id, ["air_temp_c"], utc(2024, 1, 1), utc(2024, 1, 15), "week")

    points = series["air_temp_c"]
    assert [p.t for p in points] == [utc(2024, 1, 1), utc(2024, 1, 8)]
    assert [p.count for p in points] == [2, 1]
    assert points[0].v == pytest.approx(25.0)


@pytest.mark.asyncio
async def test_month_buckets(store, engine):
    await store("rainfall_mm", [(utc(2024, 1, 31, 23), 5.0), (utc(2024, 2, 1, 0), 2.0), (utc(2024, 2, 29, 12), 1.0)])

    series = await engine.query(store.station_id, ["rainfall_mm"], utc(2024, 1, 1), utc(2024, 4, 1), "month")

    points = series["rainfall_mm"]
    assert [p.t for p in points] == [utc(2024, 1, 1), utc(2024, 2, 1)]
    assert [p.v for p in points] == [pytest.approx(5.0), pytest.approx(3.0)]


@pytest.mark.asyncio
async def test_buckets_are_utc_aligned(store, engine):
    """Offsets in the request bounds do not shift bucket edges."""
    await store("rainfall_mm", [(utc(2024, 1, 1, 2), 1.0), (utc(2024, 1, 1, 23), 1.0)])

    series = await engine.query(
        store.station_id, ["rainfall_mm"], "2023-12-31T21:00:00-03:00", "2024-01-02T00:00:00Z", "day"
    )

    assert [(p.t, p.v) for p in series["rainfall_mm"]] == [(utc(2024, 1, 1), pytest.approx(2.0))]


@pytest.mark.asyncio
async def test_other_stations_not_included(store, engine, seeded_session):
    other, _ = await StationRepository(seeded_session).get_or_create_for_device("DEV2")
    await store("air_temp_c", [(utc(2024, 1, 1, 1), 21.0)])

    series = await engine.query(other.id, ["air_temp_c"], utc(2024, 1, 1), utc(2024, 1, 2), "raw")

    assert series == {"air_temp_c": []}


@pytest.mark.asyncio
async def test_unresolved_keys_are_empty(store, engine):
    await store("air_temp_c", [(utc(2024, 1, 1, 1), 21.0)])

    series = await engine.query(store.station_id, "air_temp_c, pm10 ,,air_temp_c", utc(2024, 1, 1), utc(2024, 1, 2), "raw")

    assert list(series) == ["air_temp_c", "pm10"]
    assert len(series["air_temp_c"]) == 1
    assert series["pm10"] == []


@pytest.mark.asyncio
async def test_custom_variable_map(store, seeded_session):
    await store("air_temp_c", [(utc(2024, 1, 1, 1), 21.0)])
    engine = SeriesQueryEngine(seeded_session, variable_map={"temperature": "air_temp_c", "temp": "air_temp_c"})

    series = await engine.query(store.station_id, ["temperature", "temp", "air_temp_c"], utc(2024, 1, 1), utc(2024, 1, 2), "raw")

    assert [p.v for p in series["temperature"]] == [21.0]
    assert [p.v for p in series["temp"]] == [21.0]
    assert series["air_temp_c"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "station_id,keys,start,end",
    [
        (1, ["air_temp_c"], "2024-01-02T00:00:00Z", "2024-01-01T00:00:00Z"),
        (1, ["air_temp_c"], "2024-01-01T00:00:00Z", "2024-01-01T00:00:00Z"),
        (1, ["air_temp_c"], "not-a-date", "2024-01-01T00:00:00Z"),
        (1, ["air_temp_c"], "2024-01-01T00:00:00Z", None),
        (1, [], "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
        (1, " , ", "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
        (1, ["pm10", "no2"], "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
        ("abc", ["air_temp_c"], "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
        (0, ["air_temp_c"], "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
        (-4, ["air_temp_c"], "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z"),
    ],
)
async def test_invalid_queries(engine, station_id, keys, start, end):
    with pytest.raises(InvalidQueryError) as exc_info:
        await engine.query(station_id, keys, start, end, "hour")

    assert exc_info.value.kind == "invalid_query"


@pytest.mark.asyncio
async def test_storage_failure_returns_no_partial_result(store, engine, monkeypatch):
    async def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(MeasurementRepository, "fetch_buckets", broken)

    with pytest.raises(StorageError):
        await engine.query(store.station_id, ["air_temp_c"], utc(2024, 1, 1), utc(2024, 1, 2), "day")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("raw", Granularity.RAW),
        ("HOUR", Granularity.HOUR),
        (" Day ", Granularity.DAY),
        ("week", Granularity.WEEK),
        ("month", Granularity.MONTH),
        ("fortnight", Granularity.HOUR),
        ("", Granularity.HOUR),
        (None, Granularity.HOUR),
        (Granularity.MONTH, Granularity.MONTH),
    ],
)
def test_granularity_parse(value, expected):
    assert Granularity.parse(value) is expected


def test_parse_variable_keys():
    assert parse_variable_keys("a, b,,a") == ["a", "b"]
    assert parse_variable_keys(["b", " a ", ""]) == ["b", "a"]
    assert parse_variable_keys(None) == []


def test_series_point_to_dict():
    raw = SeriesPoint(t=utc(2024, 1, 1, 6), v=12.5)
    bucket = SeriesPoint(t=utc(2024, 1, 1), v=3.5, min=1.2, max=2.3, count=2)

    assert raw.to_dict() == {"t": "2024-01-01T06:00:00Z", "v": 12.5}
    assert bucket.to_dict() == {"t": "2024-01-01T00:00:00Z", "v": 3.5, "min": 1.2, "max": 2.3, "count": 2}
