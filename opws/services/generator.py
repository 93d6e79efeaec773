"""Synthetic telemetry generator.

Produces a plausible multi-day history for a station (tropical lowland
climate) and writes it through the same idempotent insert as ingestion, so
re-running over an overlapping range never duplicates rows.

Model, per timestep (default 15 min), in the station's local time:
    - rain events precomputed per calendar day (Bernoulli, afternoon window)
    - air temperature: diurnal curve 20-32 °C, cooler under rain
    - air humidity: inverse to temperature, 85-95 % under rain
    - rainfall: event intensity scaled to the step, ±20 % jitter
    - soil moisture: leaky bucket carried from the previous step, 40-80 %
    - luminosity: 0 at night, daylight sine up to ~100 000 lx, dimmed by rain
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from opws.catalog import GENERATED_KIND_KEYS
from opws.config import settings
from opws.database.repositories import (
    MAX_BATCH_ROWS,
    CatalogRepository,
    KindRef,
    MeasurementRepository,
    StationRepository,
)
from opws.exceptions import PreconditionError, StorageError
from opws.logger import get_logger
from opws.utils import ensure_utc, format_duration

logger = get_logger(__name__)

# Physical bounds of the generated variables
AIR_TEMP_RANGE = (20.0, 32.0)
AIR_HUMIDITY_RANGE = (60.0, 95.0)
RAIN_HUMIDITY_RANGE = (85.0, 95.0)
SOIL_MOISTURE_RANGE = (40.0, 80.0)

AIR_TEMP_BASE = 26.0
AIR_TEMP_AMPLITUDE = 6.0
PEAK_HOUR = 14.0
TROUGH_HOUR = 4.0

RAIN_WINDOW_HOURS = (14.0, 18.0)
RAIN_DURATION_MINUTES = (30.0, 120.0)
RAIN_INTENSITY_MM_PER_HOUR = (0.5, 15.0)

SOIL_MOISTURE_INITIAL = 55.0
EVAPORATION_PCT_PER_HOUR = 0.5
MIDDAY_EXTRA_EVAPORATION_PCT = 0.15  # per 15 minutes, 10:00-16:59
ABSORPTION_FACTOR = 2.5

DAYLIGHT_HOURS = (6.0, 18.0)
PEAK_LUMINOSITY_LX = 100_000.0


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    return max(bounds[0], min(bounds[1], value))


# ----------------------------------------------------------------------------
# Rain events
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class RainEvent:
    start: datetime
    duration_minutes: float
    intensity_mm_per_hour: float

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def covers(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def generate_rain_events(
    start: datetime,
    days: int,
    rng: np.random.Generator,
    probability: float = 0.18,
    window_hours: Tuple[float, float] = RAIN_WINDOW_HOURS,
    tz: str = "UTC",
) -> List[RainEvent]:
    """
    One Bernoulli draw per local calendar day starting at ``start``'s date.

    A rainy day gets one event starting inside the afternoon window, lasting
    30-120 minutes at 0.5-15 mm/h.
    """
    first_day = pd.Timestamp(ensure_utc(start)).tz_convert(tz).normalize()
    events = []
    for day in range(days):
        if rng.random() >= probability:
            continue
        day_start = first_day + pd.Timedelta(days=day)
        event_start = (day_start + pd.Timedelta(hours=rng.uniform(*window_hours))).floor("min")
        events.append(
            RainEvent(
                start=event_start.tz_convert("UTC").to_pydatetime(),
                duration_minutes=float(rng.uniform(*RAIN_DURATION_MINUTES)),
                intensity_mm_per_hour=float(rng.uniform(*RAIN_INTENSITY_MM_PER_HOUR)),
            )
        )
    return events


def rain_at(instant: datetime, events: Sequence[RainEvent]) -> Tuple[bool, float]:
    """(raining, intensity in mm/h) at an instant."""
    for event in events:
        if event.covers(instant):
            return True, event.intensity_mm_per_hour
    return False, 0.0


# ----------------------------------------------------------------------------
# Per-timestep variables
# ----------------------------------------------------------------------------


def diurnal_cycle(hour: float) -> float:
    """-1 at 04:00, +1 at 14:00, smooth in between (rises over 10 h, falls over 14 h)."""
    if TROUGH_HOUR <= hour < PEAK_HOUR:
        phase = (hour - TROUGH_HOUR) / (PEAK_HOUR - TROUGH_HOUR)
        return -math.cos(phase * math.pi)
    phase = ((hour - PEAK_HOUR) % 24.0) / (24.0 - (PEAK_HOUR - TROUGH_HOUR))
    return math.cos(phase * math.pi)


def air_temperature(hour: float, raining: bool, rng: np.random.Generator) -> float:
    temp = AIR_TEMP_BASE + AIR_TEMP_AMPLITUDE * diurnal_cycle(hour)
    if raining:
        temp -= rng.uniform(2.0, 4.0)
    temp += rng.uniform(-0.75, 0.75)
    return _clamp(temp, AIR_TEMP_RANGE)


def air_humidity(hour: float, air_temp: float, raining: bool, rng: np.random.Generator) -> float:
    # 0 when hot, 1 when cold
    temp_factor = (AIR_TEMP_RANGE[1] - air_temp) / (AIR_TEMP_RANGE[1] - AIR_TEMP_RANGE[0])
    humidity = 65.0 + 20.0 * temp_factor - 10.0 * diurnal_cycle(hour)
    humidity += rng.uniform(-1.5, 1.5)
    if raining:
        return _clamp(rng.uniform(*RAIN_HUMIDITY_RANGE), RAIN_HUMIDITY_RANGE)
    return _clamp(humidity, AIR_HUMIDITY_RANGE)


def rainfall(intensity_mm_per_hour: float, step_minutes: int, rng: np.random.Generator) -> float:
    """Rain fallen during one step (mm)."""
    if intensity_mm_per_hour <= 0:
        return 0.0
    per_step = intensity_mm_per_hour / (60.0 / step_minutes)
    return per_step * rng.uniform(0.8, 1.2)


def luminosity(hour: float, raining: bool, rng: np.random.Generator) -> float:
    if hour < DAYLIGHT_HOURS[0] or hour >= DAYLIGHT_HOURS[1]:
        return float(rng.uniform(0.0, 5.0))

    daylight = math.sin((hour - DAYLIGHT_HOURS[0]) / (DAYLIGHT_HOURS[1] - DAYLIGHT_HOURS[0]) * math.pi)
    lux = PEAK_LUMINOSITY_LX * daylight
    lux *= rng.uniform(0.2, 0.5) if raining else rng.uniform(0.7, 1.0)
    lux *= rng.uniform(0.9, 1.1)
    return max(0.0, lux)


def soil_moisture_step(
    previous: float,
    rainfall_mm: float,
    hour: float,
    step_minutes: int = 15,
    noise: float = 0.0,
) -> float:
    """Leaky bucket: evaporate, absorb this step's rain, clamp to 40-80 %."""
    moisture = previous - EVAPORATION_PCT_PER_HOUR * step_minutes / 60.0
    if 10.0 <= hour < 17.0:
        moisture -= MIDDAY_EXTRA_EVAPORATION_PCT * step_minutes / 15.0
    moisture += rainfall_mm * ABSORPTION_FACTOR
    moisture += noise
    return _clamp(moisture, SOIL_MOISTURE_RANGE)


def soil_moisture_trace(
    rainfall_mm: Sequence[float],
    hours: Sequence[float],
    initial: float = SOIL_MOISTURE_INITIAL,
    step_minutes: int = 15,
    noise: Optional[Sequence[float]] = None,
) -> List[float]:
    """
    Fold soil_moisture_step over a timestep sequence.

    ``trace[i]`` depends only on ``trace[i - 1]`` (or ``initial``) and the
    inputs at index ``i``.
    """
    if len(rainfall_mm) != len(hours):
        raise ValueError("rainfall and hours must have the same length")
    trace = [0.0] * len(rainfall_mm)
    for i in range(len(trace)):
        previous = trace[i - 1] if i else initial
        trace[i] = soil_moisture_step(
            previous,
            rainfall_mm[i],
            hours[i],
            step_minutes=step_minutes,
            noise=noise[i] if noise is not None else 0.0,
        )
    return trace


@dataclass(frozen=True)
class TimestepState:
    instant: datetime
    raining: bool
    air_temp_c: float
    air_humidity_pct: float
    rainfall_mm: float
    soil_moisture_pct: float
    luminosity_lx: float

    def values(self) -> Dict[str, float]:
        return {key: getattr(self, key) for key in GENERATED_KIND_KEYS}


def local_hours(instants: pd.DatetimeIndex, tz: str) -> np.ndarray:
    local = instants.tz_convert(tz)
    return (local.hour + local.minute / 60.0).to_numpy(dtype=float)


def simulate(
    start: datetime,
    end: datetime,
    rng: np.random.Generator,
    step_minutes: int = 15,
    tz: str = "UTC",
    rain_probability: float = 0.18,
    initial_soil_moisture: float = SOIL_MOISTURE_INITIAL,
) -> Tuple[List[TimestepState], List[RainEvent]]:
    """
    Derive every variable for each instant in [start, end).

    Strictly sequential because soil moisture carries state between steps.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    instants = pd.date_range(start=start, end=end, freq=f"{step_minutes}min", inclusive="left")
    if len(instants) == 0:
        return [], []

    days = (end - start).days + 2  # every local calendar day the range touches
    events = generate_rain_events(start, days, rng, probability=rain_probability, tz=tz)
    hours = local_hours(instants, tz)
    utc_instants = [ts.to_pydatetime() for ts in instants]

    rain = [rain_at(t, events) for t in utc_instants]
    temps = [air_temperature(h, r, rng) for h, (r, _) in zip(hours, rain)]
    humidities = [air_humidity(h, t, r, rng) for h, t, (r, _) in zip(hours, temps, rain)]
    rain_mm = [rainfall(i, step_minutes, rng) for _, i in rain]
    soil = soil_moisture_trace(
        rain_mm,
        hours,
        initial=initial_soil_moisture,
        step_minutes=step_minutes,
        noise=rng.uniform(-0.25, 0.25, size=len(hours)),
    )
    lux = [luminosity(h, r, rng) for h, (r, _) in zip(hours, rain)]

    states = [
        TimestepState(
            instant=utc_instants[i],
            raining=bool(rain[i][0]),
            air_temp_c=float(round(temps[i], 2)),
            air_humidity_pct=float(round(humidities[i], 2)),
            rainfall_mm=float(round(rain_mm[i], 2)),
            soil_moisture_pct=float(round(soil[i], 2)),
            luminosity_lx=float(round(lux[i])),
        )
        for i in range(len(utc_instants))
    ]
    return states, events


# ----------------------------------------------------------------------------
# Writing to the store
# ----------------------------------------------------------------------------


@dataclass
class GenerationReport:
    station_id: int
    start: datetime
    end: datetime
    timesteps: int = 0
    rows_staged: int = 0
    rows_inserted: int = 0
    batches: int = 0
    rain_events: List[RainEvent] = field(default_factory=list)


class TelemetryGenerator:
    """
    Seeds a station with synthetic history.

    Each flushed batch is committed on its own: a run interrupted between
    batches keeps everything flushed so far, and a re-run fills the rest.
    """

    def __init__(
        self,
        session: AsyncSession,
        batch_size: Optional[int] = None,
        step_minutes: Optional[int] = None,
        seed: Optional[int] = None,
        rain_probability: Optional[float] = None,
    ):
        self.session = session
        self.batch_size = batch_size or settings.GENERATOR_BATCH_SIZE
        self.step_minutes = step_minutes or settings.GENERATOR_STEP_MINUTES
        self.rain_probability = (
            settings.GENERATOR_RAIN_PROBABILITY if rain_probability is None else rain_probability
        )
        self.rng = np.random.default_rng(seed)
        self.stations = StationRepository(session)
        self.catalog = CatalogRepository(session)
        self.measurements = MeasurementRepository(session)

    async def check_preconditions(self, station_id: int, start: datetime, end: datetime):
        """
        Fail before any write if the target is not ready.

        Unlike ingestion, never creates stations or catalog kinds.
        """
        if self.step_minutes <= 0 or self.batch_size <= 0:
            raise PreconditionError("step_minutes and batch_size must be positive")
        if self.batch_size > MAX_BATCH_ROWS:
            raise PreconditionError(
                f"batch_size {self.batch_size} exceeds the {MAX_BATCH_ROWS} rows one insert can carry"
            )
        if ensure_utc(start) >= ensure_utc(end):
            raise PreconditionError(f"Empty generation range: {start} >= {end}")

        station = await self.stations.get_by_id(station_id)
        if station is None:
            raise PreconditionError(f"Station {station_id} does not exist")

        kinds = await self.catalog.get_by_keys(GENERATED_KIND_KEYS)
        missing = [key for key in GENERATED_KIND_KEYS if key not in kinds]
        if missing:
            raise PreconditionError(f"Catalog kind(s) missing: {', '.join(missing)}")
        return station, kinds

    def stage_rows(
        self,
        station_id: int,
        states: Sequence[TimestepState],
        kinds: Dict[str, KindRef],
    ) -> List[dict]:
        """Five measurement rows per timestep."""
        return [
            {
                "station_id": station_id,
                "kind_id": kinds[key].id,
                "time": state.instant,
                "value": value,
            }
            for state in states
            for key, value in state.values().items()
        ]

    async def run(
        self,
        station_id: int,
        start: datetime,
        end: datetime,
        clean: bool = False,
    ) -> GenerationReport:
        """
        Generate and store [start, end) for one station.

        Raises:
            PreconditionError: station or catalog kinds missing, bad range
            StorageError: a batch failed; earlier batches stay committed
        """
        try:
            station, kinds = await self.check_preconditions(station_id, start, end)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not check generator preconditions: {e}") from e

        start = ensure_utc(start)
        end = ensure_utc(end)
        tz = _valid_timezone(station.timezone)
        label = f"{station.name} ({station.code})"
        report = GenerationReport(station_id=station_id, start=start, end=end)

        if clean:
            try:
                await self.measurements.delete_for_station(station_id)
                await self.session.commit()
            except SQLAlchemyError as e:
                raise StorageError(f"Could not clean station {station_id}: {e}") from e

        began = datetime.now()
        states, events = simulate(
            start,
            end,
            self.rng,
            step_minutes=self.step_minutes,
            tz=tz,
            rain_probability=self.rain_probability,
        )
        report.timesteps = len(states)
        report.rain_events = events

        rows = self.stage_rows(station_id, states, kinds)
        report.rows_staged = len(rows)
        logger.info(
            f"Station {label}: {len(states)} timesteps, "
            f"{len(rows)} rows, {len(events)} rain events"
        )

        for offset in range(0, len(rows), self.batch_size):
            batch = rows[offset:offset + self.batch_size]
            try:
                report.rows_inserted += await self.measurements.insert_ignore_duplicates(batch)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Batch {report.batches + 1} failed for station {station_id}: {e}")
                raise StorageError(
                    f"Generator batch failed after {report.rows_inserted} rows for station {station_id}"
                ) from e
            report.batches += 1
            logger.debug(f"Batch {report.batches}: {offset + len(batch)}/{len(rows)} rows flushed")

        elapsed = (datetime.now() - began).total_seconds()
        logger.info(
            f"Station {station_id}: {report.rows_inserted}/{report.rows_staged} rows inserted "
            f"in {report.batches} batches ({format_duration(elapsed)})"
        )
        return report

    async def run_all_active(self, start: datetime, end: datetime, clean: bool = False) -> List[GenerationReport]:
        """Generate for every active station, one after the other."""
        stations = await self.stations.list_active()
        if not stations:
            raise PreconditionError("No active stations found")
        station_ids = [s.id for s in stations]
        return [await self.run(station_id, start, end, clean=clean) for station_id in station_ids]


def _valid_timezone(name: Optional[str]) -> str:
    try:
        ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown station timezone {name!r}, using UTC")
        return "UTC"
    return name or "UTC"
