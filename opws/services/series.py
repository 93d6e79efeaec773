"""Aggregation query engine.

Turns (station, variable keys, [from, to), granularity) into one ordered
point series per requested key. ``raw`` returns the stored readings;
``hour``/``day``/``week``/``month`` return one point per calendar bucket
(UTC aligned, see ``opws.database.buckets``) whose value is the sum for SUM
kinds and the mean for AVERAGE kinds, with the bucket's min, max and sample
count alongside. Either mode is a single bounded query.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from opws.catalog import DEFAULT_VARIABLE_MAP
from opws.database.repositories import KindCache, MeasurementRepository
from opws.exceptions import InvalidQueryError, StorageError
from opws.logger import get_logger
from opws.utils import ensure_utc, format_timestamp, parse_timestamp

logger = get_logger(__name__)


class Granularity(str, Enum):
    RAW = "raw"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: Any) -> "Granularity":
        """Case-insensitive; anything unrecognized means hourly buckets."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.HOUR


@dataclass
class SeriesPoint:
    t: datetime
    v: float
    min: Optional[float] = None
    max: Optional[float] = None
    count: Optional[int] = None

    def to_dict(self) -> dict:
        point = {"t": format_timestamp(self.t), "v": self.v}
        if self.min is not None:
            point.update(min=self.min, max=self.max, count=self.count)
        return point


def parse_variable_keys(keys: Union[str, Iterable[str], None]) -> List[str]:
    """Comma-separated string or iterable -> unique non-blank keys, request order kept."""
    if keys is None:
        return []
    if isinstance(keys, str):
        keys = keys.split(",")
    return list(dict.fromkeys(k.strip() for k in keys if k and k.strip()))


def _parse_station_id(station_id: Any) -> int:
    if isinstance(station_id, bool):
        raise InvalidQueryError(f"Invalid station id: {station_id!r}")
    try:
        value = int(str(station_id).strip())
    except (TypeError, ValueError):
        raise InvalidQueryError(f"Invalid station id: {station_id!r}")
    if value <= 0:
        raise InvalidQueryError(f"Station id must be positive, got {value}")
    return value


def _parse_bound(value: Any, name: str) -> datetime:
    try:
        return parse_timestamp(value)
    except ValueError:
        raise InvalidQueryError(f"Invalid '{name}' timestamp: {value!r}")


class SeriesQueryEngine:
    """
    Station time-series reader.

    Args:
        session: database session (read only)
        variable_map: caller-facing key -> catalog kind key
            (defaults to the identity table of the current catalog)
        kind_cache: shared kind cache; a fresh one when omitted
    """

    def __init__(
        self,
        session: AsyncSession,
        variable_map: Optional[Mapping[str, str]] = None,
        kind_cache: Optional[KindCache] = None,
    ):
        self.session = session
        self.variable_map = dict(DEFAULT_VARIABLE_MAP if variable_map is None else variable_map)
        self.kind_cache = kind_cache or KindCache()
        self.measurements = MeasurementRepository(session)

    async def query(
        self,
        station_id: Any,
        variable_keys: Union[str, Iterable[str]],
        start: Any,
        end: Any,
        granularity: Any = Granularity.HOUR,
    ) -> Dict[str, List[SeriesPoint]]:
        """
        Run one series query.

        Returns:
            Every requested key -> points ordered by time (possibly empty)

        Raises:
            InvalidQueryError: bad station id, bad range, or no key resolves
            StorageError: the store failed; no partial result
        """
        station = _parse_station_id(station_id)
        start_at = _parse_bound(start, "from")
        end_at = _parse_bound(end, "to")
        if start_at >= end_at:
            raise InvalidQueryError(
                f"Invalid time range: 'from' ({format_timestamp(start_at)}) "
                f"must be before 'to' ({format_timestamp(end_at)})"
            )

        requested = parse_variable_keys(variable_keys)
        if not requested:
            raise InvalidQueryError("At least one variable key is required")
        group = Granularity.parse(granularity)

        try:
            storage_keys = {key: self.variable_map[key] for key in requested if key in self.variable_map}
            kinds = await self.kind_cache.resolve(self.session, storage_keys.values())

            # kind id -> caller keys reading it
            keys_by_kind: Dict[int, List[str]] = defaultdict(list)
            for key, storage_key in storage_keys.items():
                if storage_key in kinds:
                    keys_by_kind[kinds[storage_key].id].append(key)

            if not keys_by_kind:
                raise InvalidQueryError(
                    f"None of the requested variables is known: {', '.join(requested)}"
                )

            dropped = [k for k in requested if not any(k in ks for ks in keys_by_kind.values())]
            if dropped:
                logger.debug(f"Dropping unresolvable variable keys: {dropped}")

            kind_ids = sorted(keys_by_kind)
            if group is Granularity.RAW:
                rows = await self.measurements.fetch_raw(station, kind_ids, start_at, end_at)
            else:
                rows = await self.measurements.fetch_buckets(station, kind_ids, start_at, end_at, group.value)
        except SQLAlchemyError as e:
            logger.error(f"Series query failed for station {station}: {e}")
            raise StorageError(f"Could not read series for station {station}") from e

        series: Dict[str, List[SeriesPoint]] = {key: [] for key in requested}
        for row in rows:
            if group is Granularity.RAW:
                point = SeriesPoint(t=ensure_utc(row.time), v=float(row.value))
            else:
                point = SeriesPoint(
                    t=ensure_utc(row.bucket),
                    v=float(row.value),
                    min=float(row.min_value),
                    max=float(row.max_value),
                    count=int(row.samples),
                )
            for key in keys_by_kind[row.kind_id]:
                series[key].append(point)

        for points in series.values():
            points.sort(key=lambda p: p.t)

        logger.debug(
            f"Series station={station} group={group.value} keys={requested} "
            f"rows={len(rows)} range=[{format_timestamp(start_at)}, {format_timestamp(end_at)})"
        )
        return series
