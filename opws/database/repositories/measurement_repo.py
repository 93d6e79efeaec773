"""
Repository for Measurement (time-series).
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import Row, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from opws.catalog import AggregationPolicy
from opws.database.buckets import time_bucket
from opws.database.dialects import insert_ignoring_conflicts
from opws.database.models import Measurement, MeasurementKind
from opws.logger import get_logger

logger = get_logger(__name__)

# Uniqueness invariant of the fact table
CONFLICT_KEY = ["station_id", "kind_id", "time"]

# asyncpg binds at most 32767 parameters per statement; four per row
MAX_BATCH_ROWS = 32767 // 4


class MeasurementRepository:
    """Repository for Measurement operations (time-series)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_ignore_duplicates(self, measurements: List[dict]) -> int:
        """
        Idempotent batch insert in a single statement.

        Rows whose (station_id, kind_id, time) already exist are skipped,
        never overwritten. Used by ingestion and by the synthetic generator.

        Usage:
            rows = [
                {"station_id": 1, "kind_id": 3, "time": datetime(...), "value": 25.5},
                ...
            ]
            inserted = await repo.insert_ignore_duplicates(rows)

        Returns:
            Number of rows actually written
        """
        if not measurements:
            return 0

        table = Measurement.__table__
        stmt = (
            insert_ignoring_conflicts(self.session, table, CONFLICT_KEY)
            .values(measurements)
            .returning(table.c.kind_id)
        )
        result = await self.session.execute(stmt)
        inserted = len(result.all())

        if inserted < len(measurements):
            logger.debug(f"Skipped {len(measurements) - inserted} duplicate measurements")
        return inserted

    async def fetch_raw(
        self,
        station_id: int,
        kind_ids: Sequence[int],
        start: datetime,
        end: datetime,
    ) -> Sequence[Row]:
        """
        Raw rows of several kinds over [start, end), oldest first.

        Rows: (kind_id, time, value)
        """
        result = await self.session.execute(
            select(Measurement.kind_id, Measurement.time, Measurement.value)
            .where(
                Measurement.station_id == station_id,
                Measurement.kind_id.in_(list(kind_ids)),
                Measurement.time >= start,
                Measurement.time < end,
            )
            .order_by(Measurement.time.asc(), Measurement.kind_id.asc())
        )
        return result.all()

    async def fetch_buckets(
        self,
        station_id: int,
        kind_ids: Sequence[int],
        start: datetime,
        end: datetime,
        unit: str,
    ) -> Sequence[Row]:
        """
        Per (kind, bucket) aggregates over [start, end), oldest bucket first.

        The headline value is SUM for SUM kinds and AVG for AVERAGE kinds;
        min, max and sample count are returned for every kind.

        Rows: (kind_id, bucket, value, min_value, max_value, samples)
        """
        bucket = time_bucket(unit, Measurement.time).label("bucket")
        headline = case(
            (MeasurementKind.aggregation == AggregationPolicy.SUM.value, func.sum(Measurement.value)),
            else_=func.avg(Measurement.value),
        )

        result = await self.session.execute(
            select(
                Measurement.kind_id,
                bucket,
                headline.label("value"),
                func.min(Measurement.value).label("min_value"),
                func.max(Measurement.value).label("max_value"),
                func.count().label("samples"),
            )
            .join(MeasurementKind, MeasurementKind.id == Measurement.kind_id)
            .where(
                Measurement.station_id == station_id,
                Measurement.kind_id.in_(list(kind_ids)),
                Measurement.time >= start,
                Measurement.time < end,
            )
            .group_by(Measurement.kind_id, MeasurementKind.aggregation, bucket)
            .order_by(bucket, Measurement.kind_id)
        )
        return result.all()

    async def count(self, station_id: int, kind_id: Optional[int] = None) -> int:
        stmt = select(func.count()).select_from(Measurement).where(Measurement.station_id == station_id)
        if kind_id is not None:
            stmt = stmt.where(Measurement.kind_id == kind_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_for_station(self, station_id: int) -> int:
        """Administrative bulk delete: every measurement of one station."""
        result = await self.session.execute(
            delete(Measurement).where(Measurement.station_id == station_id)
        )
        await self.session.flush()
        logger.info(f"Deleted {result.rowcount} measurements of station {station_id}")
        return result.rowcount
