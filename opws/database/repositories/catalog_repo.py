"""
Repository for the measurement catalog, plus a read-mostly kind cache.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opws.catalog import DEFAULT_KINDS, AggregationPolicy, KindDefinition
from opws.database.dialects import insert_ignoring_conflicts
from opws.database.models import MeasurementKind
from opws.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class KindRef:
    """Session-independent snapshot of a catalog row."""

    id: int
    key: str
    unit: Optional[str]
    aggregation: AggregationPolicy

    @classmethod
    def from_row(cls, kind: MeasurementKind) -> "KindRef":
        return cls(id=kind.id, key=kind.key, unit=kind.unit, aggregation=AggregationPolicy(kind.aggregation))


class CatalogRepository:
    """Repository for MeasurementKind operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_key(self, key: str) -> Optional[MeasurementKind]:
        result = await self.session.execute(
            select(MeasurementKind).where(MeasurementKind.key == key)
        )
        return result.scalar_one_or_none()

    async def get_by_keys(self, keys: Iterable[str]) -> Dict[str, KindRef]:
        """Resolve several keys in one query. Unknown keys are simply absent."""
        keys = list(keys)
        if not keys:
            return {}
        result = await self.session.execute(
            select(MeasurementKind).where(MeasurementKind.key.in_(keys))
        )
        return {kind.key: KindRef.from_row(kind) for kind in result.scalars().all()}

    async def get_all(self) -> List[MeasurementKind]:
        result = await self.session.execute(select(MeasurementKind).order_by(MeasurementKind.id))
        return list(result.scalars().all())

    async def ensure_defaults(self, definitions: Sequence[KindDefinition] = DEFAULT_KINDS) -> int:
        """
        Seed catalog entries that are missing. Existing rows are never touched.

        Returns:
            Number of kinds created
        """
        rows = [
            {
                "key": d.key,
                "label": d.label,
                "unit": d.unit,
                "aggregation": d.aggregation.value,
                "description": d.description,
            }
            for d in definitions
        ]
        if not rows:
            return 0
        table = MeasurementKind.__table__
        stmt = insert_ignoring_conflicts(self.session, table, ["key"]).values(rows).returning(table.c.id)
        result = await self.session.execute(stmt)
        created = len(result.all())
        if created:
            logger.info(f"Catalog seeded: {created} kinds created")
        return created


class KindCache:
    """
    Read-mostly cache of catalog kinds keyed by kind key.

    A miss always goes to the store; only keys the store does not know are
    reported as unresolved.
    """

    def __init__(self):
        self._kinds: Dict[str, KindRef] = {}

    async def resolve(self, session: AsyncSession, keys: Iterable[str]) -> Dict[str, KindRef]:
        keys = list(dict.fromkeys(keys))
        resolved = {k: self._kinds[k] for k in keys if k in self._kinds}
        missing = [k for k in keys if k not in resolved]
        if missing:
            found = await CatalogRepository(session).get_by_keys(missing)
            self._kinds.update(found)
            resolved.update(found)
        return resolved

    def invalidate(self) -> None:
        self._kinds.clear()

    def __len__(self) -> int:
        return len(self._kinds)


# Shared by request handlers of one process
kind_cache = KindCache()
