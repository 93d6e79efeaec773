"""
Repository for Station.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.dialects import insert_ignoring_conflicts
from opws.database.models import Station


class StationRepository:
    """Repository for Station operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, station_id: int) -> Optional[Station]:
        result = await self.session.execute(select(Station).where(Station.id == station_id))
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[Station]:
        """Get station by surface code."""
        result = await self.session.execute(select(Station).where(Station.code == code))
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Station]:
        result = await self.session.execute(
            select(Station).where(Station.is_active.is_(True)).order_by(Station.id)
        )
        return list(result.scalars().all())

    async def search(self, name: Optional[str] = None) -> List[Station]:
        """Every station ordered by name, optionally filtered by a case-insensitive name substring."""
        stmt = select(Station).order_by(Station.name, Station.id)
        if name:
            stmt = stmt.where(Station.name.icontains(name, autoescape=True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_or_update(self, data: dict) -> Station:
        """Create or update a station by code (administrative path)."""
        station = await self.get_by_code(data["code"])

        if station:
            for key, value in data.items():
                setattr(station, key, value)
            station.updated_at = datetime.now(timezone.utc)
        else:
            station = Station(**data)
            self.session.add(station)

        await self.session.flush()
        return station

    async def get_or_create_for_device(self, device_identifier: str) -> Tuple[Station, bool]:
        """
        Station auto-provisioned for a never-seen device.

        INSERT ... ON CONFLICT DO NOTHING followed by a re-read, so two
        concurrent first uplinks end up sharing one station.

        Returns:
            (station, created)
        """
        table = Station.__table__
        stmt = (
            insert_ignoring_conflicts(self.session, table, ["code"])
            .values(
                code=device_identifier,
                name=f"Station {device_identifier}",
                timezone="UTC",
                is_active=True,
            )
            .returning(table.c.id)
        )
        result = await self.session.execute(stmt)
        created = result.first() is not None

        station = await self.get_by_code(device_identifier)
        return station, created
