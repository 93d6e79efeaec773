"""
Repository for Device and its FieldMappings.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.dialects import insert_ignoring_conflicts
from opws.database.models import Device, FieldMapping


class DeviceRepository:
    """Repository for Device operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_identifier(self, identifier: str) -> Optional[Device]:
        """Get device (with its station) by hardware identifier."""
        result = await self.session.execute(select(Device).where(Device.identifier == identifier))
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        identifier: str,
        station_id: int,
        description: Optional[str] = None,
    ) -> Tuple[Device, bool]:
        """
        Atomic get-or-create keyed on the identifier.

        If another uplink created the device first, that row wins and is
        returned with ``created=False``.
        """
        table = Device.__table__
        stmt = (
            insert_ignoring_conflicts(self.session, table, ["identifier"])
            .values(
                identifier=identifier,
                station_id=station_id,
                is_active=True,
                description=description,
            )
            .returning(table.c.id)
        )
        result = await self.session.execute(stmt)
        created = result.first() is not None

        device = await self.get_by_identifier(identifier)
        return device, created

    async def get_mappings(self, device_id: int) -> List[FieldMapping]:
        """Explicit field mappings of a device, kinds loaded."""
        result = await self.session.execute(
            select(FieldMapping)
            .where(FieldMapping.device_id == device_id)
            .order_by(FieldMapping.payload_key)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def set_mapping(
        self,
        device_id: int,
        kind_id: int,
        payload_key: str,
        scale: float = 1.0,
        offset: float = 0.0,
    ) -> FieldMapping:
        """Create or update the mapping of one kind for a device (administrative path)."""
        result = await self.session.execute(
            select(FieldMapping).where(
                FieldMapping.device_id == device_id,
                FieldMapping.kind_id == kind_id,
            )
        )
        mapping = result.scalar_one_or_none()

        if mapping:
            mapping.payload_key = payload_key
            mapping.scale = scale
            mapping.offset = offset
        else:
            mapping = FieldMapping(
                device_id=device_id,
                kind_id=kind_id,
                payload_key=payload_key,
                scale=scale,
                offset=offset,
            )
            self.session.add(mapping)

        await self.session.flush()
        return mapping
