"""Ingestion gateway: one uplink in, one idempotent batch of measurement rows out.

Pipeline per uplink:
    1. validate the record (ValidationError, nothing written)
    2. look up the device and decide which field mappings apply
       (explicit device mappings, else the payload shape's defaults)
    3. resolve every raw field to a catalog kind (SchemaError, nothing written)
    4. auto-provision station and device for a never-seen identifier
    5. stage value = raw * scale + offset for each field
    6. insert the batch with ON CONFLICT DO NOTHING and report rows written

The caller owns the transaction (one ``get_db_session()`` unit of work per
uplink), so the rows of one uplink commit together or not at all.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from opws.database.models import Device
from opws.database.repositories import (
    DeviceRepository,
    KindCache,
    KindRef,
    MeasurementRepository,
    StationRepository,
)
from opws.exceptions import SchemaError, StorageError
from opws.logger import get_logger
from opws.services.payloads import PayloadShape, UplinkRecord, get_shape, parse_uplink

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedField:
    """A raw payload field bound to its catalog kind and linear correction."""

    payload_key: str
    kind: KindRef
    scale: float = 1.0
    offset: float = 0.0

    def apply(self, raw: float) -> float:
        return raw * self.scale + self.offset


@dataclass
class IngestionResult:
    inserted: int
    station_id: int
    station_name: str
    instant: datetime
    station_created: bool = False
    device_created: bool = False


class IngestionGateway:
    """Turns uplinks into normalized, deduplicated measurement rows."""

    def __init__(self, session: AsyncSession, kind_cache: Optional[KindCache] = None):
        self.session = session
        self.kind_cache = kind_cache or KindCache()
        self.stations = StationRepository(session)
        self.devices = DeviceRepository(session)
        self.measurements = MeasurementRepository(session)

    async def ingest(self, record: Union[UplinkRecord, Mapping[str, Any]]) -> IngestionResult:
        """
        Ingest one uplink.

        Raises:
            ValidationError: malformed record
            SchemaError: a raw field has no catalog kind
            StorageError: the store failed; nothing from this uplink is kept
        """
        uplink = parse_uplink(record)
        shape = get_shape(uplink.payload_schema)

        try:
            device = await self.devices.get_by_identifier(uplink.device_identifier)
            fields = await self._resolve_fields(device, shape, uplink.raw_fields)

            station_created = device_created = False
            if device is None:
                device, station_created, device_created = await self._provision(uplink.device_identifier)
            station = device.station

            rows = self._stage_rows(station.id, uplink, fields)
            inserted = await self.measurements.insert_ignore_duplicates(rows)
        except SQLAlchemyError as e:
            logger.error(f"Storage failure ingesting uplink from {uplink.device_identifier}: {e}")
            raise StorageError(f"Could not store uplink from {uplink.device_identifier}") from e

        logger.info(
            f"{inserted}/{len(rows)} readings stored from {uplink.device_identifier} "
            f"at {uplink.instant.isoformat()}"
        )
        return IngestionResult(
            inserted=inserted,
            station_id=station.id,
            station_name=station.name,
            instant=uplink.instant,
            station_created=station_created,
            device_created=device_created,
        )

    async def _resolve_fields(
        self,
        device: Optional[Device],
        shape: PayloadShape,
        raw_fields: Dict[str, float],
    ) -> List[ResolvedField]:
        """Bind every raw field to a kind, or fail before any write."""
        mappings = await self.devices.get_mappings(device.id) if device is not None else []

        if mappings:
            by_key = {m.payload_key: m for m in mappings}
            unmapped = sorted(set(raw_fields) - set(by_key))
            if unmapped:
                raise SchemaError(
                    f"Device {device.identifier} has no mapping for field(s): {', '.join(unmapped)}",
                    details={"unmapped_fields": unmapped},
                )
            return [
                ResolvedField(
                    payload_key=key,
                    kind=KindRef.from_row(by_key[key].kind),
                    scale=by_key[key].scale,
                    offset=by_key[key].offset,
                )
                for key in raw_fields
            ]

        unknown = sorted(key for key in raw_fields if shape.kind_for(key) is None)
        if unknown:
            raise SchemaError(
                f"Field(s) not part of payload schema {shape.tag}: {', '.join(unknown)}",
                details={"unknown_fields": unknown, "schema": shape.tag},
            )

        kinds = await self.kind_cache.resolve(
            self.session, [shape.kind_for(key) for key in raw_fields]
        )
        missing = sorted({shape.kind_for(key) for key in raw_fields} - set(kinds))
        if missing:
            raise SchemaError(
                f"Catalog kind(s) missing: {', '.join(missing)}",
                details={"missing_kinds": missing},
            )
        return [ResolvedField(payload_key=key, kind=kinds[shape.kind_for(key)]) for key in raw_fields]

    async def _provision(self, identifier: str):
        """Get-or-create the station and device of a never-seen identifier."""
        station, station_created = await self.stations.get_or_create_for_device(identifier)
        device, device_created = await self.devices.get_or_create(
            identifier,
            station_id=station.id,
            description=f"Auto-provisioned device {identifier}",
        )
        if station_created:
            logger.info(f"New station auto-provisioned: {station.name} (ID: {station.id})")
        if device_created:
            logger.info(f"New device auto-provisioned: {identifier} -> station {device.station_id}")
        return device, station_created, device_created

    @staticmethod
    def _stage_rows(station_id: int, uplink: UplinkRecord, fields: List[ResolvedField]) -> List[dict]:
        snapshot = dict(uplink.raw_fields)
        return [
            {
                "station_id": station_id,
                "kind_id": field.kind.id,
                "time": uplink.instant,
                "value": field.apply(uplink.raw_fields[field.payload_key]),
                "raw_payload": snapshot,
            }
            for field in fields
        ]
