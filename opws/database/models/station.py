"""
Topology models (Station, Device, FieldMapping).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import SCHEMA, Base
from .catalog import MeasurementKind


class Station(Base):
    """Table stations - physical field stations."""

    __tablename__ = "stations"
    __table_args__ = (
        Index("idx_stations_coords", "latitude", "longitude"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    elevation_m: Mapped[Optional[float]] = mapped_column(Float)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Station {self.id} {self.code!r}>"


class Device(Base):
    """Table devices - field hardware, each owned by exactly one station."""

    __tablename__ = "devices"
    __table_args__ = (
        Index("idx_devices_station", "station_id"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    station_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{SCHEMA}.stations.id", ondelete="CASCADE"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    station: Mapped[Station] = relationship(lazy="joined")


class FieldMapping(Base):
    """Table field_mappings - raw payload field -> catalog kind, with linear correction."""

    __tablename__ = "field_mappings"
    __table_args__ = (
        UniqueConstraint("device_id", "kind_id", name="uq_field_mappings_device_kind"),
        UniqueConstraint("device_id", "payload_key", name="uq_field_mappings_device_payload_key"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    device_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{SCHEMA}.devices.id", ondelete="CASCADE"), nullable=False
    )
    kind_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{SCHEMA}.measurement_kinds.id"), nullable=False
    )
    payload_key: Mapped[str] = mapped_column(String(64), nullable=False)
    scale: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    offset: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    kind: Mapped[MeasurementKind] = relationship(lazy="joined")
