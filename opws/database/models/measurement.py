"""
Time-series measurement model (Measurement).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import SCHEMA, Base, JSONType


class Measurement(Base):
    """Table measurements - fact table (TimescaleDB hypertable on ``time``).

    The composite primary key (station_id, kind_id, time) is the uniqueness
    invariant: a second write of the same triple is skipped, never overwritten.
    """

    __tablename__ = "measurements"
    __table_args__ = (
        Index("idx_measurements_station_time", "station_id", "time"),
        {"schema": SCHEMA},
    )

    station_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.stations.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    )
    kind_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(f"{SCHEMA}.measurement_kinds.id"),
        primary_key=True,
        autoincrement=False,
    )
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)

    value: Mapped[float] = mapped_column(Float, nullable=False)
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSONType)
