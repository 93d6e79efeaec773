"""
Measurement kind model - the catalog of measurable variables.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from opws.catalog import AggregationPolicy

from .base import SCHEMA, Base


class MeasurementKind(Base):
    """Table measurement_kinds - fixed at deployment, referenced by every measurement."""

    __tablename__ = "measurement_kinds"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String(100))
    unit: Mapped[Optional[str]] = mapped_column(String(20))
    aggregation: Mapped[str] = mapped_column(
        String(10), nullable=False, default=AggregationPolicy.AVERAGE.value
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def policy(self) -> AggregationPolicy:
        return AggregationPolicy(self.aggregation)

    def __repr__(self) -> str:
        return f"<MeasurementKind {self.key} ({self.aggregation})>"
