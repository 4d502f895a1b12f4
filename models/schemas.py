"""Pydantic schemas for persisted documents and loop state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from models.records import Reading, TimestampInfo


class IngestionState(str, Enum):
    """Lifecycle states of the ingestion loop."""

    closed = "closed"
    opening = "opening"
    listening = "listening"
    faulted = "faulted"


class MeasurementRecord(BaseModel):
    """A reading merged with its timestamp, the unit of persistence."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    voltage: float
    current: float
    power: float
    energy: float
    frequency: float
    pf: float = Field(..., description="Power factor.")
    timestamp: datetime
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: str = Field(..., pattern=r"^(0[1-9]|1[0-2]):[0-5]\d:[0-5]\d (AM|PM)$")

    @classmethod
    def from_parts(cls, reading: Reading, stamp: TimestampInfo) -> "MeasurementRecord":
        return cls(
            voltage=reading.voltage,
            current=reading.current,
            power=reading.power,
            energy=reading.energy,
            frequency=reading.frequency,
            pf=reading.power_factor,
            timestamp=stamp.timestamp,
            date=stamp.date,
            time=stamp.time,
        )

    def to_document(self) -> Dict[str, Any]:
        """Return a fresh document dict; store clients may add ``_id`` to it."""
        return self.model_dump()
