"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

FIELD_NAMES = ("voltage", "current", "power", "energy", "frequency", "power_factor")


@dataclass(frozen=True, slots=True)
class Reading:
    """One validated transmission from the power meter."""

    voltage: float
    current: float
    power: float
    energy: float
    frequency: float
    power_factor: float


@dataclass(frozen=True, slots=True)
class TimestampInfo:
    """An instant plus its zone-local date (YYYY-MM-DD) and time (hh:mm:ss AM/PM)."""

    timestamp: datetime
    date: str
    time: str
