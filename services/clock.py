"""Zone-localized timestamps for persisted readings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from errors import ConfigurationError
from models.records import TimestampInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampProvider:
    """Derives timestamp, date and time from a single clock read."""

    def __init__(
        self,
        timezone_name: str = "Asia/Kolkata",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        try:
            self.zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone {timezone_name!r}.") from exc
        self.timezone_name = timezone_name
        self._clock = clock or utc_now

    def now(self) -> TimestampInfo:
        instant = self._clock()
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        local = instant.astimezone(self.zone)
        meridiem = "AM" if local.hour < 12 else "PM"
        return TimestampInfo(
            timestamp=instant.astimezone(timezone.utc),
            date=local.strftime("%Y-%m-%d"),
            time=f"{local.strftime('%I:%M:%S')} {meridiem}",
        )
