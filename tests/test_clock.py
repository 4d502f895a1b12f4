from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from errors import ConfigurationError
from services.clock import TimestampProvider


def _fixed(instant: datetime):
    return lambda: instant


def test_now_localizes_date_and_time_in_target_zone() -> None:
    instant = datetime(2024, 12, 8, 7, 4, 56, tzinfo=timezone.utc)
    provider = TimestampProvider("Asia/Kolkata", clock=_fixed(instant))

    stamp = provider.now()

    assert stamp.timestamp == instant
    assert stamp.date == "2024-12-08"
    assert stamp.time == "12:34:56 PM"


def test_date_rolls_over_with_local_midnight() -> None:
    # 18:45 UTC is 00:15 the next day in Kolkata.
    instant = datetime(2024, 12, 31, 18, 45, 0, tzinfo=timezone.utc)
    provider = TimestampProvider("Asia/Kolkata", clock=_fixed(instant))

    stamp = provider.now()

    assert stamp.date == "2025-01-01"
    assert stamp.time == "12:15:00 AM"


def test_naive_clock_values_are_treated_as_utc() -> None:
    provider = TimestampProvider("UTC", clock=_fixed(datetime(2024, 1, 1, 13, 0, 1)))

    stamp = provider.now()

    assert stamp.timestamp.tzinfo is not None
    assert stamp.timestamp.utcoffset() == timedelta(0)
    assert stamp.time == "01:00:01 PM"


def test_clock_is_read_once_per_call() -> None:
    calls = []

    def clock() -> datetime:
        calls.append(1)
        return datetime(2024, 6, 1, tzinfo=timezone.utc)

    TimestampProvider("Asia/Kolkata", clock=clock).now()

    assert len(calls) == 1


@pytest.mark.parametrize(
    "instant",
    [
        datetime(2024, 3, 10, 6, 59, 59, tzinfo=timezone.utc),
        datetime(2024, 11, 3, 5, 30, 0, tzinfo=timezone.utc),
        datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc),
    ],
)
@pytest.mark.parametrize("zone", ["Asia/Kolkata", "America/New_York", "UTC"])
def test_date_and_time_reconstruct_the_instant(instant: datetime, zone: str) -> None:
    stamp = TimestampProvider(zone, clock=_fixed(instant)).now()

    local = datetime.strptime(f"{stamp.date} {stamp.time}", "%Y-%m-%d %I:%M:%S %p")
    rebuilt = local.replace(tzinfo=ZoneInfo(zone)).astimezone(timezone.utc)

    assert abs((rebuilt - stamp.timestamp).total_seconds()) < 1


def test_unknown_timezone_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        TimestampProvider("Mars/Olympus_Mons")
