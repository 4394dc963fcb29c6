from __future__ import annotations

from datetime import datetime, time, timedelta

import pytest

from feedrelay.errors import ConfigError
from feedrelay.scheduler import DailyAt, Every, parse_duration, parse_time_of_day


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("90s", timedelta(seconds=90)),
        ("5m", timedelta(minutes=5)),
        ("1h 30m", timedelta(hours=1, minutes=30)),
        ("2d", timedelta(days=2)),
        ("1H", timedelta(hours=1)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "soon", "5x", "0m", "m5", "1h later"])
def test_parse_duration_rejects(text: str) -> None:
    with pytest.raises(ConfigError):
        parse_duration(text)


def test_parse_time_of_day() -> None:
    assert parse_time_of_day("08:30") == time(8, 30)
    assert parse_time_of_day("23:59:59") == time(23, 59, 59)
    with pytest.raises(ConfigError):
        parse_time_of_day("25:00")


def test_every_fires_immediately_then_per_interval() -> None:
    trigger = Every(timedelta(minutes=10))
    now = datetime(2024, 1, 1, 12, 0)
    assert trigger.first_delay(now) == timedelta()
    assert trigger.delay_from(now) == timedelta(minutes=10)
    assert trigger.period == timedelta(minutes=10)


def test_daily_at_waits_for_next_occurrence() -> None:
    trigger = DailyAt(time(9, 0))
    assert trigger.first_delay(datetime(2024, 1, 1, 8, 0)) == timedelta(hours=1)
    # a late start never fires retroactively
    assert trigger.first_delay(datetime(2024, 1, 1, 10, 0)) == timedelta(hours=23)
    assert trigger.delay_from(datetime(2024, 1, 1, 9, 0)) == timedelta(days=1)
