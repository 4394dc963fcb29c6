"""Timing rules deciding when a job fires next."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta

from ..errors import ConfigError

_DURATION_PART = re.compile(r"(\d+)\s*([smhd])")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(text: str) -> timedelta:
    """Parse ``"90s"``, ``"5m"``, ``"1h 30m"`` or ``"2d"`` into a timedelta."""

    compact = text.strip().lower()
    position = 0
    total = timedelta()
    for match in _DURATION_PART.finditer(compact):
        if compact[position : match.start()].strip():
            break
        total += timedelta(**{_UNITS[match.group(2)]: int(match.group(1))})
        position = match.end()
    if position == 0 or compact[position:].strip():
        raise ConfigError(f"Invalid duration {text!r}, expected e.g. '30m', '1h', '1d 12h'")
    if total <= timedelta():
        raise ConfigError(f"Duration {text!r} must be positive")
    return total


def parse_time_of_day(text: str) -> time:
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text.strip(), fmt).time()
        except ValueError:
            continue
    raise ConfigError(f"Invalid time of day {text!r}, expected HH:MM or HH:MM:SS")


class Trigger(ABC):
    """When to fire next, measured from the end of the previous firing."""

    @abstractmethod
    def delay_from(self, now: datetime) -> timedelta:
        """Delay before the next firing if the previous one ended at ``now``."""

    @abstractmethod
    def first_delay(self, now: datetime) -> timedelta:
        """Delay before the first firing after start-up."""

    @property
    @abstractmethod
    def period(self) -> timedelta:
        """Nominal time between two firings."""


class Every(Trigger):
    """Fire immediately, then once per ``interval`` after each firing ends."""

    def __init__(self, interval: timedelta) -> None:
        if interval <= timedelta():
            raise ConfigError("Interval must be positive")
        self.interval = interval

    def delay_from(self, now: datetime) -> timedelta:
        return self.interval

    def first_delay(self, now: datetime) -> timedelta:
        return timedelta()

    @property
    def period(self) -> timedelta:
        return self.interval

    def __repr__(self) -> str:
        return f"Every({self.interval})"


class DailyAt(Trigger):
    """Fire once a day at a local time; a missed time waits for the next day."""

    def __init__(self, at: time) -> None:
        self.at = at

    def delay_from(self, now: datetime) -> timedelta:
        target = datetime.combine(now.date(), self.at, tzinfo=now.tzinfo)
        if target <= now:
            target += timedelta(days=1)
        return target - now

    def first_delay(self, now: datetime) -> timedelta:
        return self.delay_from(now)

    @property
    def period(self) -> timedelta:
        return timedelta(days=1)

    def __repr__(self) -> str:
        return f"DailyAt({self.at.isoformat()})"


__all__ = ["DailyAt", "Every", "Trigger", "parse_duration", "parse_time_of_day"]
