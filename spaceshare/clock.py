"""Time sources. Booking times are local wall-clock values, so clocks return naive datetimes."""
from __future__ import annotations

from datetime import date, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """A clock frozen at ``instant`` until moved with :meth:`set`."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def set(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()


def wall_clock(value: datetime) -> datetime:
    """Drop any tzinfo, keeping the local reading as given."""
    if value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value
