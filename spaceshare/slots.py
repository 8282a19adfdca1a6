"""Turn a space's weekly availability rule into concrete bookable slots for one date.

Owners author their availability through a form, so stored ranges may be
unsorted, overlapping or broken. Slots are surfaced in stored order, and a
range that cannot be interpreted is skipped on its own without hiding the
others.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, List, Optional, Protocol

DAYS_OF_WEEK = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

logger = logging.getLogger(__name__)


class RuleLike(Protocol):
    is_available: bool
    time_ranges: Any


@dataclass(frozen=True)
class TimeRange:
    """Half-open interval ``[start, end)`` of local wall-clock datetimes."""

    start: datetime
    end: datetime

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and other.end <= self.end


@dataclass(frozen=True)
class Slot:
    range: TimeRange
    label: str


def day_of_week(day: date) -> str:
    return DAYS_OF_WEEK[day.weekday()]


def format_time_of_day(value: time) -> str:
    """``13:05`` -> ``1:05 PM``; noon and midnight read as 12."""
    suffix = "PM" if value.hour >= 12 else "AM"
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {suffix}"


def _parse_time(raw: Any) -> Optional[time]:
    """Read ``H:MM`` or ``H:MM:SS``; anything else gives ``None``."""
    if not isinstance(raw, str):
        return None
    parts = raw.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return None
    hour, minute, second = (int(part) for part in parts + ["0"] * (3 - len(parts)))
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def _stored_ranges(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Unparseable availability time ranges: %r", raw)
            return []
    if not isinstance(raw, list):
        logger.warning("Availability time ranges are not a list: %r", raw)
        return []
    return raw


def resolve_slots(rule: Optional[RuleLike], day: date) -> List[Slot]:
    """Return the slots ``rule`` offers on ``day``.

    A missing rule, a closed day or an empty range list all give an empty
    result rather than an error.
    """
    if rule is None or not rule.is_available:
        return []

    slots: List[Slot] = []
    for index, entry in enumerate(_stored_ranges(rule.time_ranges)):
        if not isinstance(entry, dict):
            logger.warning("Skipping availability range %d on %s: not a mapping", index, day)
            continue
        start = _parse_time(entry.get("start"))
        end = _parse_time(entry.get("end"))
        if start is None or end is None:
            logger.warning("Skipping availability range %d on %s: missing or bad time", index, day)
            continue
        if end <= start:
            logger.warning("Skipping availability range %d on %s: end %s is not after start %s", index, day, end, start)
            continue
        slots.append(
            Slot(
                range=TimeRange(datetime.combine(day, start), datetime.combine(day, end)),
                label=f"{format_time_of_day(start)} - {format_time_of_day(end)}",
            )
        )
    return slots


def fits_any_slot(slots: Iterable[Slot], proposed: TimeRange) -> bool:
    return any(slot.range.contains(proposed) for slot in slots)
