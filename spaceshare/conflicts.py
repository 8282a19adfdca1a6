"""Interval overlap checks for one space's active bookings.

The checker knows nothing about spaces or statuses: callers pass exactly the
intervals that are allowed to block the proposed one.
"""
from __future__ import annotations

from typing import Iterable, Optional

from .slots import TimeRange


def overlaps(first: TimeRange, second: TimeRange) -> bool:
    """Half-open overlap test; ranges that only touch at a boundary do not overlap."""
    return first.start < second.end and second.start < first.end


def find_conflict(existing: Iterable[TimeRange], proposed: TimeRange) -> Optional[TimeRange]:
    """Return the first existing range that overlaps ``proposed``, if any."""
    for candidate in existing:
        if overlaps(candidate, proposed):
            return candidate
    return None


def has_conflict(existing: Iterable[TimeRange], proposed: TimeRange) -> bool:
    return find_conflict(existing, proposed) is not None
