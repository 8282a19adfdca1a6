"""Short-lived cache for per-date slot listings.

Slot display may be slightly stale; booking decisions never read from here.
"""
from __future__ import annotations

from datetime import date
from typing import Generic, Optional, Tuple, TypeVar

from cachetools import TTLCache

T = TypeVar("T")

SlotKey = Tuple[int, date]


class SlotCache(Generic[T]):
    def __init__(self, ttl: int, maxsize: int = 1024) -> None:
        self._cache: TTLCache[SlotKey, T] = TTLCache(maxsize=maxsize, ttl=ttl)

    def get(self, space_id: int, day: date) -> Optional[T]:
        return self._cache.get((space_id, day))

    def set(self, space_id: int, day: date, value: T) -> None:
        self._cache[(space_id, day)] = value

    def invalidate_space(self, space_id: int) -> None:
        for key in [key for key in list(self._cache.keys()) if key[0] == space_id]:
            self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()
