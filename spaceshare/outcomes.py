"""Typed results returned by the booking workflows.

Every expected failure (bad input, a taken slot, the wrong actor) is a value,
not an exception. Only infrastructure failures propagate as exceptions.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Category(str, Enum):
    VALIDATION = "validation"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    OVERLAP = "overlap"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONCURRENT_MODIFICATION = "concurrent_modification"


class Reason(str, Enum):
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_RANGE = "INVALID_RANGE"
    INVALID_ATTENDEE_COUNT = "INVALID_ATTENDEE_COUNT"
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    OVERLAP = "OVERLAP"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"

    @property
    def category(self) -> Category:
        return _CATEGORIES[self]


_CATEGORIES = {
    Reason.MISSING_FIELD: Category.VALIDATION,
    Reason.INVALID_RANGE: Category.VALIDATION,
    Reason.INVALID_ATTENDEE_COUNT: Category.VALIDATION,
    Reason.OUTSIDE_AVAILABILITY: Category.VALIDATION,
    Reason.INVALID_TRANSITION: Category.VALIDATION,
    Reason.CAPACITY_EXCEEDED: Category.CAPACITY_EXCEEDED,
    Reason.OVERLAP: Category.OVERLAP,
    Reason.FORBIDDEN: Category.FORBIDDEN,
    Reason.NOT_FOUND: Category.NOT_FOUND,
    Reason.CONCURRENT_MODIFICATION: Category.CONCURRENT_MODIFICATION,
}

DEFAULT_MESSAGES = {
    Reason.MISSING_FIELD: "Please fill in all required fields",
    Reason.INVALID_RANGE: "End time must be after start time",
    Reason.INVALID_ATTENDEE_COUNT: "At least one attendee is required",
    Reason.OUTSIDE_AVAILABILITY: "The requested time is outside the space's availability",
    Reason.INVALID_TRANSITION: "This booking can no longer be changed",
    Reason.CAPACITY_EXCEEDED: "The number of attendees exceeds the space capacity",
    Reason.OVERLAP: "This time slot conflicts with an existing booking",
    Reason.FORBIDDEN: "You are not allowed to change this booking",
    Reason.NOT_FOUND: "Not found",
    Reason.CONCURRENT_MODIFICATION: "The booking was changed by someone else, please reload",
}


@dataclass(frozen=True)
class BookingError:
    reason: Reason
    message: str

    @classmethod
    def of(cls, reason: Reason, message: Optional[str] = None) -> "BookingError":
        return cls(reason=reason, message=message or DEFAULT_MESSAGES[reason])

    @property
    def category(self) -> Category:
        return self.reason.category


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BookingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: Reason, message: Optional[str] = None) -> "Outcome[T]":
        return cls(error=BookingError.of(reason, message))
