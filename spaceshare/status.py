"""Booking lifecycle states and the transitions allowed between them."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingAction(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"


class Party(str, Enum):
    OWNER = "owner"
    REQUESTER = "requester"
    SYSTEM = "system"


ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)

# (current status, action) -> new status
TRANSITIONS: Dict[Tuple[BookingStatus, BookingAction], BookingStatus] = {
    (BookingStatus.PENDING, BookingAction.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingAction.REJECT): BookingStatus.REJECTED,
    (BookingStatus.PENDING, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CONFIRMED, BookingAction.COMPLETE): BookingStatus.COMPLETED,
}

ALLOWED_PARTIES: Dict[BookingAction, FrozenSet[Party]] = {
    BookingAction.CONFIRM: frozenset({Party.OWNER}),
    BookingAction.REJECT: frozenset({Party.OWNER}),
    BookingAction.CANCEL: frozenset({Party.OWNER, Party.REQUESTER}),
    BookingAction.COMPLETE: frozenset({Party.SYSTEM}),
}


def is_active(status: BookingStatus) -> bool:
    """Active bookings are the only ones that block an interval."""
    return status in ACTIVE_STATUSES


def next_status(current: BookingStatus, action: BookingAction) -> Optional[BookingStatus]:
    """Return the status ``action`` leads to from ``current``, or None if not allowed."""
    return TRANSITIONS.get((current, action))
