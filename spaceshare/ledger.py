"""Persistence boundary for spaces, availability rules and bookings.

Writers call :meth:`BookingLedger.claim_space` before checking for conflicts.
The claim bumps ``spaces.version``, which takes the row write lock on
PostgreSQL and the database write lock on SQLite, so the check and the write
that follow are atomic with respect to every other writer for that space.
The lock is released by :meth:`commit` or :meth:`rollback`.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .models import AvailabilityRule, Booking, Space
from .slots import TimeRange
from .status import ACTIVE_STATUSES, BookingStatus


class BookingLedger:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_space(self, space_id: int) -> Optional[Space]:
        return self.db.get(Space, space_id)

    def is_owner(self, space_id: int, actor_id: int) -> bool:
        owner_id = self.db.execute(select(Space.owner_id).where(Space.id == space_id)).scalar_one_or_none()
        return owner_id is not None and owner_id == actor_id

    def get_availability_rule(self, space_id: int, day_of_week: str) -> Optional[AvailabilityRule]:
        return self.db.execute(
            select(AvailabilityRule).where(
                AvailabilityRule.space_id == space_id,
                AvailabilityRule.day_of_week == day_of_week,
            )
        ).scalar_one_or_none()

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.get(Booking, booking_id)

    def reload(self, booking: Booking) -> Booking:
        self.db.refresh(booking)
        return booking

    def get_active_bookings(
        self,
        space_id: int,
        statuses: Sequence[BookingStatus] = tuple(ACTIVE_STATUSES),
        exclude_id: Optional[int] = None,
    ) -> List[Booking]:
        query = select(Booking).where(Booking.space_id == space_id, Booking.status.in_(list(statuses)))
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)
        return list(self.db.execute(query.order_by(Booking.start_time)).scalars())

    def active_ranges(
        self,
        space_id: int,
        statuses: Sequence[BookingStatus] = tuple(ACTIVE_STATUSES),
        exclude_id: Optional[int] = None,
    ) -> List[TimeRange]:
        return [
            TimeRange(booking.start_time, booking.end_time)
            for booking in self.get_active_bookings(space_id, statuses=statuses, exclude_id=exclude_id)
        ]

    def claim_space(self, space_id: int) -> bool:
        """Serialize writers for ``space_id``; False when the space does not exist."""
        result = self.db.execute(
            update(Space)
            .where(Space.id == space_id)
            .values(version=Space.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def insert_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def update_booking_status(
        self,
        booking_id: int,
        expected: BookingStatus,
        new_status: BookingStatus,
        actor_id: Optional[int],
        at: datetime,
    ) -> bool:
        """Move a booking from ``expected`` to ``new_status``; False if it was no longer ``expected``."""
        result = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected)
            .values(status=new_status, decided_by=actor_id, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def elapsed_confirmed(self, now: datetime) -> List[Booking]:
        return list(
            self.db.execute(
                select(Booking).where(Booking.status == BookingStatus.CONFIRMED, Booking.end_time <= now)
            ).scalars()
        )

    def bookings_for_owner(
        self,
        owner_id: int,
        status: Optional[BookingStatus] = None,
        space_id: Optional[int] = None,
    ) -> List[Booking]:
        query = select(Booking).join(Space, Booking.space_id == Space.id).where(Space.owner_id == owner_id)
        if status is not None:
            query = query.where(Booking.status == status)
        if space_id is not None:
            query = query.where(Booking.space_id == space_id)
        return list(self.db.execute(query.order_by(Booking.start_time.desc())).scalars())

    def bookings_for_user(self, user_id: int) -> List[Booking]:
        return list(
            self.db.execute(
                select(Booking).where(Booking.user_id == user_id).order_by(Booking.start_time.desc())
            ).scalars()
        )

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
