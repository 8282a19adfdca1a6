"""Booking request and decision workflows.

Both workflows re-run the conflict check against the ledger inside the same
transaction that writes, after claiming the space (see
:mod:`spaceshare.ledger`). Nothing is cached between showing slots and
accepting a request, and a confirm is checked again at decision time.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import FrozenSet, List, Optional

from .clock import Clock, SystemClock, wall_clock
from .config import Settings, get_settings
from .conflicts import find_conflict
from .ledger import BookingLedger
from .models import Booking
from .notifications import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    BOOKING_REJECTED,
    BOOKING_REQUEST,
    Notifier,
    deliver,
)
from .outcomes import Outcome, Reason
from .pricing import duration_hours, estimate_contribution
from .schemas import BookingCreate, BookingQuote
from .slots import Slot, TimeRange, day_of_week, fits_any_slot, resolve_slots
from .status import ALLOWED_PARTIES, BookingAction, BookingStatus, Party, next_status

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("space_id", "start_time", "end_time", "attendee_count")

_DECISION_NOTICES = {
    BookingAction.CONFIRM: BOOKING_CONFIRMED,
    BookingAction.REJECT: BOOKING_REJECTED,
    BookingAction.CANCEL: BOOKING_CANCELLED,
}


class BookingService:
    def __init__(
        self,
        ledger: BookingLedger,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    # -- slots -------------------------------------------------------------

    def available_slots(self, space_id: int, day: date) -> Outcome[List[Slot]]:
        if self.ledger.get_space(space_id) is None:
            return Outcome.failure(Reason.NOT_FOUND, "Space not found")
        rule = self.ledger.get_availability_rule(space_id, day_of_week(day))
        return Outcome.success(resolve_slots(rule, day))

    def quote(self, space_id: int, start: datetime, end: datetime) -> Outcome[BookingQuote]:
        start, end = wall_clock(start), wall_clock(end)
        if start >= end:
            return Outcome.failure(Reason.INVALID_RANGE)
        space = self.ledger.get_space(space_id)
        if space is None:
            return Outcome.failure(Reason.NOT_FOUND, "Space not found")
        return Outcome.success(
            BookingQuote(
                space_id=space_id,
                start_time=start,
                end_time=end,
                duration_hours=duration_hours(start, end),
                estimated_contribution=estimate_contribution(space.suggested_donation, start, end),
            )
        )

    # -- request -----------------------------------------------------------

    def request_booking(self, actor_id: int, draft: BookingCreate) -> Outcome[Booking]:
        missing = [name for name in REQUIRED_FIELDS if getattr(draft, name) is None]
        if missing:
            return Outcome.failure(Reason.MISSING_FIELD, f"Missing required field(s): {', '.join(missing)}")
        if draft.attendee_count < 1:
            return Outcome.failure(Reason.INVALID_ATTENDEE_COUNT)
        if draft.start_time >= draft.end_time:
            return Outcome.failure(Reason.INVALID_RANGE)

        space = self.ledger.get_space(draft.space_id)
        if space is None or not space.is_active:
            return Outcome.failure(Reason.NOT_FOUND, "Space not found or inactive")
        if draft.attendee_count > space.capacity:
            return Outcome.failure(Reason.CAPACITY_EXCEEDED, f"Maximum capacity is {space.capacity} people")

        proposed = TimeRange(draft.start_time, draft.end_time)
        if self.settings.enforce_availability and not self._within_availability(space.id, proposed):
            return Outcome.failure(Reason.OUTSIDE_AVAILABILITY)

        try:
            if not self.ledger.claim_space(space.id):
                self.ledger.rollback()
                return Outcome.failure(Reason.NOT_FOUND, "Space not found or inactive")
            conflict = find_conflict(self.ledger.active_ranges(space.id), proposed)
            if conflict is not None:
                self.ledger.rollback()
                logger.info(
                    "Rejected booking request by user %s for space %s: %s-%s overlaps %s-%s",
                    actor_id, space.id, proposed.start, proposed.end, conflict.start, conflict.end,
                )
                return Outcome.failure(Reason.OVERLAP)
            booking = self.ledger.insert_booking(
                Booking(
                    space_id=space.id,
                    user_id=actor_id,
                    start_time=proposed.start,
                    end_time=proposed.end,
                    status=BookingStatus.PENDING,
                    attendee_count=draft.attendee_count,
                    notes=draft.notes.model_dump(mode="json", exclude_none=True),
                    created_at=self.clock.now(),
                )
            )
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise

        logger.info("Booking %s requested by user %s for space %s", booking.id, actor_id, space.id)
        deliver(
            self.notifier,
            space.owner_id,
            BOOKING_REQUEST,
            {
                "message": f"User {actor_id} has requested to book {space.name} for {proposed.start:%Y-%m-%d}",
                "booking_id": booking.id,
                "space_id": space.id,
                "requester_id": actor_id,
            },
        )
        return Outcome.success(booking)

    def _within_availability(self, space_id: int, proposed: TimeRange) -> bool:
        if proposed.start.date() != proposed.end.date():
            return False
        day = proposed.start.date()
        rule = self.ledger.get_availability_rule(space_id, day_of_week(day))
        return fits_any_slot(resolve_slots(rule, day), proposed)

    # -- decisions ---------------------------------------------------------

    def confirm(self, booking_id: int, actor_id: int) -> Outcome[Booking]:
        return self._transition(booking_id, actor_id, BookingAction.CONFIRM)

    def reject(self, booking_id: int, actor_id: int) -> Outcome[Booking]:
        return self._transition(booking_id, actor_id, BookingAction.REJECT)

    def cancel(self, booking_id: int, actor_id: int) -> Outcome[Booking]:
        return self._transition(booking_id, actor_id, BookingAction.CANCEL)

    def mark_completed(self, booking_id: int) -> Outcome[Booking]:
        return self._transition(booking_id, None, BookingAction.COMPLETE)

    def complete_elapsed(self) -> int:
        """Mark every confirmed booking that has ended as completed."""
        now = self.clock.now()
        completed = 0
        try:
            for booking in self.ledger.elapsed_confirmed(now):
                if self.ledger.update_booking_status(
                    booking.id, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, None, now
                ):
                    completed += 1
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise
        if completed:
            logger.info("Marked %d elapsed bookings as completed", completed)
        return completed

    def _parties(self, booking: Booking, actor_id: Optional[int]) -> FrozenSet[Party]:
        if actor_id is None:
            return frozenset({Party.SYSTEM})
        parties = set()
        if self.ledger.is_owner(booking.space_id, actor_id):
            parties.add(Party.OWNER)
        if booking.user_id == actor_id:
            parties.add(Party.REQUESTER)
        return frozenset(parties)

    def _transition(self, booking_id: int, actor_id: Optional[int], action: BookingAction) -> Outcome[Booking]:
        booking = self.ledger.get_booking(booking_id)
        if booking is None:
            return Outcome.failure(Reason.NOT_FOUND, "Booking not found")
        parties = self._parties(booking, actor_id)
        if not parties & ALLOWED_PARTIES[action]:
            return Outcome.failure(Reason.FORBIDDEN)

        now = self.clock.now()
        try:
            self.ledger.claim_space(booking.space_id)
            booking = self.ledger.reload(booking)
            current = booking.status
            new_status = next_status(current, action)
            if new_status is None:
                self.ledger.rollback()
                return Outcome.failure(
                    Reason.INVALID_TRANSITION, f"Cannot {action.value} a booking that is {current.value}"
                )
            if action is BookingAction.COMPLETE and booking.end_time > now:
                self.ledger.rollback()
                return Outcome.failure(Reason.INVALID_TRANSITION, "Booking has not ended yet")
            if action is BookingAction.CONFIRM:
                # other pending requests do not block a confirm; only confirmed ones do
                confirmed = self.ledger.active_ranges(
                    booking.space_id, statuses=(BookingStatus.CONFIRMED,), exclude_id=booking.id
                )
                if find_conflict(confirmed, TimeRange(booking.start_time, booking.end_time)) is not None:
                    self.ledger.rollback()
                    logger.info("Confirm of booking %s refused: interval already confirmed", booking.id)
                    return Outcome.failure(Reason.OVERLAP)
            if not self.ledger.update_booking_status(booking.id, current, new_status, actor_id, now):
                self.ledger.rollback()
                return Outcome.failure(Reason.CONCURRENT_MODIFICATION)
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise

        booking = self.ledger.reload(booking)
        logger.info("Booking %s %s -> %s by %s", booking.id, current.value, new_status.value, actor_id or "system")
        self._notify_decision(booking, actor_id, action)
        return Outcome.success(booking)

    def _notify_decision(self, booking: Booking, actor_id: Optional[int], action: BookingAction) -> None:
        notice = _DECISION_NOTICES.get(action)
        if notice is None:
            return
        space = self.ledger.get_space(booking.space_id)
        recipient = booking.user_id
        if action is BookingAction.CANCEL and actor_id == booking.user_id:
            recipient = space.owner_id
        if recipient == actor_id:
            return
        deliver(
            self.notifier,
            recipient,
            notice,
            {
                "message": f"Your booking of {space.name} on {booking.start_time:%Y-%m-%d} is now {booking.status.value}",
                "booking_id": booking.id,
                "space_id": booking.space_id,
                "status": booking.status.value,
            },
        )
