"""Booking request and decision workflows against a real database."""
import threading
from datetime import datetime, timezone

from conftest import OWNER_ID, REQUESTER_ID, STRANGER_ID, FailingNotifier
from spaceshare.config import Settings
from spaceshare.database import SessionLocal
from spaceshare.ledger import BookingLedger
from spaceshare.models import Booking, Space
from spaceshare.outcomes import Reason
from spaceshare.schemas import BookingCreate, BookingNotes
from spaceshare.status import BookingStatus
from spaceshare.workflows import BookingService


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 26, hour, minute)


def draft(space_id: int, start: datetime, end: datetime, attendees: int = 4, **notes) -> BookingCreate:
    return BookingCreate(
        space_id=space_id,
        start_time=start,
        end_time=end,
        attendee_count=attendees,
        notes=BookingNotes(**notes),
    )


def test_request_creates_pending_booking_and_notifies_owner(service, notifier, space):
    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11), event_title="Morning yoga"))

    assert outcome.ok
    booking = outcome.value
    assert booking.status is BookingStatus.PENDING
    assert booking.user_id == REQUESTER_ID
    assert booking.notes == {"event_title": "Morning yoga"}
    assert notifier.sent[0][0] == OWNER_ID
    assert notifier.sent[0][1] == "booking_request"
    assert notifier.sent[0][2]["booking_id"] == booking.id


def test_missing_fields_are_named(service, space):
    outcome = service.request_booking(REQUESTER_ID, BookingCreate(space_id=space.id, start_time=at(10)))

    assert outcome.error.reason is Reason.MISSING_FIELD
    assert "end_time" in outcome.error.message
    assert "attendee_count" in outcome.error.message


def test_attendee_count_must_be_positive(service, space):
    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11), attendees=0))

    assert outcome.error.reason is Reason.INVALID_ATTENDEE_COUNT
    assert outcome.error.message == "At least one attendee is required"


def test_quote_normalises_times(service, space):
    outcome = service.quote(space.id, at(10).replace(tzinfo=timezone.utc), at(11, 30).replace(tzinfo=timezone.utc))

    assert outcome.value.start_time == at(10)
    assert outcome.value.duration_hours == 1.5
    assert outcome.value.estimated_contribution == 22.5
    assert service.quote(space.id, at(11), at(10)).error.reason is Reason.INVALID_RANGE


def test_inverted_range_is_rejected(service, space):
    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(11), at(10)))
    assert outcome.error.reason is Reason.INVALID_RANGE

    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(10)))
    assert outcome.error.reason is Reason.INVALID_RANGE


def test_unknown_space_is_not_found(service):
    outcome = service.request_booking(REQUESTER_ID, draft(999, at(10), at(11)))
    assert outcome.error.reason is Reason.NOT_FOUND


def test_capacity_boundary(service, space):
    assert service.request_booking(REQUESTER_ID, draft(space.id, at(9), at(10), attendees=10)).ok

    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11), attendees=11))
    assert outcome.error.reason is Reason.CAPACITY_EXCEEDED
    assert outcome.error.message == "Maximum capacity is 10 people"


def test_adjacent_requests_are_both_admitted(service, space):
    assert service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).ok
    assert service.request_booking(STRANGER_ID, draft(space.id, at(11), at(12))).ok


def test_overlapping_request_is_rejected(service, space, db_session):
    assert service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).ok

    outcome = service.request_booking(STRANGER_ID, draft(space.id, at(10, 30), at(11, 30)))

    assert outcome.error.reason is Reason.OVERLAP
    assert outcome.error.message == "This time slot conflicts with an existing booking"
    assert db_session.query(Booking).count() == 1


def test_other_spaces_do_not_conflict(service, space, db_session):
    other = Space(owner_id=OWNER_ID, name="Loft", capacity=5)
    db_session.add(other)
    db_session.commit()

    assert service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).ok
    assert service.request_booking(REQUESTER_ID, draft(other.id, at(10), at(11))).ok


def test_rejected_booking_frees_the_interval(service, space):
    first = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value

    assert service.reject(first.id, OWNER_ID).value.status is BookingStatus.REJECTED
    assert service.request_booking(STRANGER_ID, draft(space.id, at(10), at(11))).ok


def test_cancelled_booking_frees_the_interval(service, space):
    first = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    service.confirm(first.id, OWNER_ID)

    assert service.cancel(first.id, REQUESTER_ID).value.status is BookingStatus.CANCELLED
    assert service.request_booking(STRANGER_ID, draft(space.id, at(10), at(11))).ok


def test_only_owner_may_confirm_or_reject(service, space):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value

    assert service.confirm(booking.id, REQUESTER_ID).error.reason is Reason.FORBIDDEN
    assert service.reject(booking.id, STRANGER_ID).error.reason is Reason.FORBIDDEN
    assert service.cancel(booking.id, STRANGER_ID).error.reason is Reason.FORBIDDEN
    assert service.confirm(booking.id, OWNER_ID).value.status is BookingStatus.CONFIRMED


def test_owner_may_cancel_and_requester_is_told(service, notifier, space):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value

    outcome = service.cancel(booking.id, OWNER_ID)

    assert outcome.value.status is BookingStatus.CANCELLED
    assert outcome.value.decided_by == OWNER_ID
    assert notifier.sent[-1][:2] == (REQUESTER_ID, "booking_cancelled")


def test_requester_cancel_notifies_owner(service, notifier, space):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value

    service.cancel(booking.id, REQUESTER_ID)

    assert notifier.sent[-1][:2] == (OWNER_ID, "booking_cancelled")


def test_unknown_booking_is_not_found(service):
    assert service.confirm(12345, OWNER_ID).error.reason is Reason.NOT_FOUND


def test_terminal_states_cannot_transition(service, space, clock):
    rejected = service.request_booking(REQUESTER_ID, draft(space.id, at(9), at(10))).value
    service.reject(rejected.id, OWNER_ID)
    cancelled = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    service.cancel(cancelled.id, REQUESTER_ID)
    completed = service.request_booking(REQUESTER_ID, draft(space.id, at(11), at(12))).value
    service.confirm(completed.id, OWNER_ID)
    clock.set(at(13))
    assert service.mark_completed(completed.id).value.status is BookingStatus.COMPLETED

    for booking in (rejected, cancelled, completed):
        assert service.confirm(booking.id, OWNER_ID).error.reason is Reason.INVALID_TRANSITION
        assert service.reject(booking.id, OWNER_ID).error.reason is Reason.INVALID_TRANSITION
        assert service.cancel(booking.id, OWNER_ID).error.reason is Reason.INVALID_TRANSITION


def test_confirm_twice_is_an_invalid_transition(service, space):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    assert service.confirm(booking.id, OWNER_ID).ok

    assert service.confirm(booking.id, OWNER_ID).error.reason is Reason.INVALID_TRANSITION
    assert service.reject(booking.id, OWNER_ID).error.reason is Reason.INVALID_TRANSITION


def test_confirm_rechecks_against_confirmed_bookings(service, space, db_session):
    # two overlapping pending rows, as left behind by a writer that skipped the check
    first = Booking(space_id=space.id, user_id=REQUESTER_ID, start_time=at(10), end_time=at(11), attendee_count=2)
    second = Booking(space_id=space.id, user_id=STRANGER_ID, start_time=at(10, 30), end_time=at(12), attendee_count=2)
    db_session.add_all([first, second])
    db_session.commit()

    assert service.confirm(first.id, OWNER_ID).ok
    outcome = service.confirm(second.id, OWNER_ID)

    assert outcome.error.reason is Reason.OVERLAP
    db_session.refresh(second)
    assert second.status is BookingStatus.PENDING


def test_concurrent_confirms_admit_exactly_one(db_session, space, notifier, clock):
    first = Booking(space_id=space.id, user_id=REQUESTER_ID, start_time=at(10), end_time=at(11), attendee_count=2)
    second = Booking(space_id=space.id, user_id=STRANGER_ID, start_time=at(10), end_time=at(11), attendee_count=2)
    db_session.add_all([first, second])
    db_session.commit()
    booking_ids = [first.id, second.id]
    db_session.close()

    barrier = threading.Barrier(2)
    results = {}

    def confirm(booking_id: int) -> None:
        session = SessionLocal()
        try:
            worker = BookingService(BookingLedger(session), notifier, clock=clock)
            barrier.wait()
            results[booking_id] = worker.confirm(booking_id, OWNER_ID)
        finally:
            session.close()

    threads = [threading.Thread(target=confirm, args=(booking_id,)) for booking_id in booking_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    outcomes = [results[booking_id] for booking_id in booking_ids]
    assert sum(1 for outcome in outcomes if outcome.ok) == 1
    loser = next(outcome for outcome in outcomes if not outcome.ok)
    assert loser.error.reason is Reason.OVERLAP

    with SessionLocal() as session:
        confirmed = session.query(Booking).filter(Booking.status == BookingStatus.CONFIRMED).count()
    assert confirmed == 1


def test_mark_completed_waits_for_end_time(service, space, clock):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    service.confirm(booking.id, OWNER_ID)

    clock.set(at(10, 30))
    assert service.mark_completed(booking.id).error.reason is Reason.INVALID_TRANSITION

    clock.set(at(11))
    assert service.mark_completed(booking.id).value.status is BookingStatus.COMPLETED


def test_pending_booking_cannot_be_completed(service, space, clock):
    booking = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    clock.set(at(12))

    assert service.mark_completed(booking.id).error.reason is Reason.INVALID_TRANSITION


def test_complete_elapsed_only_touches_ended_confirmed(service, space, clock):
    ended = service.request_booking(REQUESTER_ID, draft(space.id, at(9), at(10))).value
    running = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(12))).value
    pending = service.request_booking(REQUESTER_ID, draft(space.id, at(12), at(13))).value
    service.confirm(ended.id, OWNER_ID)
    service.confirm(running.id, OWNER_ID)

    clock.set(at(11))

    assert service.complete_elapsed() == 1
    assert service.ledger.reload(ended).status is BookingStatus.COMPLETED
    assert service.ledger.reload(running).status is BookingStatus.CONFIRMED
    assert service.ledger.reload(pending).status is BookingStatus.PENDING


def test_notifier_failure_keeps_the_booking(db_session, space, clock):
    service = BookingService(BookingLedger(db_session), FailingNotifier(), clock=clock)

    outcome = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11)))

    assert outcome.ok
    assert db_session.query(Booking).filter(Booking.id == outcome.value.id).count() == 1


def test_available_slots_for_date(service, monday_rule, space):
    outcome = service.available_slots(space.id, at(0).date())

    assert [slot.label for slot in outcome.value] == ["9:00 AM - 12:00 PM", "2:00 PM - 6:00 PM"]


def test_available_slots_unknown_space(service):
    assert service.available_slots(404, at(0).date()).error.reason is Reason.NOT_FOUND


def test_enforced_availability_rejects_requests_outside_slots(db_session, notifier, clock, space, monday_rule):
    strict = BookingService(
        BookingLedger(db_session), notifier, clock=clock, settings=Settings(enforce_availability=True)
    )

    assert strict.request_booking(REQUESTER_ID, draft(space.id, at(9), at(11))).ok
    outside = strict.request_booking(REQUESTER_ID, draft(space.id, at(12), at(13)))
    assert outside.error.reason is Reason.OUTSIDE_AVAILABILITY
    tuesday = strict.request_booking(
        REQUESTER_ID, draft(space.id, datetime(2026, 10, 27, 9), datetime(2026, 10, 27, 10))
    )
    assert tuesday.error.reason is Reason.OUTSIDE_AVAILABILITY


def test_owner_queue_filters_by_status(service, space):
    pending = service.request_booking(REQUESTER_ID, draft(space.id, at(9), at(10))).value
    confirmed = service.request_booking(REQUESTER_ID, draft(space.id, at(10), at(11))).value
    service.confirm(confirmed.id, OWNER_ID)

    queue = service.ledger.bookings_for_owner(OWNER_ID, status=BookingStatus.PENDING)

    assert [booking.id for booking in queue] == [pending.id]
    assert service.ledger.bookings_for_owner(STRANGER_ID) == []
    assert {b.id for b in service.ledger.bookings_for_owner(OWNER_ID)} == {pending.id, confirmed.id}
