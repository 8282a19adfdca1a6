import os
from datetime import datetime
from typing import Any, Dict, Generator, List, Tuple

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("LOG_DIR", "./test-logs")

from spaceshare.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from spaceshare.clock import FixedClock  # noqa: E402
from spaceshare.database import Base, SessionLocal, engine  # noqa: E402
from spaceshare.ledger import BookingLedger  # noqa: E402
from spaceshare.models import AvailabilityRule, Space  # noqa: E402
from spaceshare.workflows import BookingService  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.spaces.app import app as spaces_app, slot_cache  # noqa: E402
from services.suggestions.app import app as suggestions_app  # noqa: E402

OWNER_ID = 1
REQUESTER_ID = 2
STRANGER_ID = 3


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List[Tuple[int, str, Dict[str, Any]]] = []

    def notify(self, recipient_id: int, type: str, payload: Dict[str, Any]) -> None:
        self.sent.append((recipient_id, type, payload))


class FailingNotifier:
    def notify(self, recipient_id: int, type: str, payload: Dict[str, Any]) -> None:
        raise ConnectionError("broker unavailable")


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    slot_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 19, 9, 0))


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def service(db_session, notifier, clock) -> BookingService:
    return BookingService(BookingLedger(db_session), notifier, clock=clock)


@pytest.fixture()
def space(db_session) -> Space:
    space = Space(owner_id=OWNER_ID, name="Garden Studio", capacity=10, suggested_donation="$15/hour")
    db_session.add(space)
    db_session.commit()
    db_session.refresh(space)
    return space


@pytest.fixture()
def monday_rule(db_session, space) -> AvailabilityRule:
    rule = AvailabilityRule(
        space_id=space.id,
        day_of_week="monday",
        is_available=True,
        time_ranges=[{"start": "09:00", "end": "12:00"}, {"start": "14:00", "end": "18:00"}],
    )
    db_session.add(rule)
    db_session.commit()
    return rule


@pytest.fixture()
def spaces_client() -> Generator[TestClient, None, None]:
    with TestClient(spaces_app) as client:
        yield client


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def suggestions_client() -> Generator[TestClient, None, None]:
    with TestClient(suggestions_app) as client:
        yield client
