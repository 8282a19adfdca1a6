"""Reusable FastAPI dependencies for identity, persistence and workflows."""
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .auth import actor_from_token
from .clock import Clock, SystemClock
from .config import get_settings
from .database import SessionLocal, get_db
from .ledger import BookingLedger
from .notifications import Notifier, build_notifier
from .outcomes import BookingError, Category
from .schemas import Actor
from .suggestions import SuggestionService
from .workflows import BookingService

bearer_scheme = HTTPBearer(auto_error=False)
service_api_key_header = APIKeyHeader(name="X-Service-Key", auto_error=False)

_ERROR_STATUS = {
    Category.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Category.CAPACITY_EXCEEDED: status.HTTP_400_BAD_REQUEST,
    Category.OVERLAP: status.HTTP_409_CONFLICT,
    Category.CONCURRENT_MODIFICATION: status.HTTP_409_CONFLICT,
    Category.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    Category.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def get_current_actor(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> Actor:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return actor_from_token(credentials.credentials)


def get_clock() -> Clock:
    return SystemClock()


def get_notifier() -> Notifier:
    return build_notifier(SessionLocal)


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(BookingLedger(db), notifier, clock=clock)


def get_suggestion_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> SuggestionService:
    return SuggestionService(db, clock=clock)


def raise_for_error(error: BookingError) -> None:
    raise HTTPException(
        status_code=_ERROR_STATUS[error.category],
        detail={"code": error.reason.value, "message": error.message},
    )


def require_service_key(api_key: str | None = Security(service_api_key_header)) -> None:
    if not api_key or api_key != get_settings().service_api_key:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid service key")
