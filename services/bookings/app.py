from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import select
from sqlalchemy.orm import Session
import uvicorn

from spaceshare.config import get_settings
from spaceshare.database import Base, engine, get_db
from spaceshare.dependencies import (
    get_booking_service,
    get_current_actor,
    raise_for_error,
    require_service_key,
)
from spaceshare.logging_middleware import add_audit_middleware, configure_logging
from spaceshare.models import Booking, Notification
from spaceshare.rate_limit import apply_rate_limiter, limiter
from spaceshare.schemas import (
    Actor,
    BookingCreate,
    BookingQuote,
    BookingRead,
    CompletionSummary,
    NotificationRead,
)
from spaceshare.status import BookingStatus
from spaceshare.workflows import BookingService

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title="Bookings Service", version="0.1.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def request_booking(
    request: Request,
    booking_in: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    outcome = service.request_booking(actor.user_id, booking_in)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.get("/bookings/me", response_model=List[BookingRead])
def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> List[Booking]:
    return service.ledger.bookings_for_user(actor.user_id)


@app.get("/bookings/owner", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_owner_bookings(
    request: Request,
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    space_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> List[Booking]:
    return service.ledger.bookings_for_owner(actor.user_id, status=booking_status, space_id=space_id)


@app.get("/bookings/quote", response_model=BookingQuote)
def quote_booking(
    space_id: int,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    service: BookingService = Depends(get_booking_service),
) -> BookingQuote:
    outcome = service.quote(space_id, start_time, end_time)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.post("/bookings/complete-elapsed", response_model=CompletionSummary, dependencies=[Depends(require_service_key)])
def complete_elapsed(service: BookingService = Depends(get_booking_service)) -> CompletionSummary:
    return CompletionSummary(completed=service.complete_elapsed())


@app.get("/bookings/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    booking = service.ledger.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.user_id != actor.user_id and not service.ledger.is_owner(booking.space_id, actor.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@app.post("/bookings/{booking_id}/confirm", response_model=BookingRead)
@limiter.limit("20/minute")
def confirm_booking(
    request: Request,
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    outcome = service.confirm(booking_id, actor.user_id)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.post("/bookings/{booking_id}/reject", response_model=BookingRead)
@limiter.limit("20/minute")
def reject_booking(
    request: Request,
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    outcome = service.reject(booking_id, actor.user_id)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
@limiter.limit("20/minute")
def cancel_booking(
    request: Request,
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
) -> Booking:
    outcome = service.cancel(booking_id, actor.user_id)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.get("/notifications/me", response_model=List[NotificationRead])
def list_my_notifications(
    unread_only: bool = False,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> List[Notification]:
    query = select(Notification).where(Notification.user_id == actor.user_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    return list(db.execute(query.order_by(Notification.created_at.desc(), Notification.id.desc())).scalars())


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.bookings_service_port)
