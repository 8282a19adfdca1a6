from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import select
from sqlalchemy.orm import Session
import uvicorn

from spaceshare.cache import SlotCache
from spaceshare.config import get_settings
from spaceshare.database import Base, engine, get_db
from spaceshare.dependencies import get_booking_service, get_current_actor, raise_for_error
from spaceshare.logging_middleware import add_audit_middleware, configure_logging
from spaceshare.models import AvailabilityRule, Space
from spaceshare.rate_limit import apply_rate_limiter, limiter
from spaceshare.schemas import (
    Actor,
    AvailabilityRuleIn,
    AvailabilityRuleRead,
    DayOfWeek,
    DaySlots,
    SlotRead,
    SpaceCreate,
    SpaceRead,
)
from spaceshare.slots import day_of_week
from spaceshare.workflows import BookingService

settings = get_settings()
slot_cache: SlotCache[List[SlotRead]] = SlotCache(ttl=settings.slot_cache_ttl)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title="Spaces Service", version="0.1.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "spaces")
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


def _get_space_or_404(db: Session, space_id: int) -> Space:
    space = db.get(Space, space_id)
    if not space:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Space not found")
    return space


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "spaces"}


@app.post("/spaces", response_model=SpaceRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_space(
    request: Request,
    space_in: SpaceCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> Space:
    space = Space(owner_id=actor.user_id, **space_in.model_dump())
    db.add(space)
    db.commit()
    db.refresh(space)
    return space


@app.get("/spaces/{space_id}", response_model=SpaceRead)
def get_space(space_id: int, db: Session = Depends(get_db)) -> Space:
    return _get_space_or_404(db, space_id)


@app.get("/spaces/{space_id}/availability", response_model=List[AvailabilityRuleRead])
def list_availability(space_id: int, db: Session = Depends(get_db)) -> List[AvailabilityRule]:
    _get_space_or_404(db, space_id)
    return list(db.execute(select(AvailabilityRule).where(AvailabilityRule.space_id == space_id)).scalars())


@app.put("/spaces/{space_id}/availability/{day}", response_model=AvailabilityRuleRead)
@limiter.limit("30/minute")
def set_availability(
    request: Request,
    space_id: int,
    day: DayOfWeek,
    rule_in: AvailabilityRuleIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> AvailabilityRule:
    space = _get_space_or_404(db, space_id)
    if space.owner_id != actor.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the space owner can edit availability")

    rule = db.execute(
        select(AvailabilityRule).where(AvailabilityRule.space_id == space_id, AvailabilityRule.day_of_week == day)
    ).scalar_one_or_none()
    if rule is None:
        rule = AvailabilityRule(space_id=space_id, day_of_week=day)
        db.add(rule)
    rule.is_available = rule_in.is_available
    rule.time_ranges = [entry.model_dump(exclude_none=True) for entry in rule_in.time_ranges]
    db.commit()
    db.refresh(rule)
    slot_cache.invalidate_space(space_id)
    return rule


@app.get("/spaces/{space_id}/slots", response_model=DaySlots)
@limiter.limit("60/minute")
def list_slots(
    request: Request,
    space_id: int,
    day: Optional[date] = Query(None, alias="date"),
    service: BookingService = Depends(get_booking_service),
) -> DaySlots:
    day = day or service.clock.today()
    cached = slot_cache.get(space_id, day)
    if cached is None:
        outcome = service.available_slots(space_id, day)
        if not outcome.ok:
            raise_for_error(outcome.error)
        cached = [
            SlotRead(start_time=slot.range.start, end_time=slot.range.end, label=slot.label)
            for slot in outcome.value
        ]
        slot_cache.set(space_id, day, cached)
    return DaySlots(space_id=space_id, date=day, day_of_week=day_of_week(day), slots=cached)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.spaces_service_port)
