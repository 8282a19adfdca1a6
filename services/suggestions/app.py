from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import select
from sqlalchemy.orm import Session
import uvicorn

from spaceshare.config import get_settings
from spaceshare.database import Base, engine, get_db
from spaceshare.dependencies import get_current_actor, get_suggestion_service, raise_for_error
from spaceshare.logging_middleware import add_audit_middleware, configure_logging
from spaceshare.models import Event, LocationPreference, SuggestedClass, UserLocation
from spaceshare.rate_limit import apply_rate_limiter, limiter
from spaceshare.schemas import (
    Actor,
    EventCreate,
    EventRead,
    LocationCreate,
    LocationRead,
    PreferenceUpdate,
    SuggestionRead,
)
from spaceshare.suggestions import SuggestionService

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    configure_logging()
    fastapi_app = FastAPI(title="Suggestions Service", version="0.1.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "suggestions")
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "suggestions"}


@app.post("/events", response_model=EventRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def publish_event(
    request: Request,
    event_in: EventCreate,
    _: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> Event:
    event = Event(**event_in.model_dump())
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@app.post("/locations", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def save_location(
    request: Request,
    location_in: LocationCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> UserLocation:
    location = UserLocation(user_id=actor.user_id, **location_in.model_dump())
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


@app.get("/locations/me", response_model=List[LocationRead])
def list_my_locations(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)) -> List[UserLocation]:
    return list(
        db.execute(
            select(UserLocation).where(UserLocation.user_id == actor.user_id).order_by(UserLocation.visit_count.desc())
        ).scalars()
    )


@app.post("/locations/{location_id}/visits", response_model=LocationRead)
@limiter.limit("60/minute")
def record_visit(
    request: Request,
    location_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SuggestionService = Depends(get_suggestion_service),
) -> UserLocation:
    outcome = service.record_visit(location_id, actor.user_id)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


@app.put("/preferences", response_model=PreferenceUpdate)
def update_preferences(
    preferences_in: PreferenceUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> PreferenceUpdate:
    preference = db.get(LocationPreference, actor.user_id)
    if preference is None:
        preference = LocationPreference(user_id=actor.user_id)
        db.add(preference)
    preference.class_suggestion_radius = preferences_in.class_suggestion_radius
    db.commit()
    return PreferenceUpdate(class_suggestion_radius=preference.class_suggestion_radius)


@app.post("/suggestions/generate", response_model=List[SuggestionRead])
@limiter.limit("10/minute")
def generate_suggestions(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: SuggestionService = Depends(get_suggestion_service),
) -> List[SuggestedClass]:
    return service.generate(actor.user_id)


@app.get("/suggestions", response_model=List[SuggestionRead])
def list_suggestions(
    limit: int = Query(5, ge=1, le=50),
    actor: Actor = Depends(get_current_actor),
    service: SuggestionService = Depends(get_suggestion_service),
) -> List[SuggestedClass]:
    return service.list_for_user(actor.user_id, limit=limit)


@app.post("/suggestions/{suggestion_id}/dismiss", response_model=SuggestionRead)
def dismiss_suggestion(
    suggestion_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestedClass:
    outcome = service.dismiss(suggestion_id, actor.user_id)
    if not outcome.ok:
        raise_for_error(outcome.error)
    return outcome.value


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.suggestions_service_port)
