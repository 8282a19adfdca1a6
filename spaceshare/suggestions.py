"""Location-based class suggestions for a user."""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .models import Event, LocationPreference, SuggestedClass, UserLocation
from .outcomes import Outcome, Reason
from .ranking import build_candidates

logger = logging.getLogger(__name__)


class SuggestionService:
    def __init__(self, db: Session, clock: Optional[Clock] = None, settings: Optional[Settings] = None) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    def radius_for(self, user_id: int) -> float:
        preference = self.db.get(LocationPreference, user_id)
        if preference is None or not preference.class_suggestion_radius:
            return self.settings.default_suggestion_radius_km
        return preference.class_suggestion_radius

    def generate(self, user_id: int) -> List[SuggestedClass]:
        """Create suggestions for nearby upcoming events; existing triples are left alone."""
        locations = list(
            self.db.execute(
                select(UserLocation)
                .where(UserLocation.user_id == user_id)
                .order_by(UserLocation.visit_count.desc(), UserLocation.id)
                .limit(self.settings.suggestion_location_limit)
            ).scalars()
        )
        if not locations:
            return []

        events = list(
            self.db.execute(
                select(Event)
                .where(Event.start_time >= self.clock.now(), Event.status == "published")
                .order_by(Event.start_time)
            ).scalars()
        )
        existing = set(
            self.db.execute(
                select(SuggestedClass.event_id, SuggestedClass.location_id).where(SuggestedClass.user_id == user_id)
            ).tuples()
        )

        created: List[SuggestedClass] = []
        for candidate in build_candidates(locations, events, self.radius_for(user_id)):
            if (candidate.event_id, candidate.location_id) in existing:
                continue
            suggestion = SuggestedClass(
                user_id=user_id,
                event_id=candidate.event_id,
                location_id=candidate.location_id,
                distance=candidate.distance,
                relevance_score=candidate.relevance_score,
                reason=candidate.reason,
                created_at=self.clock.now(),
            )
            self.db.add(suggestion)
            created.append(suggestion)
        self.db.commit()
        logger.info("Generated %d new suggestions for user %s", len(created), user_id)
        return created

    def list_for_user(self, user_id: int, limit: int = 5) -> List[SuggestedClass]:
        return list(
            self.db.execute(
                select(SuggestedClass)
                .options(selectinload(SuggestedClass.event))
                .join(Event, SuggestedClass.event_id == Event.id)
                .where(SuggestedClass.user_id == user_id, SuggestedClass.dismissed.is_(False))
                .order_by(
                    SuggestedClass.relevance_score.desc(),
                    SuggestedClass.distance,
                    Event.start_time,
                    Event.id,
                )
                .limit(limit)
            ).scalars()
        )

    def dismiss(self, suggestion_id: int, user_id: int) -> Outcome[SuggestedClass]:
        suggestion = self.db.get(SuggestedClass, suggestion_id)
        if suggestion is None:
            return Outcome.failure(Reason.NOT_FOUND, "Suggestion not found")
        if suggestion.user_id != user_id:
            return Outcome.failure(Reason.FORBIDDEN, "You can only dismiss your own suggestions")
        suggestion.dismissed = True
        self.db.commit()
        return Outcome.success(suggestion)

    def record_visit(self, location_id: int, user_id: int) -> Outcome[UserLocation]:
        """Count one more visit to a saved location; later rankings weigh it in."""
        location = self.db.get(UserLocation, location_id)
        if location is None:
            return Outcome.failure(Reason.NOT_FOUND, "Location not found")
        if location.user_id != user_id:
            return Outcome.failure(Reason.FORBIDDEN, "You can only record visits to your own locations")
        self.db.execute(
            update(UserLocation)
            .where(UserLocation.id == location_id)
            .values(visit_count=UserLocation.visit_count + 1, last_visited=self.clock.now())
        )
        self.db.commit()
        self.db.refresh(location)
        return Outcome.success(location)
