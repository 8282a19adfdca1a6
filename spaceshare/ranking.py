"""Proximity ranking of upcoming events against a user's saved locations."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

EARTH_RADIUS_KM = 6371.0
DISTANCE_WEIGHT = 0.7
VISIT_WEIGHT = 0.3
VISITS_FOR_FULL_SCORE = 10


class EventLike(Protocol):
    id: int
    start_time: datetime
    latitude: Optional[float]
    longitude: Optional[float]


class LocationLike(Protocol):
    id: int
    name: str
    latitude: float
    longitude: float
    visit_count: int


@dataclass(frozen=True)
class Candidate:
    event_id: int
    location_id: int
    event_start: datetime
    distance: float
    relevance_score: float
    reason: str


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def relevance_score(distance: float, max_radius: float, visit_count: int) -> float:
    """Closer and more-visited scores higher; the result is clamped to [0, 1]."""
    distance_score = 1 - distance / max_radius
    visit_score = min(visit_count / VISITS_FOR_FULL_SCORE, 1)
    score = DISTANCE_WEIGHT * distance_score + VISIT_WEIGHT * visit_score
    return min(max(score, 0.0), 1.0)


def rank_key(candidate: Candidate) -> tuple:
    return (-candidate.relevance_score, candidate.distance, candidate.event_start, candidate.event_id)


def build_candidates(
    locations: Iterable[LocationLike],
    events: Iterable[EventLike],
    radius_km: float,
) -> List[Candidate]:
    """Pair every location with every event within ``radius_km`` and rank the pairs."""
    events = [event for event in events if event.latitude is not None and event.longitude is not None]
    candidates: List[Candidate] = []
    for location in locations:
        for event in events:
            distance = haversine_km(location.latitude, location.longitude, event.latitude, event.longitude)
            if distance > radius_km:
                continue
            candidates.append(
                Candidate(
                    event_id=event.id,
                    location_id=location.id,
                    event_start=event.start_time,
                    distance=distance,
                    relevance_score=relevance_score(distance, radius_km, location.visit_count),
                    reason=f"Near {location.name} ({distance * 1000:.0f}m away)",
                )
            )
    return sorted(candidates, key=rank_key)
