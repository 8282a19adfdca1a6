"""Unit tests for the relevance ranker."""
from datetime import datetime
from types import SimpleNamespace

import pytest

from spaceshare.ranking import build_candidates, haversine_km, relevance_score


def location(id, lat, lon, visits=0, name="Home"):
    return SimpleNamespace(id=id, name=name, latitude=lat, longitude=lon, visit_count=visits)


def event(id, lat, lon, start=datetime(2026, 11, 1, 18)):
    return SimpleNamespace(id=id, latitude=lat, longitude=lon, start_time=start)


class TestHaversine:
    """Test great-circle distances."""

    def test_same_point(self):
        assert haversine_km(51.5, -0.12, 51.5, -0.12) == 0

    def test_one_degree_of_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


class TestRelevanceScore:
    """Test the weighted proximity and visit score."""

    def test_formula(self):
        assert relevance_score(0.25, 0.5, 5) == pytest.approx(0.7 * 0.5 + 0.3 * 0.5)

    def test_visits_saturate_at_ten(self):
        assert relevance_score(0.0, 0.5, 10) == pytest.approx(1.0)
        assert relevance_score(0.0, 0.5, 40) == pytest.approx(1.0)

    def test_edge_of_radius_without_visits(self):
        assert relevance_score(0.5, 0.5, 0) == pytest.approx(0.0)

    def test_clamped_to_unit_interval(self):
        assert relevance_score(2.0, 0.5, 0) == 0.0


class TestBuildCandidates:
    """Test candidate generation and ordering."""

    def test_filters_by_radius_and_missing_coordinates(self):
        home = location(1, 51.5000, -0.1200)
        near = event(10, 51.5010, -0.1200)
        far = event(11, 51.6000, -0.1200)
        nowhere = event(12, None, None)

        candidates = build_candidates([home], [near, far, nowhere], radius_km=0.5)

        assert [candidate.event_id for candidate in candidates] == [10]
        assert candidates[0].reason == "Near Home (111m away)"

    def test_orders_by_score_then_distance_then_start(self):
        home = location(1, 51.5, -0.12)
        later = event(20, 51.501, -0.12, start=datetime(2026, 11, 2, 18))
        earlier = event(21, 51.501, -0.12, start=datetime(2026, 11, 1, 18))
        closer = event(22, 51.5005, -0.12)

        candidates = build_candidates([home], [later, earlier, closer], radius_km=0.5)

        assert [candidate.event_id for candidate in candidates] == [22, 21, 20]

    def test_frequent_location_ranks_higher(self):
        rarely = location(1, 51.5, -0.12, visits=0, name="Gym")
        often = location(2, 51.5, -0.12, visits=10, name="Office")
        nearby = event(30, 51.501, -0.12)

        candidates = build_candidates([rarely, often], [nearby], radius_km=0.5)

        assert [candidate.location_id for candidate in candidates] == [2, 1]
