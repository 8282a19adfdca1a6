from datetime import datetime

from spaceshare.auth import token_for
from spaceshare.clock import FixedClock
from spaceshare.dependencies import get_clock

OWNER_ID = 1
OTHER_ID = 2


def auth_header(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user_id)}"}


def create_space(spaces_client, capacity: int = 10) -> int:
    response = spaces_client.post(
        "/spaces",
        json={"name": "Community Hall", "capacity": capacity, "suggested_donation": "$10"},
        headers=auth_header(OWNER_ID),
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_create_space_sets_owner(spaces_client):
    space_id = create_space(spaces_client)

    response = spaces_client.get(f"/spaces/{space_id}")

    assert response.status_code == 200
    assert response.json()["owner_id"] == OWNER_ID


def test_create_space_requires_token(spaces_client):
    response = spaces_client.post("/spaces", json={"name": "Hall", "capacity": 5})
    assert response.status_code == 401


def test_availability_and_slots(spaces_client):
    space_id = create_space(spaces_client)

    put = spaces_client.put(
        f"/spaces/{space_id}/availability/monday",
        json={
            "is_available": True,
            "time_ranges": [
                {"start": "18:00", "end": "20:00"},
                {"start": "10:00", "end": "09:00"},
                {"start": "09:00", "end": "11:00"},
            ],
        },
        headers=auth_header(OWNER_ID),
    )
    assert put.status_code == 200
    assert len(put.json()["time_ranges"]) == 3

    slots = spaces_client.get(f"/spaces/{space_id}/slots", params={"date": "2026-10-26"})

    assert slots.status_code == 200
    body = slots.json()
    assert body["day_of_week"] == "monday"
    assert [slot["label"] for slot in body["slots"]] == ["6:00 PM - 8:00 PM", "9:00 AM - 11:00 AM"]
    assert body["slots"][1]["start_time"] == "2026-10-26T09:00:00"


def test_unconfigured_day_has_no_slots(spaces_client):
    space_id = create_space(spaces_client)

    slots = spaces_client.get(f"/spaces/{space_id}/slots", params={"date": "2026-10-27"})

    assert slots.status_code == 200
    assert slots.json()["slots"] == []


def test_updating_availability_refreshes_slots(spaces_client):
    space_id = create_space(spaces_client)
    headers = auth_header(OWNER_ID)
    spaces_client.put(
        f"/spaces/{space_id}/availability/monday",
        json={"time_ranges": [{"start": "09:00", "end": "10:00"}]},
        headers=headers,
    )
    assert len(spaces_client.get(f"/spaces/{space_id}/slots", params={"date": "2026-10-26"}).json()["slots"]) == 1

    spaces_client.put(
        f"/spaces/{space_id}/availability/monday",
        json={"is_available": False, "time_ranges": [{"start": "09:00", "end": "10:00"}]},
        headers=headers,
    )

    assert spaces_client.get(f"/spaces/{space_id}/slots", params={"date": "2026-10-26"}).json()["slots"] == []
    listing = spaces_client.get(f"/spaces/{space_id}/availability").json()
    assert len(listing) == 1
    assert listing[0]["is_available"] is False


def test_only_owner_edits_availability(spaces_client):
    space_id = create_space(spaces_client)

    response = spaces_client.put(
        f"/spaces/{space_id}/availability/friday",
        json={"time_ranges": []},
        headers=auth_header(OTHER_ID),
    )

    assert response.status_code == 403


def test_slots_for_unknown_space(spaces_client):
    response = spaces_client.get("/spaces/999/slots", params={"date": "2026-10-26"})

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"


def test_slots_default_to_today(spaces_client):
    space_id = create_space(spaces_client)
    spaces_client.put(
        f"/spaces/{space_id}/availability/monday",
        json={"time_ranges": [{"start": "9:00", "end": "12:00"}]},
        headers=auth_header(OWNER_ID),
    )
    spaces_client.app.dependency_overrides[get_clock] = lambda: FixedClock(datetime(2026, 10, 26, 8, 0))
    try:
        response = spaces_client.get(f"/spaces/{space_id}/slots")
    finally:
        spaces_client.app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["date"] == "2026-10-26"
    assert [slot["label"] for slot in response.json()["slots"]] == ["9:00 AM - 12:00 PM"]
