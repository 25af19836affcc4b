import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rooms_service.config import Settings
from rooms_service.database import Base
from rooms_service.main import create_app
from rooms_service.repository import RoomRepository

app = create_app(Settings(database_url="sqlite://"))
engine = app.state.context.engine

client = TestClient(app, raise_server_exceptions=False)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def make_room(room_number="101", type="single", price=99.5, status="available", **extra):
    payload = {
        "roomNumber": room_number,
        "type": type,
        "price": price,
        "status": status,
    }
    payload.update(extra)
    return payload


def create(payload):
    res = client.post("/api/rooms", json=payload)
    assert res.status_code == 201, res.json()
    return res.json()["data"]


def test_health_check():
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Server is running"}


def test_unknown_route_returns_envelope_404():
    res = client.get("/api/nothing-here")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Route not found"}


@pytest.mark.parametrize(
    "method, path",
    [
        ("PATCH", "/api/rooms/abc"),
        ("DELETE", "/api/rooms"),
        ("POST", "/api/health"),
    ],
)
def test_wrong_method_on_known_path_is_route_not_found(method, path):
    res = client.request(method, path)
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Route not found"}


def test_create_room_returns_created_record():
    res = client.post("/api/rooms", json=make_room(description="  Sea view  "))
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "Room created successfully"
    data = body["data"]
    assert data["roomNumber"] == "101"
    assert data["type"] == "single"
    assert data["price"] == 99.5
    assert data["status"] == "available"
    assert data["description"] == "Sea view"
    assert data["id"]
    assert data["createdAt"]
    assert data["updatedAt"]


def test_create_room_trims_room_number():
    data = create(make_room(room_number="  205 "))
    assert data["roomNumber"] == "205"


def test_create_room_accepts_numeric_room_number():
    data = create(make_room(room_number=101))
    assert data["roomNumber"] == "101"

    res = client.post("/api/rooms", json=make_room(room_number="101"))
    assert res.status_code == 400
    assert res.json()["message"] == "Room number already exists"

    data = create(make_room(room_number=102.0))
    assert data["roomNumber"] == "102"


@pytest.mark.parametrize("missing", ["roomNumber", "type", "price", "status"])
def test_create_room_requires_fields(missing):
    payload = make_room()
    del payload[missing]
    res = client.post("/api/rooms", json=payload)
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Please provide all required fields"


def test_create_room_blank_room_number_counts_as_missing():
    res = client.post("/api/rooms", json=make_room(room_number="   "))
    assert res.status_code == 400
    assert res.json()["message"] == "Please provide all required fields"


def test_create_room_rejects_invalid_values():
    res = client.post("/api/rooms", json=make_room(type="penthouse"))
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert "type" in res.json()["error"]

    res = client.post("/api/rooms", json=make_room(price=-1))
    assert res.status_code == 400
    assert "price" in res.json()["error"]

    res = client.post("/api/rooms", json=make_room(status="closed"))
    assert res.status_code == 400


def test_create_room_allows_zero_price():
    data = create(make_room(price=0))
    assert data["price"] == 0


def test_duplicate_room_number_is_rejected_after_trimming():
    create(make_room(room_number="300"))
    res = client.post("/api/rooms", json=make_room(room_number=" 300 "))
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Room number already exists"}


def test_unique_index_backstop_maps_to_conflict(monkeypatch):
    create(make_room(room_number="400"))
    # Simulate a concurrent writer that passed the existence check.
    monkeypatch.setattr(RoomRepository, "find_by_room_number", lambda self, number: None)
    res = client.post("/api/rooms", json=make_room(room_number="400"))
    assert res.status_code == 400
    assert res.json()["message"] == "Room number already exists"


def test_other_integrity_failure_is_not_a_conflict(monkeypatch):
    def reject(self):
        raise IntegrityError(
            "INSERT INTO rooms", {}, Exception("NOT NULL constraint failed: rooms.type")
        )

    monkeypatch.setattr(Session, "commit", reject)
    res = client.post("/api/rooms", json=make_room())
    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Error creating room"
    assert "NOT NULL constraint failed" in body["error"]


def test_get_room_by_id():
    created = create(make_room())
    res = client.get(f"/api/rooms/{created['id']}")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["data"]["roomNumber"] == "101"


def test_get_nonexistent_room_returns_404():
    res = client.get("/api/rooms/does-not-exist")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Room not found"}


def test_list_rooms_newest_first_with_count():
    create(make_room(room_number="1"))
    create(make_room(room_number="2"))
    create(make_room(room_number="3"))

    res = client.get("/api/rooms")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["count"] == 3
    assert [r["roomNumber"] for r in body["data"]] == ["3", "2", "1"]


def test_list_rooms_search_matches_number_or_description():
    create(make_room(room_number="101"))
    create(make_room(room_number="210", description="Near lift"))
    create(make_room(room_number="305", description="Renovated in 2010"))
    create(make_room(room_number="400", description="Garden view"))

    res = client.get("/api/rooms", params={"search": "10"})
    numbers = {r["roomNumber"] for r in res.json()["data"]}
    assert numbers == {"101", "210", "305"}


def test_list_rooms_search_is_case_insensitive():
    create(make_room(room_number="A1", description="Ocean VIEW balcony"))
    create(make_room(room_number="b2"))

    res = client.get("/api/rooms", params={"search": "ocean view"})
    assert [r["roomNumber"] for r in res.json()["data"]] == ["A1"]

    res = client.get("/api/rooms", params={"search": "B"})
    numbers = {r["roomNumber"] for r in res.json()["data"]}
    assert numbers == {"A1", "b2"}


def test_list_rooms_search_treats_wildcards_literally():
    create(make_room(room_number="50%"))
    create(make_room(room_number="500"))

    res = client.get("/api/rooms", params={"search": "%"})
    assert [r["roomNumber"] for r in res.json()["data"]] == ["50%"]


def test_list_rooms_type_filter_and_all_sentinel():
    create(make_room(room_number="1", type="single"))
    create(make_room(room_number="2", type="suite"))
    create(make_room(room_number="3", type="deluxe"))

    res = client.get("/api/rooms", params={"type": "all"})
    assert res.json()["count"] == 3

    res = client.get("/api/rooms", params={"type": "suite"})
    assert [r["roomNumber"] for r in res.json()["data"]] == ["2"]


def test_list_rooms_combines_status_and_search():
    create(make_room(room_number="110", status="available"))
    create(make_room(room_number="111", status="maintenance"))
    create(make_room(room_number="220", status="maintenance"))

    res = client.get(
        "/api/rooms",
        params={"search": "11", "type": "all", "status": "maintenance"},
    )
    assert [r["roomNumber"] for r in res.json()["data"]] == ["111"]


def test_list_rooms_rejects_unknown_filter_value():
    res = client.get("/api/rooms", params={"status": "closed"})
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_update_room_partial_keeps_other_fields():
    created = create(make_room(description="Quiet"))
    res = client.put(f"/api/rooms/{created['id']}", json={"status": "occupied"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Room updated successfully"
    data = body["data"]
    assert data["status"] == "occupied"
    assert data["roomNumber"] == "101"
    assert data["price"] == 99.5
    assert data["description"] == "Quiet"
    assert data["createdAt"] == created["createdAt"]


def test_update_with_full_form_and_same_room_number_succeeds():
    created = create(make_room())
    res = client.put(
        f"/api/rooms/{created['id']}",
        json=make_room(status="maintenance", price=120),
    )
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "maintenance"
    assert res.json()["data"]["price"] == 120


def test_update_room_number_to_existing_one_fails():
    create(make_room(room_number="Room1"))
    room2 = create(make_room(room_number="Room2"))

    res = client.put(f"/api/rooms/{room2['id']}", json={"roomNumber": "Room1"})
    assert res.status_code == 400
    assert res.json()["message"] == "Room number already exists"

    res = client.get(f"/api/rooms/{room2['id']}")
    assert res.json()["data"]["roomNumber"] == "Room2"


def test_update_room_can_rename_to_free_number():
    room = create(make_room(room_number="10"))
    res = client.put(f"/api/rooms/{room['id']}", json={"roomNumber": " 11 "})
    assert res.status_code == 200
    assert res.json()["data"]["roomNumber"] == "11"


def test_update_room_rejects_clearing_required_field():
    room = create(make_room())
    res = client.put(f"/api/rooms/{room['id']}", json={"roomNumber": ""})
    assert res.status_code == 400
    assert res.json()["message"] == "Please provide all required fields"


def test_update_nonexistent_room_returns_404():
    res = client.put("/api/rooms/missing", json={"status": "occupied"})
    assert res.status_code == 404
    assert res.json()["message"] == "Room not found"


def test_update_nonexistent_room_with_invalid_body_returns_404():
    res = client.put("/api/rooms/missing", json={"type": "penthouse", "price": -5})
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Room not found"}


def test_update_existing_room_with_invalid_type_returns_400():
    room = create(make_room())
    res = client.put(f"/api/rooms/{room['id']}", json={"type": "penthouse"})
    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Invalid room data"
    assert "type" in body["error"]

    res = client.get(f"/api/rooms/{room['id']}")
    assert res.json()["data"]["type"] == "single"


def test_delete_twice_returns_200_then_404():
    room = create(make_room())

    res = client.delete(f"/api/rooms/{room['id']}")
    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Room deleted successfully"}

    res = client.delete(f"/api/rooms/{room['id']}")
    assert res.status_code == 404


def test_repository_failure_maps_to_500(monkeypatch):
    def broken(self, room_filter=None):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(RoomRepository, "list_rooms", broken)
    res = client.get("/api/rooms")
    assert res.status_code == 500
    assert res.json() == {
        "success": False,
        "message": "Error fetching rooms",
        "error": "connection refused",
    }


def test_cors_allows_any_origin():
    res = client.get("/api/health", headers={"Origin": "http://example.com"})
    assert res.headers["access-control-allow-origin"] == "*"


def test_full_room_lifecycle():
    payload = {"roomNumber": "101", "type": "single", "price": 99.5, "status": "available"}

    res = client.post("/api/rooms", json=payload)
    assert res.status_code == 201
    room = res.json()["data"]
    assert room["status"] == "available"

    res = client.post("/api/rooms", json=payload)
    assert res.status_code == 400
    assert res.json()["message"] == "Room number already exists"

    merged = {**payload, "description": "", "status": "occupied"}
    res = client.put(f"/api/rooms/{room['id']}", json=merged)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "occupied"
    assert res.json()["data"]["roomNumber"] == "101"

    res = client.delete(f"/api/rooms/{room['id']}")
    assert res.status_code == 200

    res = client.get(f"/api/rooms/{room['id']}")
    assert res.status_code == 404
