import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import json

import httpx
import pytest

from rooms_service.schemas import RoomCreate, RoomStatus, RoomUpdate
from rooms_ui.client import BackendUnavailableError, RoomsApiError, RoomsClient

ROOM = {
    "id": "abc123",
    "roomNumber": "101",
    "type": "single",
    "price": 99.5,
    "status": "available",
    "description": None,
    "createdAt": "2026-01-01T10:00:00",
    "updatedAt": "2026-01-01T10:00:00",
}


def make_client(handler):
    http = httpx.Client(
        base_url="http://rooms.local/api",
        transport=httpx.MockTransport(handler),
    )
    return RoomsClient(http=http)


def test_get_rooms_sends_filters_and_parses_records():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        return httpx.Response(200, json={"success": True, "count": 1, "data": [ROOM]})

    client = make_client(handler)
    rooms = client.get_rooms(search="10", type="all", status="")

    assert seen["url"].path == "/api/rooms"
    assert seen["url"].params["search"] == "10"
    assert seen["url"].params["type"] == "all"
    assert "status" not in seen["url"].params
    assert len(rooms) == 1
    assert rooms[0].room_number == "101"
    assert rooms[0].status is RoomStatus.AVAILABLE


def test_create_room_serializes_camel_case_json():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "message": "Room created successfully", "data": ROOM})

    client = make_client(handler)
    room = client.create_room(RoomCreate(room_number="101", type="single", price=99.5, status="available"))

    assert seen["method"] == "POST"
    assert seen["body"] == {
        "roomNumber": "101",
        "type": "single",
        "price": 99.5,
        "status": "available",
    }
    assert room.id == "abc123"


def test_update_room_sends_only_given_fields():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "message": "Room updated successfully", "data": ROOM})

    client = make_client(handler)
    client.update_room("abc123", RoomUpdate(status="occupied"))

    assert seen["path"] == "/api/rooms/abc123"
    assert seen["body"] == {"status": "occupied"}


def test_backend_message_becomes_error_text():
    def handler(request):
        return httpx.Response(400, json={"success": False, "message": "Room number already exists"})

    client = make_client(handler)
    with pytest.raises(RoomsApiError) as excinfo:
        client.create_room({"roomNumber": "101"})
    assert excinfo.value.message == "Room number already exists"
    assert excinfo.value.status_code == 400


def test_success_false_with_200_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Nope"})

    client = make_client(handler)
    with pytest.raises(RoomsApiError) as excinfo:
        client.delete_room("abc123")
    assert excinfo.value.message == "Nope"


def test_non_json_error_uses_fallback_message():
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    client = make_client(handler)
    with pytest.raises(RoomsApiError) as excinfo:
        client.get_room("abc123")
    assert excinfo.value.message == "An error occurred"


def test_unreachable_backend_raises_backend_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(BackendUnavailableError):
        client.get_rooms()


def test_client_requires_an_address():
    with pytest.raises(ValueError):
        RoomsClient()


def test_room_ids_are_quoted_into_a_single_segment():
    seen = {}

    def handler(request):
        seen["raw_path"] = request.url.raw_path
        return httpx.Response(200, json={"success": True, "data": ROOM})

    client = make_client(handler)
    client.get_room("../health")

    assert seen["raw_path"] == b"/api/rooms/..%2Fhealth"


def test_success_envelope_without_room_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": True, "message": "Server is running"})

    client = make_client(handler)
    with pytest.raises(RoomsApiError) as excinfo:
        client.get_room("abc123")
    assert excinfo.value.message == "Unexpected response from the rooms service"


def test_malformed_room_record_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": True, "count": 1, "data": [{"id": "abc123"}]})

    client = make_client(handler)
    with pytest.raises(RoomsApiError):
        client.get_rooms()
