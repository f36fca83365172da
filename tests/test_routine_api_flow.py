from __future__ import annotations

from datetime import date, timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.notification_controller import router as notification_router
from backend.controllers.routine_controller import router as routine_router
from backend.repository.routine_repository import RoutineRepository
from backend.services.arbitration_service import RoutineArbitrationService
from backend.services.notification_service import NotificationService


SLOT = {
    "day": "Saturday",
    "room_id": "cr4",
    "start_time": "08:30",
    "end_time": "10:00",
    "slot_type": "Theory",
}


def _build_test_app(memory_settings) -> FastAPI:
    repository = RoutineRepository(memory_settings)
    repository.seed_demo_data()

    app = FastAPI()
    app.include_router(routine_router)
    app.include_router(notification_router)
    app.state.settings = memory_settings
    app.state.repository = repository
    app.state.arbitration_service = RoutineArbitrationService(
        repository=repository,
        settings=memory_settings,
    )
    app.state.notification_service = NotificationService(repository=repository)
    return app


def _end_date(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _request_cell(client: TestClient, **overrides):
    payload = {
        **SLOT,
        "acting_program_id": "p11",
        "course_load_id": "cl-cse101",
        "booking_end_date": _end_date(),
    }
    payload.update(overrides)
    return client.post("/assignments", json=payload)


def test_request_approval_flow_over_http(memory_settings) -> None:
    client = TestClient(_build_test_app(memory_settings))

    response = _request_cell(client)
    assert response.status_code == 200
    effect = response.json()
    assert effect["entries_created"] == []
    request_id = effect["requests_created"][0]["id"]
    assert effect["requests_created"][0]["status"] == "pending"
    assert effect["notification"]["recipient_program_id"] == "p15"

    pending = client.get("/requests", params={"owner_program_id": "p15", "status": "pending"})
    assert pending.status_code == 200
    assert [item["id"] for item in pending.json()] == [request_id]

    cell = client.get("/cells", params={**SLOT, "acting_program_id": "p15"})
    assert cell.status_code == 200
    assert cell.json()["status"] == "actionable_request"

    approval = client.post(f"/requests/{request_id}/approve", json={"acting_program_id": "p15"})
    assert approval.status_code == 200
    body = approval.json()
    assert body["requests_updated"][0]["status"] == "approved"
    assert body["entries_created"][0]["program_id"] == "p11"
    assert body["notification"]["severity"] == "success"

    routine = client.get("/routine", params={"program_id": "p11"})
    assert [item["course_load_id"] for item in routine.json()] == ["cl-cse101"]

    inbox = client.get("/notifications/p11")
    assert inbox.status_code == 200
    assert inbox.json()["unread_count"] == 1
    assert "has been approved" in inbox.json()["notifications"][0]["message"]


def test_error_kinds_map_to_http_status(memory_settings) -> None:
    client = TestClient(_build_test_app(memory_settings))

    missing_date = _request_cell(client, booking_end_date=None)
    assert missing_date.status_code == 400
    assert missing_date.json()["detail"]["kind"] == "MissingRequiredDate"

    past_date = _request_cell(client, booking_end_date="2000-01-01")
    assert past_date.status_code == 400
    assert past_date.json()["detail"]["kind"] == "PastBookingDate"

    no_program = _request_cell(client, acting_program_id="__ALL_PROGRAMS__")
    assert no_program.status_code == 400
    assert no_program.json()["detail"]["kind"] == "NoProgramSelected"

    unknown_room = _request_cell(client, room_id="cr404")
    assert unknown_room.status_code == 404
    assert unknown_room.json()["detail"]["kind"] == "RoomNotFound"

    unknown_request = client.post("/requests/req-missing/approve", json={"acting_program_id": "p15"})
    assert unknown_request.status_code == 404

    request_id = _request_cell(client).json()["requests_created"][0]["id"]
    forbidden = client.post(f"/requests/{request_id}/approve", json={"acting_program_id": "p10"})
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"]["kind"] == "NotAuthorized"

    eng_request = _request_cell(client, room_id="cr6").json()["requests_created"][0]
    owner_write = client.post(
        "/assignments",
        json={**SLOT, "room_id": "cr6", "acting_program_id": "p10", "course_load_id": "cl-eng101"},
    )
    assert owner_write.status_code == 200
    conflict = client.post(
        f"/requests/{eng_request['id']}/approve",
        json={"acting_program_id": "p10"},
    )
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["kind"] == "Conflict"


def test_blank_end_date_is_treated_as_absent(memory_settings) -> None:
    client = TestClient(_build_test_app(memory_settings))

    owner_write = _request_cell(client, acting_program_id="p15", booking_end_date="")
    assert owner_write.status_code == 200
    assert owner_write.json()["entries_created"][0]["booking_end_date"] is None

    cleared = _request_cell(client, acting_program_id="p15", course_load_id="", booking_end_date="")
    assert cleared.status_code == 200
    assert len(cleared.json()["entries_deleted"]) == 1

    noop_clear = _request_cell(client, acting_program_id="p15", course_load_id="", booking_end_date="  ")
    assert noop_clear.status_code == 200
    assert noop_clear.json()["is_noop"] is True

    shared = _request_cell(client, acting_program_id="p11", booking_end_date="")
    assert shared.status_code == 400
    assert shared.json()["detail"]["kind"] == "MissingRequiredDate"


def test_invalid_payload_is_rejected_before_arbitration(memory_settings) -> None:
    client = TestClient(_build_test_app(memory_settings))

    reversed_slot = _request_cell(client, start_time="10:00", end_time="08:30")
    assert reversed_slot.status_code == 422

    bad_time = _request_cell(client, start_time="8:30")
    assert bad_time.status_code == 422


def test_reject_and_inbox_housekeeping(memory_settings) -> None:
    client = TestClient(_build_test_app(memory_settings))
    request_id = _request_cell(client).json()["requests_created"][0]["id"]

    rejected = client.post(
        f"/requests/{request_id}/reject",
        json={"acting_program_id": "p15", "reason": "Reserved for exams"},
    )
    assert rejected.status_code == 200
    assert rejected.json()["requests_updated"][0]["rejection_reason"] == "Reserved for exams"

    inbox = client.get("/notifications/p11", params={"unread_only": True}).json()
    notification_id = inbox["notifications"][0]["id"]
    assert inbox["notifications"][0]["message"].endswith("Reason: Reserved for exams")

    read = client.post(f"/notifications/{notification_id}/read")
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert client.post("/notifications/notif-missing/read").status_code == 404

    read_all = client.post("/notifications/read_all/p15")
    assert read_all.json() == {"program_id": "p15", "affected": 1}

    assert client.delete(f"/notifications/{notification_id}").status_code == 204
    assert client.delete(f"/notifications/{notification_id}").status_code == 404

    cleared = client.delete("/notifications/program/p15")
    assert cleared.json() == {"program_id": "p15", "affected": 1}
    assert client.get("/notifications/p15").json()["notifications"] == []
