from datetime import time

import pytest
from fastapi.testclient import TestClient

from counselbook.database import get_db
from counselbook.main import app
from counselbook.models import ChatSession, ReminderJob
from counselbook.run_guard import RunGuard
from counselbook.services import status_automation

from .helpers import DAY, at


@pytest.fixture
def client(session_factory, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(status_automation, "get_run_guard", lambda: RunGuard())
    yield TestClient(app)
    app.dependency_overrides.clear()


def window_params(counselor_id):
    return {"counselor_id": counselor_id, "start": "2030-01-07T00:00:00Z", "end": "2030-01-07T23:59:00Z"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_slot_crud_and_projection(client, seed):
    counselor = seed.counselor()

    created = client.post(
        "/schedules",
        json={"counselorId": counselor.id, "date": "2030-01-07", "startTime": "09:00", "endTime": "10:00"},
    )
    assert created.status_code == 201
    slot_id = created.json()["id"]

    updated = client.patch(f"/schedules/{slot_id}", json={"isAvailable": False})
    assert updated.status_code == 200
    assert updated.json()["is_available"] is False

    listed = client.get("/schedules", params=window_params(counselor.id))
    assert [s["id"] for s in listed.json()] == [slot_id]

    assert client.delete(f"/schedules/{slot_id}").status_code == 204
    assert client.get("/schedules", params=window_params(counselor.id)).json() == []


def test_slot_with_end_before_start_is_rejected(client, seed):
    counselor = seed.counselor()

    response = client.post(
        "/schedules",
        json={"counselorId": counselor.id, "date": "2030-01-07", "startTime": "10:00", "endTime": "09:00"},
    )

    assert response.status_code == 422
    assert "must be after" in response.json()["detail"][0]["msg"]


def test_unknown_slot_returns_404(client):
    assert client.patch("/schedules/missing", json={"isAvailable": False}).status_code == 404


def test_booking_marks_slot_and_double_booking_conflicts(client, seed, db):
    counselor = seed.counselor()
    user = seed.user()
    seed.slot(counselor, time(9, 0), time(10, 0))
    body = {"counselorId": counselor.id, "userId": user.id, "scheduledAt": "2030-01-07T09:00:00Z"}

    first = client.post("/schedules/bookings", json=body)
    second = client.post("/schedules/bookings", json=body)

    assert first.status_code == 201
    assert second.status_code == 409
    slots = client.get("/schedules", params=window_params(counselor.id)).json()
    assert slots[0]["booking_id"] == first.json()["id"]
    assert db.query(ChatSession).filter(ChatSession.booking_id == first.json()["id"]).count() == 1
    assert db.query(ReminderJob).filter(ReminderJob.booking_id == first.json()["id"]).count() == 2


def test_recurring_schedule_creates_slot_per_weekday_and_range(client, seed):
    counselor = seed.counselor()

    response = client.post(
        "/schedules/recurring",
        json={
            "counselorId": counselor.id,
            "startDate": "2030-01-06",
            "endDate": "2030-01-12",
            "weekdays": [1, 3],
            "timeSlots": [{"startTime": "09:00", "endTime": "10:00"}, {"startTime": "14:00", "endTime": "15:00"}],
        },
    )

    assert response.status_code == 201
    assert response.json() == {"created": 4}


def test_session_status_endpoint_enforces_lifecycle(client, seed):
    counselor = seed.counselor()
    user = seed.user()
    session = seed.session(seed.booking(counselor, user, at(14)), at(14), at(15))
    session_id = session.id

    started = client.patch(f"/sessions/{session_id}/status", json={"status": "active"})
    assert started.status_code == 200
    assert started.json()["actual_start"] is not None

    backwards = client.patch(f"/sessions/{session_id}/status", json={"status": "scheduled"})
    assert backwards.status_code == 400

    missing = client.patch("/sessions/missing/status", json={"status": "active"})
    assert missing.status_code == 404

    listed = client.get("/sessions", params={"counselor_id": counselor.id})
    assert [s["id"] for s in listed.json()] == [session_id]


def test_online_status_endpoints(client, seed):
    counselor = seed.counselor()
    seed.online_status(counselor)

    assert client.get("/online-status/missing").status_code == 404

    manual = client.put(f"/online-status/{counselor.id}", json={"isOnline": True})
    assert manual.status_code == 200
    assert manual.json()["manual_override"] is True

    cleared = client.delete(f"/online-status/{counselor.id}/override")
    assert cleared.json()["manual_override"] is False

    assert [s["counselor_id"] for s in client.get("/online-status").json()] == [counselor.id]


def test_automation_and_reminder_batch_endpoints(client):
    automation = client.post("/status/automation/run")
    assert automation.status_code == 200
    assert set(automation.json()) == {
        "online_changed",
        "sessions_started",
        "sessions_completed",
        "sessions_missed",
        "errors",
        "skipped",
    }

    assert client.get("/reminders/pending").json() == []
    assert client.post("/reminders/cleanup").json() == {"cleaned_up": 0}
