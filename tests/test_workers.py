import asyncio
import threading
from datetime import timedelta

from counselbook import worker
from counselbook.domain.reminders import ReminderScheduler
from counselbook.services import status_automation
from counselbook.shared.timeutils import utc_now


def test_status_automation_task_runs_off_the_event_loop(session_factory, monkeypatch):
    threads = {}

    def fake_automation(db):
        threads["work"] = threading.get_ident()
        return {"online_changed": 0, "errors": []}

    async def scenario():
        threads["loop"] = threading.get_ident()
        return await worker.status_automation_task({})

    monkeypatch.setattr(worker, "SessionLocal", session_factory)
    monkeypatch.setattr(status_automation, "process_auto_online_status", fake_automation)

    summary = asyncio.run(scenario())

    assert summary["online_changed"] == 0
    assert threads["work"] != threads["loop"]


def test_cleanup_task_runs_off_the_event_loop(session_factory, seed, monkeypatch):
    counselor = seed.counselor()
    client = seed.user()
    booking = seed.booking(counselor, client, utc_now() + timedelta(days=1))
    seed.reminder(booking, utc_now() - timedelta(days=5), status="sent")
    threads = {}
    cleanup = ReminderScheduler.cleanup_expired_reminder_jobs

    def recording_cleanup(self, now=None):
        threads["work"] = threading.get_ident()
        return cleanup(self, now)

    async def scenario():
        threads["loop"] = threading.get_ident()
        return await worker.cleanup_reminders_task({})

    monkeypatch.setattr(worker, "SessionLocal", session_factory)
    monkeypatch.setattr(ReminderScheduler, "cleanup_expired_reminder_jobs", recording_cleanup)

    assert asyncio.run(scenario()) == {"cleaned_up": 1}
    assert threads["work"] != threads["loop"]
