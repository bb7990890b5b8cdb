from datetime import time

import pytest

from counselbook.domain.online_status import OnlineStatusController
from counselbook.errors import NotFoundError
from counselbook.services.status_automation import process_auto_online_status
from counselbook.shared.timeutils import ensure_utc

from .helpers import at


def test_counselor_inside_slot_goes_online(db, seed, guard):
    counselor = seed.counselor()
    seed.online_status(counselor, is_online=False)
    seed.slot(counselor, time(14, 0), time(15, 0))

    summary = process_auto_online_status(db, now=at(14, 30), guard=guard)

    status = OnlineStatusController(db).get_status(counselor.id)
    assert summary["online_changed"] == 1
    assert status.is_online is True
    assert ensure_utc(status.auto_online_start) == at(14)
    assert ensure_utc(status.auto_online_end) == at(15)


def test_auto_window_spans_all_available_slots_of_the_day(db, seed):
    counselor = seed.counselor()
    seed.slot(counselor, time(9, 0), time(10, 0))
    seed.slot(counselor, time(16, 0), time(17, 0))
    seed.slot(counselor, time(18, 0), time(19, 0), is_available=False)

    is_online, start, end = OnlineStatusController(db).compute_auto_window(counselor.id, at(12))

    assert is_online is False
    assert (start, end) == (at(9), at(17))


def test_counselor_goes_offline_after_slot_ends(db, seed, guard):
    counselor = seed.counselor()
    seed.slot(counselor, time(14, 0), time(15, 0))

    process_auto_online_status(db, now=at(14, 30), guard=guard)
    summary = process_auto_online_status(db, now=at(15, 0), guard=guard)

    assert summary["online_changed"] == 1
    assert OnlineStatusController(db).get_status(counselor.id).is_online is False


def test_second_run_reports_no_changes(db, seed, guard):
    counselor = seed.counselor()
    client = seed.user()
    seed.slot(counselor, time(14, 0), time(15, 0))
    seed.session(seed.booking(counselor, client, at(14)), at(14), at(15))
    seed.session(seed.booking(counselor, client, at(10)), at(10), at(11))
    seed.session(seed.booking(counselor, client, at(12)), at(12), at(13), status="active")

    first = process_auto_online_status(db, now=at(14, 30), guard=guard)
    second = process_auto_online_status(db, now=at(14, 30), guard=guard)

    assert first["online_changed"] == 1
    assert first["sessions_started"] == 1
    assert first["sessions_completed"] == 1
    assert first["sessions_missed"] == 1
    assert first["errors"] == []
    for key in ("online_changed", "sessions_started", "sessions_completed", "sessions_missed"):
        assert second[key] == 0


def test_automation_auto_starts_and_completes_sessions(db, seed, guard):
    counselor = seed.counselor()
    client = seed.user()
    session = seed.session(seed.booking(counselor, client, at(14)), at(14), at(15))

    process_auto_online_status(db, now=at(14, 1), guard=guard)
    db.refresh(session)
    assert session.status == "active"
    assert session.auto_started is True
    assert ensure_utc(session.actual_start) == at(14, 1)

    summary = process_auto_online_status(db, now=at(15, 0), guard=guard)
    db.refresh(session)
    assert summary["sessions_completed"] == 1
    assert session.status == "completed"
    assert ensure_utc(session.actual_end) == at(15)


def test_manual_override_freezes_status_until_cleared(db, seed, guard):
    counselor = seed.counselor()
    seed.online_status(counselor)
    seed.slot(counselor, time(14, 0), time(15, 0))
    controller = OnlineStatusController(db)

    status = controller.set_online_status(counselor.id, False, manual_override=True)
    assert status.auto_online_start is None

    summary = process_auto_online_status(db, now=at(14, 30), guard=guard)
    assert summary["online_changed"] == 0
    assert controller.get_status(counselor.id).is_online is False

    controller.clear_manual_override(counselor.id)
    summary = process_auto_online_status(db, now=at(14, 30), guard=guard)
    assert summary["online_changed"] == 1
    assert controller.get_status(counselor.id).is_online is True


def test_missing_status_record_raises_not_found(db):
    controller = OnlineStatusController(db)

    with pytest.raises(NotFoundError):
        controller.set_online_status("missing", True)
    with pytest.raises(NotFoundError):
        controller.clear_manual_override("missing")


def test_overlapping_run_is_skipped(db, seed, guard):
    counselor = seed.counselor()
    seed.slot(counselor, time(14, 0), time(15, 0))

    with guard.hold("auto_online"):
        summary = process_auto_online_status(db, now=at(14, 30), guard=guard)

    assert summary["skipped"] is True
    assert summary["online_changed"] == 0
