from datetime import time

from counselbook.models import CounselorSchedule
from counselbook.realtime import ChangeEvent, ChangeFeed

from .helpers import DAY


def test_insert_update_delete_are_published_after_commit(db, seed, feed):
    counselor = seed.counselor()
    events = []
    feed.subscribe("counselor_schedules", events.append)

    slot = CounselorSchedule(counselor_id=counselor.id, date=DAY, start_time=time(9, 0), end_time=time(10, 0))
    db.add(slot)
    db.flush()
    assert events == []
    db.commit()

    slot.is_available = False
    db.commit()

    db.delete(slot)
    db.commit()

    assert [e.operation for e in events] == ["INSERT", "UPDATE", "DELETE"]
    insert, update, delete = events
    assert insert.old is None
    assert insert.new["counselor_id"] == counselor.id
    assert update.new["is_available"] is False
    assert delete.new is None
    assert delete.old["id"] == insert.new["id"]


def test_rolled_back_changes_are_not_published(db, seed, feed):
    counselor = seed.counselor()
    events = []
    feed.subscribe("counselor_schedules", events.append)

    db.add(CounselorSchedule(counselor_id=counselor.id, date=DAY, start_time=time(9, 0), end_time=time(10, 0)))
    db.flush()
    db.rollback()

    assert events == []


def test_unsubscribe_stops_delivery(seed, feed):
    counselor = seed.counselor()
    events = []
    unsubscribe = feed.subscribe("counselor_schedules", events.append)

    seed.slot(counselor, time(9, 0), time(10, 0))
    unsubscribe()
    seed.slot(counselor, time(10, 0), time(11, 0))

    assert len(events) == 1
    assert feed.subscriber_count == 0


def test_row_filter_and_table_select_subscribers():
    feed = ChangeFeed()
    mine, everything, bookings = [], [], []
    feed.subscribe("counselor_schedules", mine.append, {"counselor_id": "c1"})
    feed.subscribe("counselor_schedules", everything.append)
    feed.subscribe("bookings", bookings.append)

    delivered = feed.publish(
        ChangeEvent(operation="INSERT", table="counselor_schedules", new={"id": "s1", "counselor_id": "c2"})
    )

    assert delivered == 1
    assert mine == []
    assert len(everything) == 1
    assert bookings == []


def test_update_leaving_the_filter_is_still_delivered():
    feed = ChangeFeed()
    events = []
    feed.subscribe("bookings", events.append, {"counselor_id": "c1"})

    feed.publish(
        ChangeEvent(
            operation="UPDATE",
            table="bookings",
            old={"id": "b1", "counselor_id": "c1"},
            new={"id": "b1", "counselor_id": "c2"},
        )
    )

    assert len(events) == 1


def test_failing_subscriber_does_not_block_others():
    feed = ChangeFeed()
    received = []

    def broken(_change):
        raise RuntimeError("boom")

    feed.subscribe("bookings", broken)
    feed.subscribe("bookings", received.append)

    delivered = feed.publish(ChangeEvent(operation="DELETE", table="bookings", old={"id": "b1"}))

    assert delivered == 1
    assert len(received) == 1
