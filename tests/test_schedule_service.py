from datetime import time

import pytest

from counselbook.domain.scheduling.schemas import BookingCreate
from counselbook.domain.scheduling.service import ScheduleService
from counselbook.errors import BookingConflictError
from counselbook.models import Booking

from .helpers import at


def booking_request(counselor, client, scheduled_at, status="confirmed"):
    return BookingCreate(counselorId=counselor.id, userId=client.id, scheduledAt=scheduled_at, status=status)


def test_booking_within_tolerance_of_active_booking_conflicts(db, seed):
    counselor = seed.counselor()
    client = seed.user()
    seed.slot(counselor, time(9, 0), time(10, 0))
    service = ScheduleService(db)

    service.create_booking(booking_request(counselor, client, at(9, 0, 0)))
    with pytest.raises(BookingConflictError):
        service.create_booking(booking_request(counselor, client, at(9, 0, 30)))

    assert db.query(Booking).count() == 1


def test_booking_a_full_tolerance_apart_is_accepted(db, seed):
    counselor = seed.counselor()
    client = seed.user()
    service = ScheduleService(db)

    service.create_booking(booking_request(counselor, client, at(9, 0)))
    service.create_booking(booking_request(counselor, client, at(9, 1)))

    assert db.query(Booking).count() == 2


def test_cancelled_booking_does_not_block_the_slot(db, seed):
    counselor = seed.counselor()
    client = seed.user()
    seed.booking(counselor, client, at(9, 0), status="cancelled")
    service = ScheduleService(db)

    booking = service.create_booking(booking_request(counselor, client, at(9, 0, 20)))

    assert booking.status == "confirmed"


def test_other_counselors_bookings_do_not_conflict(db, seed):
    first = seed.counselor()
    second = seed.counselor()
    client = seed.user()
    service = ScheduleService(db)

    service.create_booking(booking_request(first, client, at(9, 0)))
    service.create_booking(booking_request(second, client, at(9, 0, 10)))

    assert db.query(Booking).count() == 2
