import asyncio
from datetime import time

import pytest

from counselbook.domain.scheduling import LiveSchedule, OptimisticUpdateLayer, SlotProjection
from counselbook.domain.scheduling.schemas import SlotView
from counselbook.errors import NotFoundError, ValidationError

from .helpers import DAY, at


@pytest.fixture
def layer():
    projection = SlotProjection()
    projection.replace(
        [
            SlotView(id="s1", counselor_id="c1", date=DAY, start_time=time(9, 0), end_time=time(10, 0)),
            SlotView(id="s2", counselor_id="c1", date=DAY, start_time=time(10, 0), end_time=time(11, 0)),
        ]
    )
    return OptimisticUpdateLayer(projection)


def test_add_and_cancel_booking_apply_immediately(layer):
    layer.optimistic_add_booking("s1", "b1")
    assert layer.projection.get("s1").booking_id == "b1"
    assert layer.projection.get("s1").is_booked is True

    layer.optimistic_cancel_booking("s1")
    assert layer.projection.get("s1").is_booked is False
    assert layer.projection.get("s1").booking_id is None
    assert layer.pending_slot_ids == {"s1"}


def test_update_slot_replaces_fields_and_keeps_order(layer):
    layer.optimistic_update_slot("s1", {"start_time": time(12, 0), "end_time": time(13, 0)})

    assert [s.id for s in layer.projection.slots] == ["s2", "s1"]


def test_unknown_field_is_rejected(layer):
    with pytest.raises(ValidationError):
        layer.optimistic_update_slot("s1", {"colour": "blue"})

    assert layer.pending_slot_ids == set()


def test_unknown_slot_is_rejected(layer):
    with pytest.raises(NotFoundError):
        layer.optimistic_add_booking("missing", "b1")


def test_refetch_replaces_speculative_state(seed, session_factory, feed):
    counselor = seed.counselor()
    slot = seed.slot(counselor, time(9, 0), time(10, 0))

    async def scenario():
        live = LiveSchedule(session_factory, feed, counselor.id, at(0), at(23))
        await live.start()
        live.optimistic_add_booking(slot.id, "unconfirmed")
        assert live.optimistic.pending_slot_ids == {slot.id}

        await live.refetch()
        live.close()
        return live

    live = asyncio.run(scenario())

    assert live.slots[0].is_booked is False
    assert live.optimistic.pending_slot_ids == set()
