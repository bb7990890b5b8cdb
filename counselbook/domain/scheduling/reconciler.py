"""
Realtime reconciler
Applies change-feed events for slots and bookings to a SlotProjection
"""

import asyncio
import logging
from collections import deque
from typing import Optional

from ...models import ACTIVE_BOOKING_STATUSES
from ...realtime import ChangeEvent, ChangeFeed
from .projector import SlotProjection, to_booking_ref, to_slot_view

logger = logging.getLogger(__name__)

SCHEDULE_TABLE = "counselor_schedules"
BOOKING_TABLE = "bookings"


class RealtimeReconciler:
    """
    Subscribes to the schedule and booking streams of a ChangeFeed.

    Feed callbacks only enqueue; ``drain()`` (or the ``run()`` loop) applies
    queued events in arrival order. Events for slots that are not in the
    local projection are ignored.
    """

    def __init__(self, feed: ChangeFeed, projection: SlotProjection, counselor_id: Optional[str] = None):
        self.feed = feed
        self.projection = projection
        self.counselor_id = counselor_id
        self.errors: list[str] = []
        self._queue: deque[ChangeEvent] = deque()
        self._unsubscribers = []
        self._wakeup: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def subscribed(self) -> bool:
        return bool(self._unsubscribers)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def start(self) -> None:
        if self._unsubscribers:
            return
        row_filter = {"counselor_id": self.counselor_id} if self.counselor_id else None
        self._unsubscribers = [
            self.feed.subscribe(SCHEDULE_TABLE, self.enqueue, row_filter),
            self.feed.subscribe(BOOKING_TABLE, self.enqueue, row_filter),
        ]
        logger.info(f"📡 Reconciler subscribed (counselor={self.counselor_id or 'all'})")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._queue.clear()
        if self._wakeup is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._wakeup.set)

    def enqueue(self, change: ChangeEvent) -> None:
        """Feed callback: may run on whichever thread committed the change"""
        self._queue.append(change)
        if self._wakeup is not None and self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._wakeup.set)

    def drain(self) -> int:
        """Apply every queued event in arrival order; returns how many were applied"""
        applied = 0
        while self._queue:
            change = self._queue.popleft()
            try:
                self.apply(change)
                applied += 1
            except Exception as e:
                message = f"Failed to apply {change.operation} on {change.table}: {e}"
                self.errors.append(message)
                logger.error(f"❌ {message}")
        return applied

    def apply(self, change: ChangeEvent) -> None:
        if change.table == SCHEDULE_TABLE:
            self._apply_schedule_change(change)
        elif change.table == BOOKING_TABLE:
            self._apply_booking_change(change)

    def _apply_schedule_change(self, change: ChangeEvent) -> None:
        if change.operation == "INSERT":
            slot = to_slot_view(change.new).model_copy(update={"is_booked": False, "booking_id": None})
            self.projection.insert(slot)
        elif change.operation == "UPDATE":
            new = change.new or {}
            # Booking state is left as-is; a time change may leave it stale until the next refetch
            fields = {
                key: new[key]
                for key in ("date", "start_time", "end_time", "is_available", "recurring_weekly")
                if key in new
            }
            self.projection.update_fields(new["id"], fields)
        elif change.operation == "DELETE":
            self.projection.remove(change.old["id"])

    def _apply_booking_change(self, change: ChangeEvent) -> None:
        if change.operation == "INSERT":
            booking = to_booking_ref(change.new)
            if booking.status not in ACTIVE_BOOKING_STATUSES:
                return
            marked = self.projection.mark_booked(booking.counselor_id, booking.scheduled_at, booking.id)
            if not marked:
                logger.debug(f"Booking {booking.id} has no local slot within tolerance")
            elif len(marked) > 1:
                logger.warning(f"⚠️ Booking {booking.id} marked {len(marked)} slots: {marked}")
        elif change.operation == "UPDATE":
            new = change.new or {}
            if new.get("status") == "cancelled":
                self.projection.clear_booking(new["id"])
        elif change.operation == "DELETE":
            self.projection.clear_booking(change.old["id"])

    async def run(self, stop_event: asyncio.Event) -> None:
        """Drain continuously until ``stop_event`` is set"""
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        try:
            while not stop_event.is_set():
                self.drain()
                self._wakeup.clear()
                if self._queue:
                    continue
                waiter = asyncio.ensure_future(self._wakeup.wait())
                stopper = asyncio.ensure_future(stop_event.wait())
                done, pending = await asyncio.wait({waiter, stopper}, return_when=asyncio.FIRST_COMPLETED)
                for task in pending:
                    task.cancel()
            self.drain()
        finally:
            self._wakeup = None
            self._loop = None
