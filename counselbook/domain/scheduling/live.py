"""
Live schedule handle
One counselor's (or every counselor's) projected slot window, kept current by
the change feed
"""

import logging
from datetime import datetime
from typing import Any, Optional

from ...realtime import ChangeFeed
from .optimistic import OptimisticUpdateLayer
from .projector import AvailabilityProjector, SlotProjection
from .reconciler import RealtimeReconciler
from .schemas import SlotView

logger = logging.getLogger(__name__)


class LiveSchedule:
    """
    Usage:
        async with LiveSchedule(SessionLocal, feed, counselor_id) as schedule:
            schedule.sync()
            slots = schedule.slots
    """

    def __init__(
        self,
        session_factory,
        feed: ChangeFeed,
        counselor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ):
        self.counselor_id = counselor_id
        self.window_start = start
        self.window_end = end
        self.projection = SlotProjection()
        self.projector = AvailabilityProjector(session_factory, counselor_id, self.projection)
        self.reconciler = RealtimeReconciler(feed, self.projection, counselor_id)
        self.optimistic = OptimisticUpdateLayer(self.projection)

    @property
    def slots(self) -> list[SlotView]:
        return self.projection.slots

    @property
    def loading(self) -> bool:
        return self.projector.loading

    @property
    def error(self) -> Optional[str]:
        return self.projector.error

    @property
    def errors(self) -> list[str]:
        """Event application failures recorded by the reconciler"""
        return list(self.reconciler.errors)

    @property
    def closed(self) -> bool:
        return self.projector.closed

    async def start(self) -> bool:
        """Subscribe before the initial load so no change committed meanwhile is missed"""
        self.reconciler.start()
        return await self.refetch()

    async def refetch(self) -> bool:
        applied = await self.projector.refetch(self.window_start, self.window_end)
        if applied:
            self.optimistic.clear_pending()
            self.reconciler.drain()
        return applied

    def sync(self) -> int:
        """Apply queued change events"""
        if self.closed:
            return 0
        return self.reconciler.drain()

    def optimistic_update_slot(self, slot_id: str, partial: dict[str, Any]) -> None:
        self.optimistic.optimistic_update_slot(slot_id, partial)

    def optimistic_add_booking(self, slot_id: str, booking_id: str) -> None:
        self.optimistic.optimistic_add_booking(slot_id, booking_id)

    def optimistic_cancel_booking(self, slot_id: str) -> None:
        self.optimistic.optimistic_cancel_booking(slot_id)

    def close(self) -> None:
        self.reconciler.stop()
        self.projector.close()
        logger.info(f"📴 Live schedule closed (counselor={self.counselor_id or 'all'})")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
        return False
