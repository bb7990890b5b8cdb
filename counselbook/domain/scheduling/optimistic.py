"""Speculative local mutations applied before the store confirms them"""

import logging
from typing import Any

from ...errors import NotFoundError, ValidationError
from .projector import SlotProjection

logger = logging.getLogger(__name__)

UPDATABLE_SLOT_FIELDS = frozenset(
    {"date", "start_time", "end_time", "is_available", "recurring_weekly", "is_booked", "booking_id"}
)


class OptimisticUpdateLayer:
    """
    Mutates the projection immediately.

    There is no rollback or timeout; a later refetch or the next real change
    event replaces speculative state. ``pending_slot_ids`` lists the slots
    touched since the last completed refetch.
    """

    def __init__(self, projection: SlotProjection):
        self.projection = projection
        self._pending: set[str] = set()

    @property
    def pending_slot_ids(self) -> set[str]:
        return set(self._pending)

    def clear_pending(self) -> None:
        self._pending.clear()

    def _require_slot(self, slot_id: str) -> None:
        if self.projection.get(slot_id) is None:
            raise NotFoundError(f"Slot {slot_id} is not in the local schedule")

    def optimistic_update_slot(self, slot_id: str, partial: dict[str, Any]) -> None:
        unknown = set(partial) - UPDATABLE_SLOT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown slot field(s): {', '.join(sorted(unknown))}")
        self._require_slot(slot_id)
        self.projection.update_fields(slot_id, partial)
        self._pending.add(slot_id)

    def optimistic_add_booking(self, slot_id: str, booking_id: str) -> None:
        self._require_slot(slot_id)
        self.projection.update_fields(slot_id, {"is_booked": True, "booking_id": booking_id})
        self._pending.add(slot_id)
        logger.debug(f"Optimistically booked slot {slot_id} with {booking_id}")

    def optimistic_cancel_booking(self, slot_id: str) -> None:
        self._require_slot(slot_id)
        self.projection.update_fields(slot_id, {"is_booked": False, "booking_id": None})
        self._pending.add(slot_id)
