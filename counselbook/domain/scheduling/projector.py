"""
Availability projection
Derives booked/unbooked slot state from independently loaded slot and booking
rows by timestamp-tolerance matching
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Union
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import BOOKING_MATCH_TOLERANCE_SECONDS, DEFAULT_WINDOW_DAYS
from ...errors import ValidationError
from ...models import ACTIVE_BOOKING_STATUSES
from ...shared.timeutils import day_bounds, ensure_utc, local_today, schedule_zone, slot_start_at, utc_now
from .repository import ScheduleRepository
from .schemas import BookingRef, SlotView

logger = logging.getLogger(__name__)

MATCH_TOLERANCE = timedelta(seconds=BOOKING_MATCH_TOLERANCE_SECONDS)


def to_booking_ref(row: Union[BookingRef, dict[str, Any], Any]) -> BookingRef:
    """Accept an ORM row, a change-feed row image or a BookingRef"""
    if isinstance(row, BookingRef):
        ref = row
    elif isinstance(row, dict):
        ref = BookingRef.model_validate(row)
    else:
        ref = BookingRef.model_validate(row, from_attributes=True)
    return ref.model_copy(update={"scheduled_at": ensure_utc(ref.scheduled_at)})


def to_slot_view(row: Union[SlotView, dict[str, Any], Any]) -> SlotView:
    if isinstance(row, SlotView):
        return row
    if isinstance(row, dict):
        return SlotView.model_validate(row)
    return SlotView.model_validate(row, from_attributes=True)


def within_tolerance(a: datetime, b: datetime, tolerance: timedelta = MATCH_TOLERANCE) -> bool:
    """Strict |a - b| < tolerance"""
    return abs(ensure_utc(a) - ensure_utc(b)) < tolerance


def index_bookings(bookings: Iterable[BookingRef]) -> dict[str, list[BookingRef]]:
    """Group active bookings by counselor id"""
    by_counselor: dict[str, list[BookingRef]] = {}
    for booking in bookings:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            continue
        by_counselor.setdefault(booking.counselor_id, []).append(booking)
    return by_counselor


def find_matching_booking(
    slot: SlotView,
    candidates: list[BookingRef],
    zone: Optional[ZoneInfo] = None,
    tolerance: timedelta = MATCH_TOLERANCE,
) -> Optional[BookingRef]:
    """The candidate nearest to the slot start, if any is within tolerance"""
    start = slot_start_at(slot.date, slot.start_time, zone)
    nearest = None
    nearest_gap = None
    for booking in candidates:
        gap = abs(booking.scheduled_at - start)
        if gap >= tolerance:
            continue
        if nearest_gap is None or gap < nearest_gap:
            nearest, nearest_gap = booking, gap
    return nearest


def project_slots(
    slot_rows: Iterable[Any],
    booking_rows: Iterable[Any],
    zone: Optional[ZoneInfo] = None,
    tolerance: timedelta = MATCH_TOLERANCE,
) -> list[SlotView]:
    """
    Build the slot projection.

    Every slot is marked booked iff an active booking of the same counselor
    lies within tolerance of its start. A booking close to two slots marks
    both; that ambiguity is logged.
    """
    zone = zone or schedule_zone()
    bookings_by_counselor = index_bookings(to_booking_ref(row) for row in booking_rows)

    projected = []
    claimed: dict[str, str] = {}
    for row in slot_rows:
        slot = to_slot_view(row).model_copy(update={"is_booked": False, "booking_id": None})
        booking = find_matching_booking(slot, bookings_by_counselor.get(slot.counselor_id, []), zone, tolerance)
        if booking:
            if booking.id in claimed:
                logger.warning(
                    f"⚠️ Booking {booking.id} is within tolerance of slots {claimed[booking.id]} and {slot.id}"
                )
            claimed.setdefault(booking.id, slot.id)
            slot = slot.model_copy(update={"is_booked": True, "booking_id": booking.id})
        projected.append(slot)

    projected.sort(key=lambda s: s.sort_key)
    return projected


def load_slot_window(
    db: Session,
    counselor_id: Optional[str],
    start: datetime,
    end: datetime,
    zone: Optional[ZoneInfo] = None,
) -> list[SlotView]:
    """Load slots and bookings for a window independently and project them"""
    zone = zone or schedule_zone()
    start, end = ensure_utc(start), ensure_utc(end)
    if end < start:
        raise ValidationError("Window end must not be before its start")

    first_day, last_day = local_today(start, zone), local_today(end, zone)
    slot_rows = ScheduleRepository.get_slots_between(db, first_day, last_day, counselor_id)

    # Widen the booking range so slots at the window edges can still find their booking
    booking_from = day_bounds(first_day, zone)[0] - MATCH_TOLERANCE
    booking_to = day_bounds(last_day, zone)[1] + MATCH_TOLERANCE
    booking_rows = ScheduleRepository.get_active_bookings_between(db, booking_from, booking_to, counselor_id)

    return project_slots(slot_rows, booking_rows, zone)


class SlotProjection:
    """
    Local projected slot state for one engine instance.

    All mutation goes through these methods; entries are replaced, never
    mutated in place, and ``slots`` returns copies.
    """

    def __init__(self, zone: Optional[ZoneInfo] = None, tolerance: timedelta = MATCH_TOLERANCE):
        self.zone = zone or schedule_zone()
        self.tolerance = tolerance
        self._slots: list[SlotView] = []

    @property
    def slots(self) -> list[SlotView]:
        return [slot.model_copy() for slot in self._slots]

    def __len__(self) -> int:
        return len(self._slots)

    def get(self, slot_id: str) -> Optional[SlotView]:
        for slot in self._slots:
            if slot.id == slot_id:
                return slot.model_copy()
        return None

    def replace(self, slots: Iterable[SlotView]) -> None:
        self._slots = sorted((to_slot_view(s) for s in slots), key=lambda s: s.sort_key)

    def insert(self, slot: SlotView) -> None:
        """Insert and keep (date, start_time) order; an existing id has its fields replaced"""
        if any(existing.id == slot.id for existing in self._slots):
            self.update_fields(
                slot.id,
                {
                    "date": slot.date,
                    "start_time": slot.start_time,
                    "end_time": slot.end_time,
                    "is_available": slot.is_available,
                    "recurring_weekly": slot.recurring_weekly,
                },
            )
            return
        self._slots.append(slot)
        self._slots.sort(key=lambda s: s.sort_key)

    def update_fields(self, slot_id: str, fields: dict[str, Any]) -> bool:
        for index, slot in enumerate(self._slots):
            if slot.id == slot_id:
                self._slots[index] = SlotView.model_validate({**slot.model_dump(), **fields})
                self._slots.sort(key=lambda s: s.sort_key)
                return True
        return False

    def remove(self, slot_id: str) -> bool:
        before = len(self._slots)
        self._slots = [slot for slot in self._slots if slot.id != slot_id]
        return len(self._slots) != before

    def mark_booked(self, counselor_id: str, scheduled_at: datetime, booking_id: str) -> list[str]:
        """Mark every slot of the counselor within tolerance of ``scheduled_at``"""
        marked = []
        for index, slot in enumerate(self._slots):
            if slot.counselor_id != counselor_id:
                continue
            if within_tolerance(scheduled_at, slot_start_at(slot.date, slot.start_time, self.zone), self.tolerance):
                self._slots[index] = slot.model_copy(update={"is_booked": True, "booking_id": booking_id})
                marked.append(slot.id)
        return marked

    def clear_booking(self, booking_id: str) -> list[str]:
        """Clear booked state on slots keyed by booking id"""
        cleared = []
        for index, slot in enumerate(self._slots):
            if slot.booking_id == booking_id:
                self._slots[index] = slot.model_copy(update={"is_booked": False, "booking_id": None})
                cleared.append(slot.id)
        return cleared


class AvailabilityProjector:
    """
    Loads a counselor's slot window into a SlotProjection.

    Every ``refetch`` takes a sequence ticket. Only the result of the latest
    issued ticket is applied, and nothing is applied after ``close``, so a
    slower, earlier fetch never overwrites a later one.
    """

    def __init__(
        self,
        session_factory,
        counselor_id: Optional[str] = None,
        projection: Optional[SlotProjection] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        self.session_factory = session_factory
        self.counselor_id = counselor_id
        self.projection = projection if projection is not None else SlotProjection()
        self.window_days = window_days
        self.error: Optional[str] = None
        self.loading = False
        self._latest_ticket = 0
        self._closed = False
        self._ticket_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def default_window(self, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
        start = ensure_utc(now) if now else utc_now()
        return start, start + timedelta(days=self.window_days)

    def fetch_window(self, counselor_id: Optional[str], start: datetime, end: datetime) -> list[SlotView]:
        """Load and project a window in a fresh session"""
        db = self.session_factory()
        try:
            return load_slot_window(db, counselor_id, start, end, self.projection.zone)
        finally:
            db.close()

    def _issue_ticket(self) -> int:
        with self._ticket_lock:
            self._latest_ticket += 1
            return self._latest_ticket

    def _is_current(self, ticket: int) -> bool:
        return not self._closed and ticket == self._latest_ticket

    async def refetch(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> bool:
        """
        Reload the window and replace the projection.

        Returns True when the result was applied. Failures are kept in
        ``error`` instead of being raised.
        """
        if self._closed:
            return False
        if start is None or end is None:
            default_start, default_end = self.default_window()
            start, end = start or default_start, end or default_end

        ticket = self._issue_ticket()
        self.loading = True
        self.error = None
        try:
            slots = await asyncio.to_thread(self.fetch_window, self.counselor_id, start, end)
        except Exception as e:
            if self._is_current(ticket):
                self.error = f"Failed to load schedule: {e}"
                self.loading = False
            logger.error(f"❌ Schedule fetch #{ticket} failed: {e}")
            return False

        if not self._is_current(ticket):
            logger.debug(f"⏭️ Discarding stale schedule fetch #{ticket} (latest #{self._latest_ticket})")
            return False

        self.projection.replace(slots)
        self.loading = False
        logger.info(f"✅ Schedule projection loaded: {len(slots)} slot(s) (fetch #{ticket})")
        return True

    def close(self) -> None:
        """Teardown: results of in-flight fetches are dropped"""
        self._closed = True
        self.loading = False
