"""Schedule service - Slot mutations, recurring generation and booking insertion"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import BookingConflictError, NotFoundError, ValidationError
from ...models import ACTIVE_BOOKING_STATUSES, Booking, CounselorSchedule
from ...shared.timeutils import ensure_utc
from ...shared.validators import validate_time_range
from .projector import MATCH_TOLERANCE, load_slot_window, within_tolerance
from .repository import ScheduleRepository
from .schemas import BookingCreate, RecurringScheduleRequest, SlotCreate, SlotUpdate, SlotView

logger = logging.getLogger(__name__)


def sunday_based_weekday(day) -> int:
    """0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7


class ScheduleService:
    """Service layer for slot and booking writes"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()

    def get_slot_window(
        self, counselor_id: Optional[str], start: datetime, end: datetime
    ) -> list[SlotView]:
        """Projected slots for a window"""
        return load_slot_window(self.db, counselor_id, start, end)

    def _require_counselor(self, counselor_id: str) -> None:
        if not self.repo.counselor_exists(self.db, counselor_id):
            raise NotFoundError(f"Counselor {counselor_id} not found")

    def get_slot(self, slot_id: str) -> CounselorSchedule:
        slot = self.repo.get_slot_by_id(self.db, slot_id)
        if not slot:
            raise NotFoundError(f"Slot {slot_id} not found")
        return slot

    def add_slot(self, data: SlotCreate) -> CounselorSchedule:
        self._require_counselor(data.counselorId)
        slot = self.repo.create_slot(
            self.db,
            counselor_id=data.counselorId,
            date=data.date,
            start_time=data.startTime,
            end_time=data.endTime,
            is_available=data.isAvailable,
            recurring_weekly=data.recurringWeekly,
        )
        logger.info(f"✅ Slot {slot.id} added for counselor {slot.counselor_id} on {slot.date} {slot.start_time}")
        return slot

    def update_slot(self, slot_id: str, data: SlotUpdate) -> CounselorSchedule:
        slot = self.get_slot(slot_id)

        start_time = data.startTime if data.startTime is not None else slot.start_time
        end_time = data.endTime if data.endTime is not None else slot.end_time
        try:
            validate_time_range(start_time, end_time)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        return self.repo.update_slot(
            self.db,
            slot,
            date=data.date,
            start_time=data.startTime,
            end_time=data.endTime,
            is_available=data.isAvailable,
            recurring_weekly=data.recurringWeekly,
        )

    def delete_slot(self, slot_id: str) -> None:
        slot = self.get_slot(slot_id)
        self.repo.delete_slot(self.db, slot)
        logger.info(f"🗑️ Slot {slot_id} deleted")

    def generate_recurring_schedule(self, data: RecurringScheduleRequest) -> int:
        """Create one slot per matching weekday and time range between startDate and endDate inclusive"""
        self._require_counselor(data.counselorId)

        rows = []
        day = data.startDate
        while day <= data.endDate:
            if sunday_based_weekday(day) in data.weekdays:
                for time_range in data.timeSlots:
                    rows.append(
                        {
                            "counselor_id": data.counselorId,
                            "date": day,
                            "start_time": time_range.startTime,
                            "end_time": time_range.endTime,
                            "is_available": True,
                            "recurring_weekly": True,
                        }
                    )
            day += timedelta(days=1)

        if not rows:
            logger.info(f"⚠️ Recurring schedule for {data.counselorId} matched no days")
            return 0

        created = self.repo.create_slots(self.db, rows)
        logger.info(f"✅ Generated {created} recurring slot(s) for counselor {data.counselorId}")
        return created

    def create_booking(self, data: BookingCreate) -> Booking:
        """
        Insert a booking.

        An active booking within the match tolerance of another active
        booking for the same counselor would claim the same slot, so it is
        rejected with BookingConflictError. The partial unique index on
        active bookings catches concurrent inserts at the same instant.
        Active bookings also get their chat session and reminder jobs.
        """
        from ..reminders.service import ReminderScheduler
        from ..sessions.service import SessionLifecycleController

        self._require_counselor(data.counselorId)
        scheduled_at = ensure_utc(data.scheduledAt)

        if data.status in ACTIVE_BOOKING_STATUSES:
            self._reject_overlapping_booking(data.counselorId, scheduled_at)

        try:
            booking = self.repo.create_booking(
                self.db,
                counselor_id=data.counselorId,
                user_id=data.userId,
                scheduled_at=scheduled_at,
                service_type=data.serviceType,
                amount=data.amount,
                status=data.status,
            )
        except IntegrityError as e:
            logger.warning(f"⚠️ Booking conflict for counselor {data.counselorId} at {scheduled_at.isoformat()}")
            raise BookingConflictError(
                f"Counselor {data.counselorId} already has an active booking at {scheduled_at.isoformat()}"
            ) from e

        logger.info(f"✅ Booking {booking.id} created for counselor {booking.counselor_id} at {scheduled_at.isoformat()}")

        if booking.status in ACTIVE_BOOKING_STATUSES:
            SessionLifecycleController(self.db).create_session_for_booking(booking)
            ReminderScheduler(self.db).schedule_reminders_for_booking(booking)

        return booking

    def _reject_overlapping_booking(self, counselor_id: str, scheduled_at: datetime) -> None:
        nearby = self.repo.get_active_bookings_between(
            self.db, scheduled_at - MATCH_TOLERANCE, scheduled_at + MATCH_TOLERANCE, counselor_id
        )
        for existing in nearby:
            if within_tolerance(ensure_utc(existing.scheduled_at), scheduled_at):
                logger.warning(
                    f"⚠️ Booking conflict for counselor {counselor_id}: {scheduled_at.isoformat()} "
                    f"overlaps booking {existing.id}"
                )
                raise BookingConflictError(
                    f"Counselor {counselor_id} already has an active booking at "
                    f"{ensure_utc(existing.scheduled_at).isoformat()}"
                )
