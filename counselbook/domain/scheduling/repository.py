"""Schedule repository - Database operations for slots and bookings"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...database import store_errors
from ...models import ACTIVE_BOOKING_STATUSES, Booking, Counselor, CounselorSchedule


class ScheduleRepository:
    """Repository for slot and booking database operations"""

    @staticmethod
    def get_slots_between(
        db: Session, start_date: date, end_date: date, counselor_id: Optional[str] = None
    ) -> list[CounselorSchedule]:
        """Get slots whose date falls in [start_date, end_date], ordered by date and start time"""
        with store_errors("loading slots"):
            query = db.query(CounselorSchedule).filter(
                CounselorSchedule.date >= start_date,
                CounselorSchedule.date <= end_date,
            )
            if counselor_id:
                query = query.filter(CounselorSchedule.counselor_id == counselor_id)
            return query.order_by(CounselorSchedule.date, CounselorSchedule.start_time).all()

    @staticmethod
    def get_active_bookings_between(
        db: Session, start: datetime, end: datetime, counselor_id: Optional[str] = None
    ) -> list[Booking]:
        """Get pending/confirmed bookings scheduled in [start, end]"""
        with store_errors("loading bookings"):
            query = db.query(Booking).filter(
                Booking.scheduled_at >= start,
                Booking.scheduled_at <= end,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            if counselor_id:
                query = query.filter(Booking.counselor_id == counselor_id)
            return query.all()

    @staticmethod
    def get_slot_by_id(db: Session, slot_id: str) -> Optional[CounselorSchedule]:
        with store_errors("loading slot"):
            return db.query(CounselorSchedule).filter(CounselorSchedule.id == slot_id).first()

    @staticmethod
    def get_slots_for_day(db: Session, counselor_id: str, day: date, available_only: bool = True) -> list[CounselorSchedule]:
        """Get a counselor's slots on one date"""
        with store_errors("loading day slots"):
            query = db.query(CounselorSchedule).filter(
                CounselorSchedule.counselor_id == counselor_id,
                CounselorSchedule.date == day,
            )
            if available_only:
                query = query.filter(CounselorSchedule.is_available.is_(True))
            return query.order_by(CounselorSchedule.start_time).all()

    @staticmethod
    def get_counselor_ids_with_slots_on(db: Session, day: date) -> list[str]:
        with store_errors("loading counselors with slots"):
            rows = (
                db.query(CounselorSchedule.counselor_id)
                .filter(CounselorSchedule.date == day, CounselorSchedule.is_available.is_(True))
                .distinct()
                .all()
            )
            return [row[0] for row in rows]

    @staticmethod
    def counselor_exists(db: Session, counselor_id: str) -> bool:
        with store_errors("loading counselor"):
            return db.query(Counselor.id).filter(Counselor.id == counselor_id).first() is not None

    @staticmethod
    def create_slot(db: Session, **slot_data) -> CounselorSchedule:
        """Create a new slot"""
        slot = CounselorSchedule(**slot_data)
        with store_errors("creating slot"):
            db.add(slot)
            db.commit()
            db.refresh(slot)
        return slot

    @staticmethod
    def create_slots(db: Session, rows: list[dict]) -> int:
        """Insert many slots in one transaction"""
        with store_errors("creating slots"):
            db.add_all([CounselorSchedule(**row) for row in rows])
            db.commit()
        return len(rows)

    @staticmethod
    def update_slot(db: Session, slot: CounselorSchedule, **updates) -> CounselorSchedule:
        """Update a slot with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(slot, key):
                setattr(slot, key, value)

        with store_errors("updating slot"):
            db.commit()
            db.refresh(slot)
        return slot

    @staticmethod
    def delete_slot(db: Session, slot: CounselorSchedule) -> None:
        with store_errors("deleting slot"):
            db.delete(slot)
            db.commit()

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        with store_errors("loading booking"):
            return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        """
        Insert a booking. Raises IntegrityError (after rollback) when an active
        booking already holds the same counselor and time.
        """
        booking = Booking(**booking_data)
        with store_errors("creating booking"):
            db.add(booking)
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(booking)
        return booking
