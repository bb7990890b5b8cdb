"""
Reminder scheduler
Creates 24h/1h reminder jobs for bookings and dispatches the due ones
Job statuses: pending → sent | failed (both terminal, no automatic retry)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import REMINDER_RETENTION_DAYS
from ...errors import DispatchError, NotFoundError, TransientIOError
from ...models import Booking, ReminderJob
from ...run_guard import RunGuard, get_run_guard
from ...shared.timeutils import ensure_utc, utc_now
from .notifier import ReminderNotifier
from .repository import ReminderRepository

logger = logging.getLogger(__name__)

REMINDER_OFFSETS = {
    "24h": timedelta(hours=24),
    "1h": timedelta(hours=1),
}

# error_message prefix for a job whose notification went out but could not be recorded as sent
DELIVERED_NOT_RECORDED = "Delivered but not recorded as sent"


def user_details(user) -> dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email}


class ReminderScheduler:
    """Service layer for reminder jobs"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[ReminderNotifier] = None,
        guard: Optional[RunGuard] = None,
    ):
        self.db = db
        self.repo = ReminderRepository()
        self.notifier = notifier or ReminderNotifier()
        self._guard = guard

    @property
    def guard(self) -> RunGuard:
        if self._guard is None:
            self._guard = get_run_guard()
        return self._guard

    def get_pending_reminder_jobs(self, now: Optional[datetime] = None) -> list[ReminderJob]:
        """Due pending jobs ordered by scheduled_at ascending"""
        now = ensure_utc(now) if now else utc_now()
        return self.repo.get_due_pending_jobs(self.db, now)

    def get_booking_with_details(self, booking_id: str) -> dict[str, Any]:
        """
        Booking with its user and its counselor's user, resolved by explicit ids.

        Raises:
            NotFoundError: Booking, counselor or user missing
        """
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError(f"Booking not found: {booking_id}")

        counselor = self.repo.get_counselor(self.db, booking.counselor_id)
        if not counselor:
            raise NotFoundError(f"Counselor not found: {booking.counselor_id}")

        users = self.repo.get_users_by_ids(self.db, [booking.user_id, counselor.user_id])
        user = users.get(booking.user_id)
        counselor_user = users.get(counselor.user_id)
        if not user or not counselor_user:
            raise NotFoundError(f"User details missing for booking {booking_id}")

        return {
            "id": booking.id,
            "user_id": booking.user_id,
            "counselor_id": booking.counselor_id,
            "service_type": booking.service_type,
            "scheduled_at": ensure_utc(booking.scheduled_at).isoformat(),
            "status": booking.status,
            "amount": booking.amount,
            "user": user_details(user),
            "counselor": {"id": counselor.id, "user": user_details(counselor_user)},
        }

    def schedule_reminders_for_booking(self, booking: Booking, now: Optional[datetime] = None) -> list[ReminderJob]:
        """
        Create the 24h and 1h jobs for a booking.

        Reminder times already in the past are skipped; a type that already
        has a job is not duplicated.
        """
        now = ensure_utc(now) if now else utc_now()
        start = ensure_utc(booking.scheduled_at)
        existing_types = {job.reminder_type for job in self.repo.get_jobs_for_booking(self.db, booking.id)}

        rows = []
        for reminder_type, offset in REMINDER_OFFSETS.items():
            scheduled_at = start - offset
            if reminder_type in existing_types or scheduled_at <= now:
                continue
            rows.append(
                {
                    "booking_id": booking.id,
                    "reminder_type": reminder_type,
                    "scheduled_at": scheduled_at,
                    "status": "pending",
                }
            )

        if not rows:
            return []
        jobs = self.repo.create_jobs(self.db, rows)
        logger.info(f"⏰ Scheduled {len(jobs)} reminder(s) for booking {booking.id}")
        return jobs

    async def _dispatch(self, job: ReminderJob, now: datetime) -> None:
        details = self.get_booking_with_details(job.booking_id)
        if details["status"] == "cancelled":
            raise DispatchError(f"Booking {job.booking_id} was cancelled")

        await self.notifier.send_reminder(job.reminder_type, details)

        job.status = "sent"
        job.sent_at = now
        job.error_message = None
        try:
            self.repo.save(self.db, job)
        except Exception as e:
            logger.error(f"❌ Reminder job {job.id} was delivered but could not be recorded as sent: {e}")
            raise TransientIOError(f"{DELIVERED_NOT_RECORDED}: {e}") from e

    def _mark_failed(self, job: ReminderJob, message: str) -> None:
        try:
            job.status = "failed"
            job.error_message = message
            self.repo.save(self.db, job)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Could not mark reminder job {job.id} failed: {e}")

    async def process_reminder_jobs(self, now: Optional[datetime] = None) -> dict:
        """
        Dispatch every due pending job, then clean up old terminal jobs.

        Returns:
            dict: {processed, successful, failed, cleaned_up, errors, skipped}
        """
        summary = {
            "processed": 0,
            "successful": 0,
            "failed": 0,
            "cleaned_up": 0,
            "errors": [],
            "skipped": False,
        }

        with self.guard.hold("reminders") as acquired:
            if not acquired:
                summary["skipped"] = True
                return summary

            now = ensure_utc(now) if now else utc_now()
            logger.info("🔄 Processing due reminder jobs...")
            jobs = self.get_pending_reminder_jobs(now)

            for job in jobs:
                try:
                    # Re-read so a job another run already sent is not dispatched twice
                    self.db.refresh(job)
                    if job.status != "pending":
                        logger.info(f"⏭️ Skipping reminder job {job.id} (status: {job.status})")
                        continue

                    summary["processed"] += 1
                    await self._dispatch(job, now)
                    summary["successful"] += 1
                    logger.info(f"✅ Sent {job.reminder_type} reminder for booking {job.booking_id}")
                except Exception as e:
                    self.db.rollback()
                    summary["failed"] += 1
                    summary["errors"].append(f"Job {job.id}: {e}")
                    logger.error(f"❌ Error processing reminder job {job.id}: {e}")
                    self._mark_failed(job, str(e))

            try:
                summary["cleaned_up"] = self.cleanup_expired_reminder_jobs(now)
            except Exception as e:
                self.db.rollback()
                summary["errors"].append(f"Cleanup: {e}")
                logger.error(f"❌ Reminder cleanup failed: {e}")

        logger.info(
            f"📊 Reminder run: {summary['processed']} processed, {summary['successful']} sent, "
            f"{summary['failed']} failed, {summary['cleaned_up']} cleaned up"
        )
        return summary

    def cleanup_expired_reminder_jobs(self, now: Optional[datetime] = None) -> int:
        """Delete sent/failed jobs scheduled more than the retention period ago; pending jobs are kept"""
        now = ensure_utc(now) if now else utc_now()
        cutoff = now - timedelta(days=REMINDER_RETENTION_DAYS)
        deleted = self.repo.delete_terminal_jobs_before(self.db, cutoff)
        if deleted:
            logger.info(f"🧹 Removed {deleted} expired reminder job(s)")
        return deleted
