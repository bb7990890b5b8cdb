"""Reminder repository - Database operations for reminder jobs and booking lookups"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...database import store_errors
from ...models import Booking, Counselor, ReminderJob, User


class ReminderRepository:
    """Repository for reminder job database operations"""

    @staticmethod
    def get_due_pending_jobs(db: Session, now: datetime) -> list[ReminderJob]:
        """Pending jobs with scheduled_at <= now, oldest first"""
        with store_errors("loading due reminder jobs"):
            return (
                db.query(ReminderJob)
                .filter(ReminderJob.status == "pending", ReminderJob.scheduled_at <= now)
                .order_by(ReminderJob.scheduled_at.asc())
                .all()
            )

    @staticmethod
    def get_job_by_id(db: Session, job_id: str) -> Optional[ReminderJob]:
        with store_errors("loading reminder job"):
            return db.query(ReminderJob).filter(ReminderJob.id == job_id).first()

    @staticmethod
    def get_jobs_for_booking(db: Session, booking_id: str) -> list[ReminderJob]:
        with store_errors("loading booking reminders"):
            return db.query(ReminderJob).filter(ReminderJob.booking_id == booking_id).all()

    @staticmethod
    def create_jobs(db: Session, rows: list[dict]) -> list[ReminderJob]:
        jobs = [ReminderJob(**row) for row in rows]
        with store_errors("creating reminder jobs"):
            db.add_all(jobs)
            db.commit()
            for job in jobs:
                db.refresh(job)
        return jobs

    @staticmethod
    def save(db: Session, job: ReminderJob) -> None:
        with store_errors("saving reminder job"):
            db.commit()

    @staticmethod
    def delete_terminal_jobs_before(db: Session, cutoff: datetime) -> int:
        """Delete sent/failed jobs scheduled before ``cutoff``; pending jobs are never selected"""
        with store_errors("cleaning up reminder jobs"):
            jobs = (
                db.query(ReminderJob)
                .filter(ReminderJob.status != "pending", ReminderJob.scheduled_at < cutoff)
                .all()
            )
            for job in jobs:
                db.delete(job)
            db.commit()
            return len(jobs)

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        with store_errors("loading booking"):
            return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_counselor(db: Session, counselor_id: str) -> Optional[Counselor]:
        with store_errors("loading counselor"):
            return db.query(Counselor).filter(Counselor.id == counselor_id).first()

    @staticmethod
    def get_users_by_ids(db: Session, user_ids: list[str]) -> dict[str, User]:
        """Id-indexed user lookup"""
        with store_errors("loading users"):
            users = db.query(User).filter(User.id.in_(user_ids)).all()
            return {user.id: user for user in users}
