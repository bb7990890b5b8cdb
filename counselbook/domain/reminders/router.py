"""Reminder router - FastAPI endpoints for reminder jobs"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import CleanupResponse, ReminderJobResponse, ReminderRunResponse
from .service import ReminderScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])


def get_reminder_scheduler(db: Session = Depends(get_db)) -> ReminderScheduler:
    """Dependency injection for ReminderScheduler"""
    return ReminderScheduler(db)


@router.get("/pending", response_model=list[ReminderJobResponse])
def get_pending_reminders(scheduler: ReminderScheduler = Depends(get_reminder_scheduler)):
    """Due pending jobs, oldest first"""
    return scheduler.get_pending_reminder_jobs()


@router.post("/process", response_model=ReminderRunResponse)
async def process_reminders(scheduler: ReminderScheduler = Depends(get_reminder_scheduler)):
    """Dispatch due reminders now (normally run by the worker)"""
    return await scheduler.process_reminder_jobs()


@router.post("/cleanup", response_model=CleanupResponse)
def cleanup_reminders(scheduler: ReminderScheduler = Depends(get_reminder_scheduler)):
    return CleanupResponse(cleaned_up=scheduler.cleanup_expired_reminder_jobs())
