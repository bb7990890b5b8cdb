"""Reminder schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ReminderJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    reminder_type: str
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    status: str
    error_message: Optional[str] = None


class ReminderRunResponse(BaseModel):
    processed: int = 0
    successful: int = 0
    failed: int = 0
    cleaned_up: int = 0
    errors: list[str] = []
    skipped: bool = False


class CleanupResponse(BaseModel):
    cleaned_up: int
