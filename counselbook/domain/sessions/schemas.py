"""Session domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SessionStatusUpdate(BaseModel):
    """Schema for a manual status change; the status is checked against the lifecycle graph"""

    status: str
    notes: Optional[str] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    counselor_id: str
    user_id: str
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    status: str
    auto_started: bool = False
    notes: Optional[str] = None
