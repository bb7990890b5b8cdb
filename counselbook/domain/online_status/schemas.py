"""Online status schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OnlineStatusUpdate(BaseModel):
    """Manual online/offline switch; manualOverride freezes the value until cleared"""

    isOnline: bool
    manualOverride: bool = True


class OnlineStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    counselor_id: str
    is_online: bool
    last_activity: Optional[datetime] = None
    auto_online_start: Optional[datetime] = None
    auto_online_end: Optional[datetime] = None
    manual_override: bool = False
