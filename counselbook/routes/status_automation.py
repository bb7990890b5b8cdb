"""
API endpoint for status automation
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.status_automation import process_auto_online_status

router = APIRouter(prefix="/status", tags=["status"])


class AutomationResult(BaseModel):
    online_changed: int
    sessions_started: int
    sessions_completed: int
    sessions_missed: int
    errors: list[str]
    skipped: bool


@router.post("/automation/run", response_model=AutomationResult)
def run_status_automation(db: Session = Depends(get_db)):
    """
    Manually trigger status automation
    (In production, this is run by the worker every minute)
    """
    result = process_auto_online_status(db)
    return AutomationResult(**result)
