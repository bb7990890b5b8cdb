"""Schedule router - FastAPI endpoints for slots and bookings"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...config import DEFAULT_WINDOW_DAYS
from ...database import get_db
from ...shared.timeutils import utc_now
from .projector import to_slot_view
from .schemas import (
    BookingCreate,
    BookingResponse,
    RecurringScheduleRequest,
    RecurringScheduleResponse,
    SlotCreate,
    SlotUpdate,
    SlotView,
)
from .service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


@router.get("", response_model=list[SlotView])
def get_schedule(
    counselor_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Projected slots with booking state; defaults to the next 30 days"""
    start = start or utc_now()
    end = end or start + timedelta(days=DEFAULT_WINDOW_DAYS)
    return service.get_slot_window(counselor_id, start, end)


@router.post("", response_model=SlotView, status_code=201)
def add_slot(data: SlotCreate, service: ScheduleService = Depends(get_schedule_service)):
    return to_slot_view(service.add_slot(data))


@router.post("/recurring", response_model=RecurringScheduleResponse, status_code=201)
def generate_recurring_schedule(
    data: RecurringScheduleRequest,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Expand a weekly pattern into slots"""
    return RecurringScheduleResponse(created=service.generate_recurring_schedule(data))


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(data: BookingCreate, service: ScheduleService = Depends(get_schedule_service)):
    """Insert a booking; 409 when the counselor already holds an active booking at that time"""
    return service.create_booking(data)


@router.patch("/{slot_id}", response_model=SlotView)
def update_slot(
    slot_id: str,
    data: SlotUpdate,
    service: ScheduleService = Depends(get_schedule_service),
):
    return to_slot_view(service.update_slot(slot_id, data))


@router.delete("/{slot_id}", status_code=204)
def delete_slot(slot_id: str, service: ScheduleService = Depends(get_schedule_service)):
    service.delete_slot(slot_id)
