"""Online status router - FastAPI endpoints for counselor online state"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import OnlineStatusResponse, OnlineStatusUpdate
from .service import OnlineStatusController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/online-status", tags=["Online Status"])


def get_online_status_controller(db: Session = Depends(get_db)) -> OnlineStatusController:
    """Dependency injection for OnlineStatusController"""
    return OnlineStatusController(db)


@router.get("", response_model=list[OnlineStatusResponse])
def list_online_statuses(controller: OnlineStatusController = Depends(get_online_status_controller)):
    return controller.list_statuses()


@router.get("/{counselor_id}", response_model=OnlineStatusResponse)
def get_online_status(
    counselor_id: str,
    controller: OnlineStatusController = Depends(get_online_status_controller),
):
    return controller.get_status(counselor_id)


@router.put("/{counselor_id}", response_model=OnlineStatusResponse)
def set_online_status(
    counselor_id: str,
    data: OnlineStatusUpdate,
    controller: OnlineStatusController = Depends(get_online_status_controller),
):
    """Manually switch a counselor online or offline"""
    return controller.set_online_status(counselor_id, data.isOnline, data.manualOverride)


@router.delete("/{counselor_id}/override", response_model=OnlineStatusResponse)
def clear_manual_override(
    counselor_id: str,
    controller: OnlineStatusController = Depends(get_online_status_controller),
):
    """Hand the counselor back to automatic control"""
    return controller.clear_manual_override(counselor_id)
