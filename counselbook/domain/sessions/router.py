"""Session router - FastAPI endpoints for chat sessions"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import SessionResponse, SessionStatusUpdate
from .service import SessionLifecycleController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def get_session_controller(db: Session = Depends(get_db)) -> SessionLifecycleController:
    """Dependency injection for SessionLifecycleController"""
    return SessionLifecycleController(db)


@router.get("", response_model=list[SessionResponse])
def get_sessions(
    counselor_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    controller: SessionLifecycleController = Depends(get_session_controller),
):
    """Sessions newest first"""
    return controller.get_sessions(counselor_id, user_id)


@router.get("/today", response_model=list[SessionResponse])
def get_today_sessions(
    counselor_id: Optional[str] = Query(None),
    controller: SessionLifecycleController = Depends(get_session_controller),
):
    return controller.get_today_sessions(counselor_id)


@router.patch("/{session_id}/status", response_model=SessionResponse)
def update_session_status(
    session_id: str,
    data: SessionStatusUpdate,
    controller: SessionLifecycleController = Depends(get_session_controller),
):
    """Manual status change; illegal transitions return 400"""
    return controller.update_session_status(session_id, data.status, data.notes)
