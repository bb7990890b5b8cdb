"""Session service - Lifecycle changes and session queries"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_SESSION_MINUTES
from ...errors import NotFoundError
from ...models import Booking, ChatSession
from ...shared.timeutils import day_bounds, ensure_utc, local_today, utc_now
from .lifecycle import apply_transition
from .repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionLifecycleController:
    """Service layer for chat session state changes"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SessionRepository()

    def get_session(self, session_id: str) -> ChatSession:
        session = self.repo.get_session_by_id(self.db, session_id)
        if not session:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def get_sessions(self, counselor_id: Optional[str] = None, user_id: Optional[str] = None) -> list[ChatSession]:
        return self.repo.get_sessions(self.db, counselor_id, user_id)

    def get_today_sessions(self, counselor_id: Optional[str] = None, now: Optional[datetime] = None) -> list[ChatSession]:
        """Scheduled and active sessions starting today (schedule timezone), earliest first"""
        day_start, day_end = day_bounds(local_today(now or utc_now()))
        return self.repo.get_sessions_starting_between(
            self.db, day_start, day_end, ("scheduled", "active"), counselor_id
        )

    def update_session_status(
        self,
        session_id: str,
        new_status: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        automated: bool = False,
    ) -> ChatSession:
        """
        Apply a lifecycle transition and persist it.

        Raises:
            NotFoundError: No such session
            ValidationError: Unknown status
            InvalidTransitionError: Transition not in the lifecycle graph
        """
        session = self.get_session(session_id)
        changed = apply_transition(session, new_status, ensure_utc(now) if now else utc_now(), automated, notes)
        if not changed:
            logger.debug(f"Session {session_id} already {new_status}")
            return session
        return self.repo.save(self.db, session)

    def create_session_for_booking(self, booking: Booking, duration: Optional[timedelta] = None) -> ChatSession:
        """Create the scheduled session that realizes a booking (one per booking)"""
        existing = self.repo.get_session_by_booking(self.db, booking.id)
        if existing:
            return existing

        start = ensure_utc(booking.scheduled_at)
        duration = duration or timedelta(minutes=DEFAULT_SESSION_MINUTES)
        session = self.repo.create_session(
            self.db,
            booking_id=booking.id,
            counselor_id=booking.counselor_id,
            user_id=booking.user_id,
            scheduled_start=start,
            scheduled_end=start + duration,
            status="scheduled",
        )
        logger.info(f"✅ Session {session.id} scheduled for booking {booking.id}")
        return session
