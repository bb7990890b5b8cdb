"""Session repository - Database operations for chat sessions"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...database import store_errors
from ...models import ChatSession


class SessionRepository:
    """Repository for chat session database operations"""

    @staticmethod
    def get_session_by_id(db: Session, session_id: str) -> Optional[ChatSession]:
        with store_errors("loading session"):
            return db.query(ChatSession).filter(ChatSession.id == session_id).first()

    @staticmethod
    def get_session_by_booking(db: Session, booking_id: str) -> Optional[ChatSession]:
        with store_errors("loading session by booking"):
            return db.query(ChatSession).filter(ChatSession.booking_id == booking_id).first()

    @staticmethod
    def get_sessions(
        db: Session, counselor_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> list[ChatSession]:
        """Sessions newest first"""
        with store_errors("loading sessions"):
            query = db.query(ChatSession)
            if counselor_id:
                query = query.filter(ChatSession.counselor_id == counselor_id)
            if user_id:
                query = query.filter(ChatSession.user_id == user_id)
            return query.order_by(ChatSession.scheduled_start.desc()).all()

    @staticmethod
    def get_sessions_starting_between(
        db: Session,
        start: datetime,
        end: datetime,
        statuses: tuple[str, ...],
        counselor_id: Optional[str] = None,
    ) -> list[ChatSession]:
        """Sessions with scheduled_start in [start, end), ascending"""
        with store_errors("loading sessions in range"):
            query = db.query(ChatSession).filter(
                ChatSession.scheduled_start >= start,
                ChatSession.scheduled_start < end,
                ChatSession.status.in_(statuses),
            )
            if counselor_id:
                query = query.filter(ChatSession.counselor_id == counselor_id)
            return query.order_by(ChatSession.scheduled_start.asc()).all()

    @staticmethod
    def get_sessions_to_start(db: Session, now: datetime) -> list[ChatSession]:
        """Scheduled sessions whose window contains ``now``"""
        with store_errors("loading sessions to start"):
            return (
                db.query(ChatSession)
                .filter(
                    ChatSession.status == "scheduled",
                    ChatSession.scheduled_start <= now,
                    ChatSession.scheduled_end > now,
                )
                .all()
            )

    @staticmethod
    def get_sessions_elapsed(db: Session, now: datetime, status: str) -> list[ChatSession]:
        """Sessions in ``status`` whose window has fully elapsed"""
        with store_errors("loading elapsed sessions"):
            return (
                db.query(ChatSession)
                .filter(ChatSession.status == status, ChatSession.scheduled_end <= now)
                .all()
            )

    @staticmethod
    def create_session(db: Session, **session_data) -> ChatSession:
        session = ChatSession(**session_data)
        with store_errors("creating session"):
            db.add(session)
            db.commit()
            db.refresh(session)
        return session

    @staticmethod
    def save(db: Session, session: ChatSession) -> ChatSession:
        with store_errors("saving session"):
            db.commit()
            db.refresh(session)
        return session
