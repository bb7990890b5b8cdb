"""Online status repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...database import store_errors
from ...models import CounselorOnlineStatus


class OnlineStatusRepository:
    """Repository for counselor online status records"""

    @staticmethod
    def get_by_counselor(db: Session, counselor_id: str) -> Optional[CounselorOnlineStatus]:
        with store_errors("loading online status"):
            return db.query(CounselorOnlineStatus).filter(CounselorOnlineStatus.counselor_id == counselor_id).first()

    @staticmethod
    def list_all(db: Session) -> list[CounselorOnlineStatus]:
        """Most recently active first"""
        with store_errors("loading online statuses"):
            return db.query(CounselorOnlineStatus).order_by(CounselorOnlineStatus.last_activity.desc()).all()

    @staticmethod
    def get_auto_controlled_counselor_ids(db: Session) -> list[str]:
        with store_errors("loading auto-controlled counselors"):
            rows = (
                db.query(CounselorOnlineStatus.counselor_id)
                .filter(CounselorOnlineStatus.manual_override.is_(False))
                .all()
            )
            return [row[0] for row in rows]

    @staticmethod
    def create(db: Session, **status_data) -> CounselorOnlineStatus:
        status = CounselorOnlineStatus(**status_data)
        with store_errors("creating online status"):
            db.add(status)
            db.commit()
            db.refresh(status)
        return status

    @staticmethod
    def save(db: Session, status: CounselorOnlineStatus) -> CounselorOnlineStatus:
        with store_errors("saving online status"):
            db.commit()
            db.refresh(status)
        return status
