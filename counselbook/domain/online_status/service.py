"""Online status service - Automatic and manual counselor online state"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import CounselorOnlineStatus
from ...shared.timeutils import ensure_utc, local_today, schedule_zone, slot_end_at, slot_start_at, utc_now
from ..scheduling.repository import ScheduleRepository
from .repository import OnlineStatusRepository

logger = logging.getLogger(__name__)


class OnlineStatusController:
    """
    Automatic mode: online while "now" is inside one of today's available
    slots, with auto_online_start/end spanning the first to the last of them.
    Manual mode (manual_override) freezes is_online until cleared.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OnlineStatusRepository()

    def get_status(self, counselor_id: str) -> CounselorOnlineStatus:
        status = self.repo.get_by_counselor(self.db, counselor_id)
        if not status:
            raise NotFoundError(f"No online status for counselor {counselor_id}")
        return status

    def list_statuses(self) -> list[CounselorOnlineStatus]:
        return self.repo.list_all(self.db)

    def ensure_status(self, counselor_id: str) -> CounselorOnlineStatus:
        """Get the record, creating an offline, auto-controlled one when missing"""
        status = self.repo.get_by_counselor(self.db, counselor_id)
        if status:
            return status
        logger.info(f"🆕 Creating online status record for counselor {counselor_id}")
        return self.repo.create(self.db, counselor_id=counselor_id, is_online=False, manual_override=False)

    def set_online_status(
        self, counselor_id: str, is_online: bool, manual_override: bool = True, now: Optional[datetime] = None
    ) -> CounselorOnlineStatus:
        status = self.get_status(counselor_id)
        status.is_online = is_online
        status.manual_override = manual_override
        status.last_activity = ensure_utc(now) if now else utc_now()
        if manual_override and not is_online:
            status.auto_online_start = None
            status.auto_online_end = None

        status = self.repo.save(self.db, status)
        logger.info(
            f"✅ Counselor {counselor_id} set {'online' if is_online else 'offline'}"
            f"{' (manual override)' if manual_override else ''}"
        )
        return status

    def clear_manual_override(self, counselor_id: str) -> CounselorOnlineStatus:
        """Return the counselor to automatic control; the next automation run recomputes is_online"""
        status = self.get_status(counselor_id)
        status.manual_override = False
        status = self.repo.save(self.db, status)
        logger.info(f"🔄 Manual override cleared for counselor {counselor_id}")
        return status

    def compute_auto_window(
        self, counselor_id: str, now: datetime
    ) -> tuple[bool, Optional[datetime], Optional[datetime]]:
        """
        (is_online, window_start, window_end) for today's available slots.

        The window is None when the counselor has no available slot today.
        """
        zone = schedule_zone()
        now = ensure_utc(now)
        today = local_today(now, zone)
        slots = ScheduleRepository.get_slots_for_day(self.db, counselor_id, today, available_only=True)
        if not slots:
            return False, None, None

        windows = [
            (slot_start_at(slot.date, slot.start_time, zone), slot_end_at(slot.date, slot.end_time, zone))
            for slot in slots
        ]
        is_online = any(start <= now < end for start, end in windows)
        return is_online, min(start for start, _ in windows), max(end for _, end in windows)

    def refresh_auto_status(self, counselor_id: str, now: datetime) -> bool:
        """
        Recompute an auto-controlled counselor. Returns True when a value changed.

        Overridden counselors are left untouched.
        """
        status = self.ensure_status(counselor_id)
        if status.manual_override:
            return False

        is_online, window_start, window_end = self.compute_auto_window(counselor_id, now)
        changed = (
            status.is_online != is_online
            or ensure_utc(status.auto_online_start) != window_start
            or ensure_utc(status.auto_online_end) != window_end
        )
        if not changed:
            return False

        was_online = status.is_online
        status.is_online = is_online
        status.auto_online_start = window_start
        status.auto_online_end = window_end
        status.last_activity = ensure_utc(now)
        self.repo.save(self.db, status)

        if was_online != is_online:
            logger.info(f"✅ Counselor {counselor_id} auto-switched {'online' if is_online else 'offline'}")
        return True
