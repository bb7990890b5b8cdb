"""
Automated counselor online status and chat session transitions
Recomputes auto-controlled online status from today's slots
Handles scheduled → active, active → completed and scheduled → missed for sessions
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.online_status.repository import OnlineStatusRepository
from ..domain.online_status.service import OnlineStatusController
from ..domain.scheduling.repository import ScheduleRepository
from ..domain.sessions.lifecycle import apply_transition
from ..domain.sessions.repository import SessionRepository
from ..run_guard import RunGuard, get_run_guard
from ..shared.timeutils import ensure_utc, local_today, utc_now

logger = logging.getLogger(__name__)


def _advance_sessions(db: Session, sessions, new_status: str, now: datetime, summary: dict, counter: str) -> None:
    for session in sessions:
        try:
            apply_transition(session, new_status, now, automated=True)
            SessionRepository.save(db, session)
            summary[counter] += 1
        except Exception as e:
            db.rollback()
            summary["errors"].append(f"Session {session.id} → {new_status}: {e}")
            logger.error(f"❌ Failed to move session {session.id} to {new_status}: {e}")


def process_auto_online_status(
    db: Session, now: Optional[datetime] = None, guard: Optional[RunGuard] = None
) -> dict:
    """
    Update counselor online status and session statuses based on the clock
    Should be run as a scheduled job (every minute)

    Counselor online status: auto-controlled counselors are online while now
    falls inside one of today's available slots
    Session statuses: scheduled → active → completed, scheduled → missed

    Returns:
        dict: Summary of changes made; an immediate re-run reports none
    """
    summary = {
        "online_changed": 0,
        "sessions_started": 0,
        "sessions_completed": 0,
        "sessions_missed": 0,
        "errors": [],
        "skipped": False,
    }

    guard = guard or get_run_guard()
    with guard.hold("auto_online") as acquired:
        if not acquired:
            summary["skipped"] = True
            return summary

        now = ensure_utc(now) if now else utc_now()
        logger.info(f"🔄 Running status automation at {now.isoformat()}")

        # 1. Recompute online status for counselors with a record or a slot today
        try:
            counselor_ids = set(OnlineStatusRepository.get_auto_controlled_counselor_ids(db))
            counselor_ids.update(ScheduleRepository.get_counselor_ids_with_slots_on(db, local_today(now)))
        except Exception as e:
            db.rollback()
            counselor_ids = set()
            summary["errors"].append(f"Loading counselors: {e}")
            logger.error(f"❌ Failed to load counselors for status automation: {e}")

        controller = OnlineStatusController(db)
        for counselor_id in sorted(counselor_ids):
            try:
                if controller.refresh_auto_status(counselor_id, now):
                    summary["online_changed"] += 1
            except Exception as e:
                db.rollback()
                summary["errors"].append(f"Counselor {counselor_id}: {e}")
                logger.error(f"❌ Failed to update online status for counselor {counselor_id}: {e}")

        # 2. SCHEDULED → ACTIVE (window has begun), 3. ACTIVE → COMPLETED, 4. SCHEDULED → MISSED
        steps = (
            (lambda: SessionRepository.get_sessions_to_start(db, now), "active", "sessions_started"),
            (lambda: SessionRepository.get_sessions_elapsed(db, now, "active"), "completed", "sessions_completed"),
            (lambda: SessionRepository.get_sessions_elapsed(db, now, "scheduled"), "missed", "sessions_missed"),
        )
        for load, new_status, counter in steps:
            try:
                sessions = load()
            except Exception as e:
                db.rollback()
                summary["errors"].append(f"Loading sessions for {new_status}: {e}")
                logger.error(f"❌ Failed to load sessions for {new_status}: {e}")
                continue
            _advance_sessions(db, sessions, new_status, now, summary, counter)

    total = summary["online_changed"] + summary["sessions_started"] + summary["sessions_completed"] + summary["sessions_missed"]
    if total > 0 or summary["errors"]:
        logger.info(f"📊 Status automation summary: {summary}")
    else:
        logger.debug("ℹ️ No online/session status updates needed")
    return summary
