"""
Automation Background Worker
Plain asyncio loop for deployments without an ARQ worker: status automation
every interval, reminder dispatch every fifth interval
"""

import asyncio
import logging
from typing import Optional

from ..config import AUTOMATION_INTERVAL_SECONDS
from ..database import SessionLocal
from ..domain.reminders.service import ReminderScheduler
from ..services.status_automation import process_auto_online_status

logger = logging.getLogger(__name__)

REMINDER_EVERY_N_TICKS = 5


async def run_status_automation(session_factory=SessionLocal) -> Optional[dict]:
    db = session_factory()
    try:
        return await asyncio.to_thread(process_auto_online_status, db)
    except Exception as e:
        logger.error(f"❌ Error in status automation: {e}")
        return None
    finally:
        db.close()


async def run_reminders(session_factory=SessionLocal) -> Optional[dict]:
    db = session_factory()
    try:
        return await ReminderScheduler(db).process_reminder_jobs()
    except Exception as e:
        logger.error(f"❌ Error processing reminders: {e}")
        return None
    finally:
        db.close()


async def run_automation_worker(
    interval: int = AUTOMATION_INTERVAL_SECONDS,
    stop_event: Optional[asyncio.Event] = None,
    session_factory=SessionLocal,
):
    """
    Main worker loop - runs every ``interval`` seconds until ``stop_event`` is set
    """
    logger.info(f"🚀 Starting automation worker (interval {interval}s)...")
    stop_event = stop_event or asyncio.Event()
    tick = 0

    while not stop_event.is_set():
        await run_status_automation(session_factory)
        if tick % REMINDER_EVERY_N_TICKS == 0:
            await run_reminders(session_factory)
        tick += 1

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("👋 Automation worker stopped")
