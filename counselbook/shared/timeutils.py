"""Timezone helpers shared by the projection, online-status and reminder code"""

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import SCHEDULE_TIMEZONE


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the store as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@lru_cache(maxsize=8)
def schedule_zone(name: str = SCHEDULE_TIMEZONE) -> ZoneInfo:
    return ZoneInfo(name)


def slot_start_at(slot_date: date, start_time: time, zone: Optional[ZoneInfo] = None) -> datetime:
    """Combine a slot's wall-clock date and start time into an aware UTC instant"""
    zone = zone or schedule_zone()
    return datetime.combine(slot_date, start_time, tzinfo=zone).astimezone(timezone.utc)


def slot_end_at(slot_date: date, end_time: time, zone: Optional[ZoneInfo] = None) -> datetime:
    zone = zone or schedule_zone()
    return datetime.combine(slot_date, end_time, tzinfo=zone).astimezone(timezone.utc)


def local_today(now: datetime, zone: Optional[ZoneInfo] = None) -> date:
    """The schedule-local calendar date that contains ``now``"""
    zone = zone or schedule_zone()
    return ensure_utc(now).astimezone(zone).date()


def day_bounds(day: date, zone: Optional[ZoneInfo] = None) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at the start of ``day`` and of the next day"""
    zone = zone or schedule_zone()
    start = datetime.combine(day, time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), (start + timedelta(days=1)).astimezone(timezone.utc)
