"""Reminder domain"""

from .notifier import ReminderNotifier
from .service import ReminderScheduler

__all__ = ["ReminderNotifier", "ReminderScheduler"]
