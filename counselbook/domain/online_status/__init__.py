"""Counselor online status domain"""

from .service import OnlineStatusController

__all__ = ["OnlineStatusController"]
