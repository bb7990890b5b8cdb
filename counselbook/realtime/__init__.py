"""Realtime change propagation"""

from .change_feed import ChangeEvent, ChangeFeed, change_feed

__all__ = ["ChangeEvent", "ChangeFeed", "change_feed"]
