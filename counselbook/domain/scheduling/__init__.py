"""
Scheduling domain
Counselor slots, the booked/unbooked projection and its realtime upkeep
"""

from .live import LiveSchedule
from .optimistic import OptimisticUpdateLayer
from .projector import AvailabilityProjector, SlotProjection, load_slot_window, project_slots
from .reconciler import RealtimeReconciler

__all__ = [
    "AvailabilityProjector",
    "LiveSchedule",
    "OptimisticUpdateLayer",
    "RealtimeReconciler",
    "SlotProjection",
    "load_slot_window",
    "project_slots",
]
