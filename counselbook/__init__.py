"""counselbook - availability and session lifecycle engine for counseling bookings"""

__version__ = "1.0.0"
