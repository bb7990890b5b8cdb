"""
Engine error taxonomy
Raised by repositories and services, mapped to HTTP responses in main.py
"""


class EngineError(Exception):
    """Base class for all engine errors"""


class ValidationError(EngineError):
    """Malformed input (unknown status, bad time range, unknown slot field)"""


class InvalidTransitionError(ValidationError):
    """Session status change that the lifecycle graph does not allow"""

    def __init__(self, current_status: str, new_status: str):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Invalid session transition: {current_status} → {new_status}")


class BookingConflictError(ValidationError):
    """An active booking already exists for the counselor at that time"""


class NotFoundError(EngineError):
    """A lookup row is missing (session, slot, online-status record, booking)"""


class TransientIOError(EngineError):
    """Store or network failure; the operation can be retried"""


class DispatchError(EngineError):
    """Reminder notification could not be delivered"""
