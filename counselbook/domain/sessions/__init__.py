"""Chat session domain"""

from .lifecycle import ALLOWED_TRANSITIONS, validate_status_transition
from .service import SessionLifecycleController

__all__ = ["ALLOWED_TRANSITIONS", "SessionLifecycleController", "validate_status_transition"]
