"""
Chat session lifecycle
scheduled → active → completed
scheduled → cancelled, active → cancelled
scheduled → missed (the whole window elapsed without the session starting)
"""

import logging
from datetime import datetime
from typing import Optional

from ...errors import InvalidTransitionError, ValidationError
from ...models import SESSION_STATUSES, ChatSession

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "scheduled": ["active", "cancelled", "missed"],
    "active": ["completed", "cancelled"],
    "completed": [],  # Terminal state
    "cancelled": [],  # Terminal state
    "missed": [],  # Terminal state
}


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if a session status transition is allowed

    Returns:
        bool: True if transition is valid (re-applying the current status counts as valid)
    """
    if current_status == new_status:
        return True
    return new_status in ALLOWED_TRANSITIONS.get(current_status, [])


def apply_transition(
    session: ChatSession,
    new_status: str,
    now: datetime,
    automated: bool = False,
    notes: Optional[str] = None,
) -> bool:
    """
    Move ``session`` to ``new_status`` in memory; the caller commits.

    Returns False when the session already has that status.

    Raises:
        ValidationError: Unknown status
        InvalidTransitionError: The graph has no such edge
    """
    if new_status not in SESSION_STATUSES:
        raise ValidationError(f"Unknown session status: {new_status!r}")
    if session.status == new_status:
        return False
    if not validate_status_transition(session.status, new_status):
        raise InvalidTransitionError(session.status, new_status)

    previous = session.status
    session.status = new_status
    if new_status == "active":
        session.actual_start = now
        session.auto_started = automated
    elif new_status in ("completed", "cancelled"):
        session.actual_end = now
    if notes is not None:
        session.notes = notes

    logger.info(f"✅ Session {session.id} transitioned: {previous} → {new_status}{' (auto)' if automated else ''}")
    return True
