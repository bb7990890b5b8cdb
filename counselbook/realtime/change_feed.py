"""
In-process change feed
Publishes committed INSERT/UPDATE/DELETE of ORM rows to subscribers keyed by
table name and an optional row filter
"""

import itertools
import logging
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ..shared.timeutils import utc_now

logger = logging.getLogger(__name__)

PENDING_CHANGES_KEY = "counselbook_pending_changes"
DELETED_IMAGES_KEY = "counselbook_deleted_images"


class ChangeEvent(BaseModel):
    """One committed row change: ``old`` is None for INSERT, ``new`` is None for DELETE"""

    operation: Literal["INSERT", "UPDATE", "DELETE"]
    table: str
    old: Optional[dict[str, Any]] = None
    new: Optional[dict[str, Any]] = None
    committed_at: datetime = Field(default_factory=utc_now)

    @property
    def row(self) -> dict[str, Any]:
        """The most recent image of the row"""
        return self.new if self.new is not None else (self.old or {})


def row_to_dict(obj) -> dict[str, Any]:
    """Column values of a mapped object keyed by column name"""
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


def primary_key_dict(obj) -> dict[str, Any]:
    keys = [column.key for column in obj.__table__.primary_key.columns]
    return dict(zip(keys, inspect(obj).identity or ()))


def previous_row_to_dict(obj) -> dict[str, Any]:
    """Column values before the pending flush (uses attribute history)"""
    state = inspect(obj)
    previous = {}
    for column in obj.__table__.columns:
        history = state.attrs[column.key].history
        if history.deleted:
            previous[column.key] = history.deleted[0]
        else:
            previous[column.key] = getattr(obj, column.key)
    return previous


class Subscription:
    def __init__(self, subscription_id: int, table: str, callback: Callable[[ChangeEvent], None], row_filter):
        self.id = subscription_id
        self.table = table
        self.callback = callback
        self.row_filter = dict(row_filter or {})

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if not self.row_filter:
            return True
        # An UPDATE that moves a row out of the filter is still delivered
        for image in (change.new, change.old):
            if image and all(image.get(key) == value for key, value in self.row_filter.items()):
                return True
        return False


class ChangeFeed:
    """
    Fan-out of committed row changes.

    ``subscribe`` returns an unsubscribe handle. Delivery happens on the
    thread that committed the change; a failing subscriber is logged and
    does not prevent delivery to the others.
    """

    def __init__(self):
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        row_filter: Optional[dict[str, Any]] = None,
    ) -> Callable[[], None]:
        with self._lock:
            subscription = Subscription(next(self._ids), table, callback, row_filter)
            self._subscriptions[subscription.id] = subscription
        logger.debug(f"📡 Subscribed #{subscription.id} to {table} (filter={subscription.row_filter})")

        def unsubscribe() -> None:
            with self._lock:
                removed = self._subscriptions.pop(subscription.id, None)
            if removed:
                logger.debug(f"📴 Unsubscribed #{subscription.id} from {table}")

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, change: ChangeEvent) -> int:
        """Deliver a change to every matching subscriber; returns the delivery count"""
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(change)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.callback(change)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"❌ Change-feed subscriber #{subscription.id} failed on "
                    f"{change.operation} {change.table}: {e}"
                )
        return delivered

    # ------------------------------------------------------------------
    # SQLAlchemy integration
    # ------------------------------------------------------------------

    def attach(self, session_factory) -> Callable[[], None]:
        """
        Capture changes flushed by sessions from ``session_factory`` and
        publish them once the transaction commits. Rolled-back changes are
        dropped. Returns a detach handle.

        Bulk ``Query.update()``/``Query.delete()`` bypass the unit of work and
        are not captured.
        """

        def before_flush(session: Session, _flush_context, _instances):
            # Deleted rows must be read while they still exist
            images = session.info.setdefault(DELETED_IMAGES_KEY, {})
            with session.no_autoflush:
                for obj in session.deleted:
                    images[id(obj)] = row_to_dict(obj)

        def after_flush(session: Session, _flush_context):
            pending = session.info.setdefault(PENDING_CHANGES_KEY, [])
            deleted_images = session.info.pop(DELETED_IMAGES_KEY, {})
            with session.no_autoflush:
                for obj in session.new:
                    pending.append(ChangeEvent(operation="INSERT", table=obj.__tablename__, new=row_to_dict(obj)))
                for obj in session.dirty:
                    if session.is_modified(obj, include_collections=False):
                        pending.append(
                            ChangeEvent(
                                operation="UPDATE",
                                table=obj.__tablename__,
                                old=previous_row_to_dict(obj),
                                new=row_to_dict(obj),
                            )
                        )
                for obj in session.deleted:
                    old = deleted_images.get(id(obj)) or primary_key_dict(obj)
                    pending.append(ChangeEvent(operation="DELETE", table=obj.__tablename__, old=old))

        def after_commit(session: Session):
            pending = session.info.pop(PENDING_CHANGES_KEY, [])
            for change in pending:
                self.publish(change)

        def after_rollback(session: Session):
            session.info.pop(DELETED_IMAGES_KEY, None)
            dropped = session.info.pop(PENDING_CHANGES_KEY, [])
            if dropped:
                logger.debug(f"↩️ Dropped {len(dropped)} uncommitted change(s) after rollback")

        event.listen(session_factory, "before_flush", before_flush)
        event.listen(session_factory, "after_flush", after_flush)
        event.listen(session_factory, "after_commit", after_commit)
        event.listen(session_factory, "after_rollback", after_rollback)
        logger.info("✅ Change feed attached to session factory")

        def detach() -> None:
            event.remove(session_factory, "before_flush", before_flush)
            event.remove(session_factory, "after_flush", after_flush)
            event.remove(session_factory, "after_commit", after_commit)
            event.remove(session_factory, "after_rollback", after_rollback)

        return detach


# Process-wide feed attached to SessionLocal by the application lifespan
change_feed = ChangeFeed()
