import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .shared.timeutils import utc_now

# Booking statuses that occupy a slot
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")

SESSION_STATUSES = ("scheduled", "active", "completed", "cancelled", "missed")

REMINDER_TYPES = ("24h", "1h")
REMINDER_STATUSES = ("pending", "sent", "failed")


def generate_id():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    counselor = relationship("Counselor", back_populates="user", uselist=False)


class Counselor(Base):
    __tablename__ = "counselors"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    user = relationship("User", back_populates="counselor")


class CounselorSchedule(Base):
    """A counselor-declared slot of potential availability"""

    __tablename__ = "counselor_schedules"

    id = Column(String(36), primary_key=True, default=generate_id)
    counselor_id = Column(String(36), ForeignKey("counselors.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    recurring_weekly = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Booking(Base):
    """
    A user's booking with a counselor.

    Bookings carry only ``scheduled_at``, not a slot foreign key; the slot
    projection links them by timestamp tolerance. Double booking is prevented
    here by a partial unique index over active bookings.
    """

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    counselor_id = Column(String(36), ForeignKey("counselors.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    service_type = Column(String(50), nullable=True)  # single, monthly, chat
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, confirmed, completed, cancelled
    amount = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index(
            "uq_bookings_active_counselor_time",
            "counselor_id",
            "scheduled_at",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
    )


class ChatSession(Base):
    """The realized session of a booking; see domain.sessions.lifecycle for transitions"""

    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, unique=True)
    counselor_id = Column(String(36), ForeignKey("counselors.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    scheduled_start = Column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_end = Column(DateTime(timezone=True), nullable=False)
    actual_start = Column(DateTime(timezone=True), nullable=True)
    actual_end = Column(DateTime(timezone=True), nullable=True)
    # Status workflow: scheduled → active → completed, scheduled/active → cancelled, scheduled → missed
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    auto_started = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class CounselorOnlineStatus(Base):
    __tablename__ = "counselor_online_status"

    id = Column(String(36), primary_key=True, default=generate_id)
    counselor_id = Column(String(36), ForeignKey("counselors.id"), nullable=False, unique=True)
    is_online = Column(Boolean, default=False, nullable=False)
    last_activity = Column(DateTime(timezone=True), default=utc_now)
    auto_online_start = Column(DateTime(timezone=True), nullable=True)
    auto_online_end = Column(DateTime(timezone=True), nullable=True)
    manual_override = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class ReminderJob(Base):
    __tablename__ = "reminder_jobs"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    reminder_type = Column(String(10), nullable=False)  # 24h, 1h
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, sent, failed
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (UniqueConstraint("booking_id", "reminder_type", name="uq_reminder_booking_type"),)
