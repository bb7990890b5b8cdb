import os

# Slot wall-clock times in these tests are UTC; no Redis during tests
os.environ["SCHEDULE_TIMEZONE"] = "UTC"
os.environ.pop("REDIS_URL", None)
os.environ.pop("REDIS_HOST", None)

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from counselbook.database import Base  # noqa: E402
from counselbook.models import (  # noqa: E402
    Booking,
    ChatSession,
    Counselor,
    CounselorOnlineStatus,
    CounselorSchedule,
    ReminderJob,
    User,
)
from counselbook.realtime import ChangeFeed  # noqa: E402
from counselbook.run_guard import RunGuard  # noqa: E402

from .helpers import DAY  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def feed(session_factory):
    feed = ChangeFeed()
    detach = feed.attach(session_factory)
    yield feed
    detach()


@pytest.fixture
def guard():
    return RunGuard()


class Seed:
    """Row builders committed through one session"""

    def __init__(self, db):
        self.db = db
        self._emails = 0

    def _add(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, name="Client"):
        self._emails += 1
        return self._add(User(name=name, email=f"user{self._emails}@example.com"))

    def counselor(self, name="Counselor"):
        user = self.user(name)
        return self._add(Counselor(user_id=user.id))

    def slot(self, counselor, start, end, day=DAY, is_available=True):
        return self._add(
            CounselorSchedule(
                counselor_id=counselor.id,
                date=day,
                start_time=start,
                end_time=end,
                is_available=is_available,
            )
        )

    def booking(self, counselor, user, scheduled_at, status="pending", service_type="single"):
        return self._add(
            Booking(
                counselor_id=counselor.id,
                user_id=user.id,
                scheduled_at=scheduled_at,
                status=status,
                service_type=service_type,
            )
        )

    def session(self, booking, start, end, status="scheduled"):
        return self._add(
            ChatSession(
                booking_id=booking.id,
                counselor_id=booking.counselor_id,
                user_id=booking.user_id,
                scheduled_start=start,
                scheduled_end=end,
                status=status,
            )
        )

    def online_status(self, counselor, is_online=False, manual_override=False):
        return self._add(
            CounselorOnlineStatus(counselor_id=counselor.id, is_online=is_online, manual_override=manual_override)
        )

    def reminder(self, booking, scheduled_at, reminder_type="24h", status="pending"):
        return self._add(
            ReminderJob(
                booking_id=booking.id,
                reminder_type=reminder_type,
                scheduled_at=scheduled_at,
                status=status,
            )
        )


@pytest.fixture
def seed(db):
    return Seed(db)
