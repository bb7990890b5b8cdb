import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./counselbook.db")

# Slot dates and start times are wall-clock values in this zone
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "UTC")

# Bookings carry only a timestamp, so they are matched to slots within this tolerance
BOOKING_MATCH_TOLERANCE_SECONDS = int(os.getenv("BOOKING_MATCH_TOLERANCE_SECONDS", "60"))

# Projection window used when the caller does not pass one
DEFAULT_WINDOW_DAYS = int(os.getenv("DEFAULT_WINDOW_DAYS", "30"))

# Length of a chat session created from a booking
DEFAULT_SESSION_MINUTES = int(os.getenv("DEFAULT_SESSION_MINUTES", "60"))

# Sent/failed reminder jobs older than this are removed by cleanup
REMINDER_RETENTION_DAYS = int(os.getenv("REMINDER_RETENTION_DAYS", "3"))

# Outbound notification endpoint that renders and delivers reminder e-mails
REMINDER_WEBHOOK_URL = os.getenv("REMINDER_WEBHOOK_URL", "http://localhost:8888/notifications/reminder")
REMINDER_WEBHOOK_SECRET = os.getenv("REMINDER_WEBHOOK_SECRET")
REMINDER_HTTP_TIMEOUT = float(os.getenv("REMINDER_HTTP_TIMEOUT", "30.0"))

# Batch run guard (redis lock when REDIS_URL/REDIS_HOST is set, in-process lock otherwise)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST")
RUN_GUARD_TTL_SECONDS = int(os.getenv("RUN_GUARD_TTL_SECONDS", "300"))

# Interval used by the standalone automation loop
AUTOMATION_INTERVAL_SECONDS = int(os.getenv("AUTOMATION_INTERVAL_SECONDS", "60"))

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
