from datetime import date, datetime, timezone

DAY = date(2030, 1, 7)


def at(hour: int, minute: int = 0, second: int = 0, day: date = DAY) -> datetime:
    """UTC instant on ``day``"""
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=timezone.utc)
