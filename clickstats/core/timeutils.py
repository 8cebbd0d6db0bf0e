from collections.abc import Callable
from datetime import datetime, timedelta, timezone

Clock = Callable[[], datetime]

ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    """Return UTC midnight of the day containing ``value``."""
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
