from datetime import datetime, time, timedelta, timezone

from clickstats.core.timeutils import ONE_DAY, ensure_utc, start_of_day
from clickstats.schemas.analytics import DateRangeQuery

_TRAILING_DAYS = {
    "last7days": 7,
    "last30days": 30,
    "last90days": 90,
}


def resolve_date_range(query: DateRangeQuery, now: datetime) -> tuple[datetime, datetime]:
    """Turn a report request into a half-open ``[start, end)`` window in UTC.

    An explicit ``start_date``/``end_date`` pair wins and covers both calendar
    days in full. Otherwise ``period`` is resolved relative to ``now``.
    """
    now = ensure_utc(now)

    if query.start_date and query.end_date:
        start = datetime.combine(query.start_date, time.min, tzinfo=timezone.utc)
        end = datetime.combine(query.end_date, time.min, tzinfo=timezone.utc) + ONE_DAY
        return start, end

    today = start_of_day(now)
    if query.period == "today":
        return today, now
    if query.period == "yesterday":
        return today - ONE_DAY, today
    return now - timedelta(days=_TRAILING_DAYS[query.period]), now
