"""Daily rollup job: pre-aggregates closed days of raw visits into summaries.

Walks forward from the earliest visit, one UTC day at a time, and builds a
summary for every day that has no global rollup yet. The current UTC day
is never rolled up; reports read it live from the visits table.

Writes are upserts keyed on (scope, period, date), so re-running is
harmless. The global row for a day is written after all per-URL rows, which
makes it the "day done" marker: a run that dies half way leaves no global
row and the next run redoes the whole day.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any
from urllib.parse import urlsplit

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clickstats.core.config import settings
from clickstats.core.timeutils import ONE_DAY, Clock, ensure_utc, start_of_day, utc_now
from clickstats.models.rollup import GLOBAL_SCOPE, PERIOD_DAILY, AnalyticsRollup, scope_key_for
from clickstats.models.visit import Visit
from clickstats.schemas.rollup import (
    BrowserBucket,
    CountryBucket,
    DeviceBucket,
    HourBucket,
    ReferrerBucket,
    RollupSummary,
)
from clickstats.services.buckets import (
    UNIQUE_VISITS,
    VISITS,
    BucketMap,
    grouped_visits,
    to_group_counts,
)

logger = logging.getLogger(__name__)

_UPSERT_KEY = ("scope_key", "period", "date")


def extract_domain(referer: str | None) -> str:
    """Hostname of a stored referer; visits normally already hold just the host."""
    if not referer or referer == "direct":
        return "direct"
    try:
        return urlsplit(referer).hostname or referer
    except ValueError:
        return referer


class RollupAggregator:
    """Builds daily ``AnalyticsRollup`` rows from the ``visits`` table.

    Holds a session factory rather than a session: the grouping queries for
    one scope fan out concurrently and each needs its own connection.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        now: Clock = utc_now,
        referrer_limit: int | None = None,
    ):
        self.session_factory = session_factory
        self.now = now
        self.referrer_limit = referrer_limit or settings.REFERRER_TOP_N
        self._running = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    async def run(self) -> int:
        """Aggregate every pending day. Returns the number of days aggregated.

        A trigger that arrives while a run is still in progress is dropped.
        Errors are logged and re-raised; nothing is retried here.
        """
        if self._running.locked():
            logger.warning("Rollup already in progress, skipping this trigger")
            return 0

        async with self._running:
            started = time.monotonic()
            logger.info("Starting daily rollup")
            try:
                days = await self.aggregate_pending_days()
            except Exception:
                logger.exception("Daily rollup failed")
                raise
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.info("Daily rollup completed in %.0fms, aggregated %d days", elapsed_ms, days)
            return days

    async def aggregate_pending_days(self) -> int:
        today = start_of_day(self.now())

        earliest = await self._scalar(select(func.min(Visit.visited_at)))
        if earliest is None:
            logger.info("No visits found, nothing to aggregate")
            return 0

        days = 0
        day = start_of_day(earliest)
        while day < today:
            if not await self._has_global_rollup(day):
                await self.aggregate_day(day)
                days += 1
            day += ONE_DAY
        return days

    async def aggregate_day(self, day: datetime) -> None:
        """(Re)build every summary for one UTC day, one scope at a time."""
        day = start_of_day(day)
        logger.info("Aggregating %s", day.date().isoformat())

        url_ids = [
            row[0]
            for row in await self._fetch(
                select(distinct(Visit.url_id))
                .where(Visit.visited_at >= day, Visit.visited_at < day + ONE_DAY)
                .order_by(Visit.url_id)
            )
        ]

        for url_id in url_ids:
            await self.write_summary(await self.summarize(url_id, day))

        await self.write_summary(await self.summarize(None, day))
        logger.info("Aggregated %s: %d url scopes", day.date().isoformat(), len(url_ids))

    async def summarize(self, url_id: int | None, day: datetime) -> RollupSummary:
        """Compute the summary for one scope and day. ``url_id=None`` is global."""
        conditions = [Visit.visited_at >= day, Visit.visited_at < day + ONE_DAY]
        if url_id is not None:
            conditions.append(Visit.url_id == url_id)

        try:
            async with asyncio.TaskGroup() as tg:
                queries = [
                    tg.create_task(self._fetch(stmt))
                    for stmt in (
                        select(VISITS, UNIQUE_VISITS).where(*conditions),
                        grouped_visits(func.coalesce(Visit.country, "Unknown"), *conditions),
                        grouped_visits(func.coalesce(Visit.device_type, "unknown"), *conditions),
                        grouped_visits(func.coalesce(Visit.browser_name, "Unknown"), *conditions),
                        grouped_visits(Visit.hour, *conditions, by_key=True),
                        grouped_visits(func.coalesce(Visit.referer, "direct"), *conditions).limit(
                            self.referrer_limit
                        ),
                    )
                ]
        except ExceptionGroup as group:
            # The remaining queries are cancelled; surface the first failure
            raise group.exceptions[0] from None

        totals, countries, devices, browsers, hours, referrers = (q.result() for q in queries)

        total_visits, unique_visits = (int(totals[0][0] or 0), int(totals[0][1] or 0))

        referrer_map = BucketMap()
        for count in to_group_counts(referrers):
            referrer_map.add(extract_domain(count.key), count.visits, count.unique_visits)

        return RollupSummary(
            url_id=url_id,
            date=day,
            total_visits=total_visits,
            unique_visits=unique_visits,
            countries=[
                CountryBucket(country=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in to_group_counts(countries, "Unknown")
            ],
            devices=[
                DeviceBucket(type=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in to_group_counts(devices, "unknown")
            ],
            browsers=[
                BrowserBucket(name=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in to_group_counts(browsers, "Unknown")
            ],
            hourly_breakdown=[
                HourBucket(hour=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in to_group_counts(hours)
            ],
            referrers=[
                ReferrerBucket(domain=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in referrer_map.ranked()
            ],
        )

    async def write_summary(self, summary: RollupSummary) -> None:
        """Insert or wholesale-replace the row for (scope, 'daily', date)."""
        values: dict[str, Any] = {
            "scope_key": scope_key_for(summary.url_id),
            "url_id": summary.url_id,
            "period": PERIOD_DAILY,
            "date": summary.date,
            "total_visits": summary.total_visits,
            "unique_visits": summary.unique_visits,
            "countries": [b.model_dump() for b in summary.countries],
            "devices": [b.model_dump() for b in summary.devices],
            "browsers": [b.model_dump() for b in summary.browsers],
            "hourly_breakdown": [b.model_dump() for b in summary.hourly_breakdown],
            "referrers": [b.model_dump() for b in summary.referrers],
        }

        async with self.session_factory() as session:
            is_sqlite = session.get_bind().dialect.name == "sqlite"
            insert = sqlite_insert if is_sqlite else pg_insert
            stmt = insert(AnalyticsRollup).values(**values)
            replaced = {k: stmt.excluded[k] for k in values if k not in _UPSERT_KEY}
            replaced["updated_at"] = func.now()
            stmt = stmt.on_conflict_do_update(index_elements=list(_UPSERT_KEY), set_=replaced)
            await session.execute(stmt)
            await session.commit()

    async def _has_global_rollup(self, day: datetime) -> bool:
        found = await self._scalar(
            select(AnalyticsRollup.id).where(
                AnalyticsRollup.scope_key == GLOBAL_SCOPE,
                AnalyticsRollup.period == PERIOD_DAILY,
                AnalyticsRollup.date == day,
            )
        )
        return found is not None

    async def _fetch(self, stmt: Select) -> list[Any]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.all())

    async def _scalar(self, stmt: Select) -> Any:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            value = result.scalars().first()
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value
