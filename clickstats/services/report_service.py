import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.core.exceptions import NotFoundError
from clickstats.core.timeutils import Clock, ensure_utc, start_of_day, utc_now
from clickstats.models.rollup import PERIOD_DAILY, AnalyticsRollup
from clickstats.models.url import ShortUrl
from clickstats.models.visit import Visit
from clickstats.schemas.analytics import (
    BrowserStat,
    CountryStat,
    DailyPattern,
    DailyStat,
    DateRangeQuery,
    DeviceAnalytics,
    DeviceStat,
    HourlyPattern,
    MobileDeviceStat,
    OverviewStats,
    TimePatternAnalytics,
    UrlAnalytics,
    UrlSummary,
    VisitTotals,
)
from clickstats.services.buckets import (
    UNIQUE_VISITS,
    VISITS,
    BucketMap,
    from_breakdown,
    grouped_visits,
    percentage,
    to_group_counts,
    with_percentages,
)
from clickstats.services.date_range import resolve_date_range

logger = logging.getLogger(__name__)

MOBILE_DEVICE_TYPES = ("mobile", "tablet")
TOP_COUNTRIES = 10
TOP_BROWSERS = 10


@dataclass
class ReportWindow:
    """A resolved reporting range split at the start of the current UTC day.

    ``rollups`` cover closed days; ``live`` holds the filter for raw visits
    from today onwards and is ``None`` when the range ends before today.
    """

    url_ids: list[int]
    start: datetime
    end: datetime
    rollups: list[AnalyticsRollup] = field(default_factory=list)
    live: list[Any] | None = None


class AnalyticsReportService:
    """Read path: merges daily rollups with live visits for the current day.

    Every report is scoped to the URLs created by one owner.
    """

    def __init__(self, db: AsyncSession, now: Clock = utc_now):
        self.db = db
        self.now = now

    async def get_overview(self, owner_id: str, query: DateRangeQuery) -> OverviewStats:
        window = await self._window(await self._owned_url_ids(owner_id), query)

        totals = await self._totals(window)
        countries = await self._merged(window, "countries", "country", Visit.country, "Unknown")
        devices = await self._merged(window, "devices", "type", Visit.device_type, "unknown")
        daily = await self._daily(window)

        return OverviewStats(
            total_visits=totals.total_visits,
            unique_visitors=totals.unique_visits,
            top_countries=[
                CountryStat(
                    country=c.key,
                    visits=c.visits,
                    unique_visits=c.unique_visits,
                    percentage=percentage(c.visits, countries.total_visits()),
                )
                for c in countries.ranked(TOP_COUNTRIES)
            ],
            device_breakdown=self._device_stats(devices),
            daily_stats=daily,
            period_start=window.start,
            period_end=window.end,
        )

    async def get_country_analytics(
        self, owner_id: str, query: DateRangeQuery
    ) -> list[CountryStat]:
        window = await self._window(await self._owned_url_ids(owner_id), query)
        countries = await self._merged(window, "countries", "country", Visit.country, "Unknown")
        return self._country_stats(countries)

    async def get_device_analytics(self, owner_id: str, query: DateRangeQuery) -> DeviceAnalytics:
        window = await self._window(await self._owned_url_ids(owner_id), query)
        devices = await self._merged(window, "devices", "type", Visit.device_type, "unknown")
        browsers = await self._merged(window, "browsers", "name", Visit.browser_name, "Unknown")
        return DeviceAnalytics(
            devices=self._device_stats(devices),
            browsers=[
                BrowserStat(name=c.key, visits=c.visits, unique_visits=c.unique_visits)
                for c in browsers.ranked(TOP_BROWSERS)
            ],
        )

    async def get_device_type_breakdown(
        self, owner_id: str, query: DateRangeQuery
    ) -> list[DeviceStat]:
        window = await self._window(await self._owned_url_ids(owner_id), query)
        devices = await self._merged(window, "devices", "type", Visit.device_type, "unknown")
        return self._device_stats(devices)

    async def get_mobile_device_breakdown(
        self, owner_id: str, query: DateRangeQuery
    ) -> list[MobileDeviceStat]:
        window = await self._window(await self._owned_url_ids(owner_id), query)
        return await self._mobile_brands(window)

    async def get_time_patterns(
        self, owner_id: str, query: DateRangeQuery
    ) -> TimePatternAnalytics:
        """Visits by hour of day and by day of week, both in UTC."""
        window = await self._window(await self._owned_url_ids(owner_id), query)

        hours = BucketMap()
        weekdays = BucketMap()
        for rollup in window.rollups:
            hours.add_all(from_breakdown(rollup.hourly_breakdown, "hour"))
            weekdays.add(
                ensure_utc(rollup.date).weekday(), rollup.total_visits, rollup.unique_visits
            )

        if window.live is not None:
            hours.add_all(
                to_group_counts(await self._fetch(grouped_visits(Visit.hour, *window.live)))
            )
            weekdays.add_all(
                to_group_counts(await self._fetch(grouped_visits(Visit.day_of_week, *window.live)))
            )

        return TimePatternAnalytics(
            hourly_patterns=[
                HourlyPattern(hour=hour, visits=c.visits, unique_visits=c.unique_visits)
                for hour, c in ((h, hours.get(h)) for h in range(24))
            ],
            daily_patterns=[
                DailyPattern(
                    day=day,
                    day_name=calendar.day_name[day],
                    visits=c.visits,
                    unique_visits=c.unique_visits,
                )
                for day, c in ((d, weekdays.get(d)) for d in range(7))
            ],
        )

    async def get_url_analytics(
        self, owner_id: str, url_id: int, query: DateRangeQuery
    ) -> UrlAnalytics:
        result = await self.db.execute(
            select(ShortUrl).where(ShortUrl.id == url_id, ShortUrl.created_by == owner_id)
        )
        url = result.scalar_one_or_none()
        if url is None:
            raise NotFoundError("URL not found or access denied")

        window = await self._window([url.id], query)
        totals = await self._totals(window)
        countries = await self._merged(window, "countries", "country", Visit.country, "Unknown")
        devices = await self._merged(window, "devices", "type", Visit.device_type, "unknown")

        return UrlAnalytics(
            url=UrlSummary(
                id=url.id,
                short_code=url.short_code,
                title=url.title,
                original_url=url.original_url,
                created_at=url.created_at,
            ),
            stats=totals,
            countries=self._country_stats(countries),
            devices=self._device_stats(devices),
            mobile_devices=await self._mobile_brands(window),
            timeline=await self._daily(window),
        )

    # --- Building blocks ---

    async def _owned_url_ids(self, owner_id: str) -> list[int]:
        result = await self.db.execute(
            select(ShortUrl.id).where(ShortUrl.created_by == owner_id).order_by(ShortUrl.id)
        )
        return list(result.scalars().all())

    async def _window(self, url_ids: list[int], query: DateRangeQuery) -> ReportWindow:
        """Resolve the range and load the rollup part of it."""
        now = self.now()
        start, end = resolve_date_range(query, now)
        today = start_of_day(now)
        window = ReportWindow(url_ids=url_ids, start=start, end=end)
        if not url_ids:
            return window

        if start < today:
            rollup_end = min(end, today)
            result = await self.db.execute(
                select(AnalyticsRollup)
                .where(
                    AnalyticsRollup.url_id.in_(url_ids),
                    AnalyticsRollup.period == PERIOD_DAILY,
                    AnalyticsRollup.date >= start,
                    AnalyticsRollup.date < rollup_end,
                )
                .order_by(AnalyticsRollup.date)
            )
            window.rollups = list(result.scalars().all())

        if end > today:
            window.live = [
                Visit.url_id.in_(url_ids),
                Visit.visited_at >= max(start, today),
                Visit.visited_at < end,
            ]

        logger.debug(
            "Report window %s..%s: %d rollups, live=%s",
            start.isoformat(),
            end.isoformat(),
            len(window.rollups),
            window.live is not None,
        )
        return window

    async def _totals(self, window: ReportWindow) -> VisitTotals:
        total_visits = sum(r.total_visits for r in window.rollups)
        unique_visits = sum(r.unique_visits for r in window.rollups)
        if window.live is not None:
            rows = await self._fetch(select(VISITS, UNIQUE_VISITS).where(*window.live))
            total_visits += int(rows[0][0] or 0)
            unique_visits += int(rows[0][1] or 0)
        return VisitTotals(total_visits=total_visits, unique_visits=unique_visits)

    async def _merged(
        self,
        window: ReportWindow,
        breakdown: str,
        key_field: str,
        column: Any,
        default: str,
    ) -> BucketMap:
        """Union of one rollup breakdown with the same grouping over live visits."""
        merged = BucketMap()
        for rollup in window.rollups:
            merged.add_all(from_breakdown(getattr(rollup, breakdown), key_field))
        if window.live is not None:
            rows = await self._fetch(grouped_visits(func.coalesce(column, default), *window.live))
            merged.add_all(to_group_counts(rows, default))
        return merged

    async def _daily(self, window: ReportWindow) -> list[DailyStat]:
        days = BucketMap()
        for rollup in window.rollups:
            days.add(ensure_utc(rollup.date).date(), rollup.total_visits, rollup.unique_visits)

        if window.live is not None:
            rows = await self._fetch(
                select(Visit.year, Visit.month, Visit.day_of_month, VISITS, UNIQUE_VISITS)
                .where(*window.live)
                .group_by(Visit.year, Visit.month, Visit.day_of_month)
            )
            for year, month, day, visits, unique_visits in rows:
                days.add(date(year, month, day), int(visits or 0), int(unique_visits or 0))

        return [
            DailyStat(date=c.key, visits=c.visits, unique_visits=c.unique_visits)
            for c in days.chronological()
        ]

    async def _mobile_brands(self, window: ReportWindow) -> list[MobileDeviceStat]:
        """Brand split of mobile and tablet visits.

        Brands are not kept on rollups, so this reads raw visits over the
        whole range.
        """
        if not window.url_ids:
            return []

        rows = await self._fetch(
            grouped_visits(
                func.coalesce(Visit.device_brand, "Unknown"),
                Visit.url_id.in_(window.url_ids),
                Visit.visited_at >= window.start,
                Visit.visited_at < window.end,
                Visit.device_type.in_(MOBILE_DEVICE_TYPES),
            )
        )
        brands = BucketMap()
        brands.add_all(to_group_counts(rows, "Unknown"))
        return [
            MobileDeviceStat(
                brand=c.key, visits=c.visits, unique_visits=c.unique_visits, percentage=pct
            )
            for c, pct in with_percentages(brands.ranked())
        ]

    @staticmethod
    def _country_stats(countries: BucketMap) -> list[CountryStat]:
        return [
            CountryStat(
                country=c.key, visits=c.visits, unique_visits=c.unique_visits, percentage=pct
            )
            for c, pct in with_percentages(countries.ranked())
        ]

    @staticmethod
    def _device_stats(devices: BucketMap) -> list[DeviceStat]:
        return [
            DeviceStat(type=c.key, visits=c.visits, unique_visits=c.unique_visits, percentage=pct)
            for c, pct in with_percentages(devices.ranked())
        ]

    async def _fetch(self, stmt: Select) -> list[Any]:
        result = await self.db.execute(stmt)
        return list(result.all())
