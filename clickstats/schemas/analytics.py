from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, model_validator

Period = Literal["today", "yesterday", "last7days", "last30days", "last90days"]


class DateRangeQuery(BaseModel):
    """Requested reporting window; explicit dates win over ``period``."""

    start_date: date | None = None
    end_date: date | None = None
    period: Period = "last30days"

    @model_validator(mode="after")
    def check_order(self) -> "DateRangeQuery":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class CountryStat(BaseModel):
    country: str
    visits: int
    unique_visits: int
    percentage: float | None = None


class DeviceStat(BaseModel):
    """Visits per device type (mobile, tablet, desktop, unknown)."""

    type: str
    visits: int
    unique_visits: int
    percentage: float | None = None


class BrowserStat(BaseModel):
    name: str
    visits: int
    unique_visits: int


class MobileDeviceStat(BaseModel):
    brand: str
    visits: int
    unique_visits: int
    percentage: float | None = None


class DailyStat(BaseModel):
    date: date
    visits: int
    unique_visits: int


class OverviewStats(BaseModel):
    """Summary analytics overview across all of the owner's URLs."""

    total_visits: int
    unique_visitors: int
    top_countries: list[CountryStat]
    device_breakdown: list[DeviceStat]
    daily_stats: list[DailyStat]
    period_start: datetime
    period_end: datetime


class DeviceAnalytics(BaseModel):
    devices: list[DeviceStat]
    browsers: list[BrowserStat]


class HourlyPattern(BaseModel):
    hour: int
    visits: int
    unique_visits: int


class DailyPattern(BaseModel):
    day: int  # 0 = Monday
    day_name: str
    visits: int
    unique_visits: int


class TimePatternAnalytics(BaseModel):
    hourly_patterns: list[HourlyPattern]
    daily_patterns: list[DailyPattern]


class UrlSummary(BaseModel):
    id: int
    short_code: str
    title: str | None
    original_url: str
    created_at: datetime


class VisitTotals(BaseModel):
    total_visits: int
    unique_visits: int


class UrlAnalytics(BaseModel):
    """Single-URL detail view."""

    url: UrlSummary
    stats: VisitTotals
    countries: list[CountryStat]
    devices: list[DeviceStat]
    mobile_devices: list[MobileDeviceStat]
    timeline: list[DailyStat]
