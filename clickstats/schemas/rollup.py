"""Typed shapes of the breakdown lists stored inside a daily rollup."""

from datetime import datetime

from pydantic import BaseModel, Field


class BucketStats(BaseModel):
    visits: int = 0
    unique_visits: int = 0


class CountryBucket(BucketStats):
    country: str


class DeviceBucket(BucketStats):
    type: str


class BrowserBucket(BucketStats):
    name: str


class HourBucket(BucketStats):
    hour: int = Field(..., ge=0, le=23)


class ReferrerBucket(BucketStats):
    domain: str


class RollupSummary(BaseModel):
    """Everything written for one (scope, day) - replaced wholesale on re-run."""

    url_id: int | None
    date: datetime
    total_visits: int
    unique_visits: int
    countries: list[CountryBucket]
    devices: list[DeviceBucket]
    browsers: list[BrowserBucket]
    hourly_breakdown: list[HourBucket]
    referrers: list[ReferrerBucket]
