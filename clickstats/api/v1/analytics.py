from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.api.deps import get_current_owner, get_date_range
from clickstats.core.config import settings
from clickstats.core.limiter import limiter
from clickstats.db.session import get_db
from clickstats.schemas.analytics import (
    CountryStat,
    DateRangeQuery,
    DeviceAnalytics,
    DeviceStat,
    MobileDeviceStat,
    OverviewStats,
    TimePatternAnalytics,
    UrlAnalytics,
)
from clickstats.services.report_service import AnalyticsReportService

router = APIRouter()


@router.get("/overview", response_model=OverviewStats)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_overview(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Totals, top countries, device split and daily series for all owned URLs."""
    return await AnalyticsReportService(db).get_overview(owner_id, date_range)


@router.get("/countries", response_model=list[CountryStat])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_countries(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    return await AnalyticsReportService(db).get_country_analytics(owner_id, date_range)


@router.get("/devices", response_model=DeviceAnalytics)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_devices(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Device types and the top browsers."""
    return await AnalyticsReportService(db).get_device_analytics(owner_id, date_range)


@router.get("/device-types", response_model=list[DeviceStat])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_device_types(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    return await AnalyticsReportService(db).get_device_type_breakdown(owner_id, date_range)


@router.get("/mobile-devices", response_model=list[MobileDeviceStat])
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_mobile_devices(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Brand breakdown of mobile and tablet visits."""
    return await AnalyticsReportService(db).get_mobile_device_breakdown(owner_id, date_range)


@router.get("/time-patterns", response_model=TimePatternAnalytics)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_time_patterns(
    request: Request,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    return await AnalyticsReportService(db).get_time_patterns(owner_id, date_range)


@router.get("/urls/{url_id}", response_model=UrlAnalytics)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
async def get_url_analytics(
    request: Request,
    url_id: int,
    date_range: DateRangeQuery = Depends(get_date_range),
    db: AsyncSession = Depends(get_db),
    owner_id: str = Depends(get_current_owner),
):
    """Detail view for one URL; 404 unless the caller created it."""
    return await AnalyticsReportService(db).get_url_analytics(owner_id, url_id, date_range)
