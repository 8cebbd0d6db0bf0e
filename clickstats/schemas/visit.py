from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DeviceType = Literal["mobile", "tablet", "desktop", "unknown"]


class GeoInfo(BaseModel):
    """Geolocation resolved by the redirect service."""

    country: str | None = Field(None, max_length=64)
    region: str | None = Field(None, max_length=128)
    city: str | None = Field(None, max_length=128)
    timezone: str | None = Field(None, max_length=64)


class OsInfo(BaseModel):
    name: str | None = Field(None, max_length=64)
    version: str | None = Field(None, max_length=32)


class DeviceInfo(BaseModel):
    type: DeviceType = "unknown"
    brand: str | None = Field(None, max_length=64)
    os: OsInfo = Field(default_factory=OsInfo)


class BrowserInfo(BaseModel):
    name: str = Field("Unknown", max_length=64)
    version: str | None = Field(None, max_length=32)
    engine: str | None = Field(None, max_length=32)


class VisitIn(BaseModel):
    """One redirect hit as handed over by the redirect service."""

    url_id: int
    ip_address: str | None = Field(None, max_length=64)
    user_agent: str = Field("unknown", max_length=2048)
    referer: str | None = None
    visitor_id: str | None = Field(None, max_length=64)
    geo: GeoInfo = Field(default_factory=GeoInfo)
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    browser: BrowserInfo = Field(default_factory=BrowserInfo)
    visited_at: datetime | None = None


class VisitResponse(BaseModel):
    """Stored visit, as acknowledged to the redirect service."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url_id: int
    session_id: str
    is_unique_visitor: bool
    visited_at: datetime
