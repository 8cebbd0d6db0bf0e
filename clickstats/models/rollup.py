from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from clickstats.db.base import Base
from clickstats.models.base import TimestampMixin

GLOBAL_SCOPE = "global"
PERIOD_DAILY = "daily"


def scope_key_for(url_id: int | None) -> str:
    """Scope key used by the unique constraint; NULL url_id would not be unique-checked."""
    return GLOBAL_SCOPE if url_id is None else f"url:{url_id}"


class AnalyticsRollup(Base, TimestampMixin):
    """Pre-aggregated daily summary for one scope - written only by the rollup job."""

    __tablename__ = "analytics_rollups"

    id: Mapped[int] = mapped_column(primary_key=True)
    scope_key: Mapped[str] = mapped_column(String(32), nullable=False)
    url_id: Mapped[int | None] = mapped_column(
        ForeignKey("short_urls.id", ondelete="CASCADE"), nullable=True, index=True
    )
    period: Mapped[str] = mapped_column(String(16), nullable=False, default=PERIOD_DAILY)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    total_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    countries: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    devices: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    browsers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    hourly_breakdown: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    # Top referrers only, so their visits may not add up to total_visits
    referrers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("scope_key", "period", "date", name="uq_rollup_scope_period_date"),
    )
