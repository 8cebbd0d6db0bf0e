from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clickstats.db.base import Base


class Visit(Base):
    """Raw visit - append-only, one row per redirect hit, never updated.

    ``hour`` .. ``year`` duplicate ``visited_at`` (UTC) so live group-by
    queries can hit plain column indexes.
    """

    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(primary_key=True)
    url_id: Mapped[int] = mapped_column(
        ForeignKey("short_urls.id", ondelete="CASCADE"), nullable=False
    )

    # Request facts
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str] = mapped_column(Text, nullable=False)
    referer: Mapped[str] = mapped_column(String(255), nullable=False, default="direct")

    # Enrichment supplied by the redirect service
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    region: Mapped[str | None] = mapped_column(String(128), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device_type: Mapped[str] = mapped_column(String(16), nullable=False, default="unknown")
    device_brand: Mapped[str | None] = mapped_column(String(64), nullable=True)
    os_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    os_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    browser_name: Mapped[str] = mapped_column(String(64), nullable=False, default="Unknown")
    browser_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    browser_engine: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Uniqueness classification, fixed at write time
    visitor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_unique_visitor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    visited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hour: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # 0 = Monday
    day_of_month: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    month: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_visits_visited_at", "visited_at"),
        Index("ix_visits_url_visited_at", "url_id", "visited_at"),
        Index("ix_visits_country_visited_at", "country", "visited_at"),
        Index("ix_visits_device_type_visited_at", "device_type", "visited_at"),
        Index("ix_visits_browser_visited_at", "browser_name", "visited_at"),
        Index("ix_visits_hour_day_of_week", "hour", "day_of_week"),
        Index("ix_visits_url_visitor_visited_at", "url_id", "visitor_id", "visited_at"),
        Index("ix_visits_url_session_visited_at", "url_id", "session_id", "visited_at"),
    )
