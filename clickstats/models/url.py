from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clickstats.db.base import Base
from clickstats.models.base import TimestampMixin


class ShortUrl(Base, TimestampMixin):
    """Shortened URL - owned and allocated by the link service, read here for scoping."""

    __tablename__ = "short_urls"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    short_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
