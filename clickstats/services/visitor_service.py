import hashlib
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.core.config import settings
from clickstats.core.timeutils import ensure_utc
from clickstats.models.visit import Visit

logger = logging.getLogger(__name__)


def hour_bucket(at: datetime) -> int:
    """Number of whole UTC hours since the epoch."""
    return int(ensure_utc(at).timestamp() // 3600)


def fingerprint(identity: str, user_agent: str, at: datetime) -> str:
    """Derive a session fingerprint.

    Hits from the same identity (visitor cookie, else client IP) and
    user-agent inside one UTC hour share a fingerprint; the session rolls
    over when the hour changes.
    """
    raw = f"{identity}-{user_agent}-{hour_bucket(at)}"
    return hashlib.sha256(raw.encode()).hexdigest()


class VisitorClassifier:
    """Decides whether a hit is a first-time visitor for a URL."""

    def __init__(self, db: AsyncSession, lookback_hours: int | None = None):
        self.db = db
        self.lookback_hours = lookback_hours or settings.UNIQUE_VISITOR_LOOKBACK_HOURS

    async def is_first_seen(
        self,
        url_id: int,
        *,
        session_id: str,
        at: datetime,
        visitor_id: str | None = None,
    ) -> bool:
        """True if no earlier visit to ``url_id`` by this visitor falls in the lookback window.

        The cookie identity is preferred; without it the session fingerprint
        is matched instead. The window is ``lookback_hours`` wide regardless
        of the fingerprint's hour bucket.

        This is a plain read followed by the caller's insert, so two
        concurrent hits from one visitor can both come back unique.
        """
        at = ensure_utc(at)
        cutoff = at - timedelta(hours=self.lookback_hours)
        stmt = select(Visit.id).where(
            Visit.url_id == url_id,
            Visit.visited_at >= cutoff,
            Visit.visited_at < at,
        )
        if visitor_id:
            stmt = stmt.where(Visit.visitor_id == visitor_id)
        else:
            stmt = stmt.where(Visit.session_id == session_id)

        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is None
