import ipaddress
import logging
import re
from datetime import datetime
from urllib.parse import urlsplit

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.core.exceptions import NotFoundError
from clickstats.core.timeutils import Clock, ensure_utc, utc_now
from clickstats.models.url import ShortUrl
from clickstats.models.visit import Visit
from clickstats.schemas.visit import VisitIn
from clickstats.services.visitor_service import VisitorClassifier, fingerprint

logger = logging.getLogger(__name__)

DIRECT_REFERER = "direct"
FALLBACK_IP = "127.0.0.1"

_IPV4_WITH_PORT = re.compile(r"^(\d{1,3}(?:\.\d{1,3}){3})(?::\d+)?$")


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def normalize_ip(ip: str | None) -> str:
    """Strip brackets, ports and the IPv4-mapped prefix from a client address."""
    if not ip:
        return FALLBACK_IP

    candidate = ip.strip().replace("[", "").replace("]", "")

    if _is_ip(candidate):
        if candidate.lower().startswith("::ffff:") and _is_ip(candidate[7:]):
            return candidate[7:]
        return candidate

    match = _IPV4_WITH_PORT.match(candidate)
    if match:
        return match.group(1)

    host, sep, port = candidate.rpartition(":")
    if sep and port.isdigit() and _is_ip(host):
        return host

    return candidate


def format_referrer(referrer: str | None) -> str:
    """Reduce a Referer header to its hostname; anything unusable counts as direct."""
    if not referrer or referrer in ("undefined", DIRECT_REFERER):
        return DIRECT_REFERER
    try:
        hostname = urlsplit(referrer).hostname
    except ValueError:
        return DIRECT_REFERER
    return hostname or DIRECT_REFERER


def extract_time_components(at: datetime) -> dict[str, int]:
    """Denormalised UTC time fields stored alongside each visit."""
    at = ensure_utc(at)
    return {
        "hour": at.hour,
        "day_of_week": at.weekday(),
        "day_of_month": at.day,
        "month": at.month,
        "year": at.year,
    }


class VisitService:
    """Write path of the event store: classify, then append one immutable visit."""

    def __init__(self, db: AsyncSession, now: Clock = utc_now):
        self.db = db
        self.now = now
        self.classifier = VisitorClassifier(db)

    async def record(self, data: VisitIn) -> Visit:
        url_exists = await self.db.execute(select(ShortUrl.id).where(ShortUrl.id == data.url_id))
        if url_exists.scalar_one_or_none() is None:
            raise NotFoundError("URL not found")

        visited_at = ensure_utc(data.visited_at) if data.visited_at else self.now()
        ip_address = normalize_ip(data.ip_address)
        session_id = fingerprint(data.visitor_id or ip_address, data.user_agent, visited_at)
        is_unique = await self.classifier.is_first_seen(
            data.url_id,
            session_id=session_id,
            visitor_id=data.visitor_id,
            at=visited_at,
        )

        visit = Visit(
            url_id=data.url_id,
            ip_address=ip_address,
            user_agent=data.user_agent,
            referer=format_referrer(data.referer),
            country=data.geo.country,
            region=data.geo.region,
            city=data.geo.city,
            timezone=data.geo.timezone,
            device_type=data.device.type,
            device_brand=data.device.brand,
            os_name=data.device.os.name,
            os_version=data.device.os.version,
            browser_name=data.browser.name,
            browser_version=data.browser.version,
            browser_engine=data.browser.engine,
            visitor_id=data.visitor_id,
            session_id=session_id,
            is_unique_visitor=is_unique,
            visited_at=visited_at,
            **extract_time_components(visited_at),
        )
        self.db.add(visit)
        await self.db.flush()
        await self.db.refresh(visit)

        logger.debug("Recorded visit %s for url %s (unique=%s)", visit.id, data.url_id, is_unique)
        return visit
