from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.core.exceptions import NotFoundError
from clickstats.models.visit import Visit
from clickstats.schemas.visit import VisitIn
from clickstats.services.visit_service import (
    VisitService,
    extract_time_components,
    format_referrer,
    normalize_ip,
)
from clickstats.services.visitor_service import VisitorClassifier, fingerprint, hour_bucket


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 10, hour, minute, tzinfo=timezone.utc)


class TestFingerprint:
    def test_same_hour_same_fingerprint(self):
        assert fingerprint("1.2.3.4", "ua", _at(10, 0)) == fingerprint("1.2.3.4", "ua", _at(10, 59))

    def test_hour_rollover_changes_fingerprint(self):
        assert fingerprint("1.2.3.4", "ua", _at(10, 59)) != fingerprint("1.2.3.4", "ua", _at(11, 0))

    def test_user_agent_changes_fingerprint(self):
        assert fingerprint("1.2.3.4", "ua-1", _at(10)) != fingerprint("1.2.3.4", "ua-2", _at(10))

    def test_is_sha256_hex(self):
        value = fingerprint("visitor", "ua", _at(10))
        assert len(value) == 64
        int(value, 16)

    def test_hour_bucket_counts_epoch_hours(self):
        assert hour_bucket(datetime(1970, 1, 1, 2, 30, tzinfo=timezone.utc)) == 2


class TestNormalizeIp:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "127.0.0.1"),
            ("", "127.0.0.1"),
            ("203.0.113.9", "203.0.113.9"),
            ("203.0.113.9:8080", "203.0.113.9"),
            ("::ffff:203.0.113.9", "203.0.113.9"),
            ("2001:db8::1", "2001:db8::1"),
            ("[2001:db8::1]", "2001:db8::1"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_ip(raw) == expected


class TestFormatReferrer:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "direct"),
            ("", "direct"),
            ("undefined", "direct"),
            ("direct", "direct"),
            ("https://www.google.com/search?q=x", "www.google.com"),
            ("http://t.co/abc", "t.co"),
            ("not a url", "direct"),
        ],
    )
    def test_format(self, raw, expected):
        assert format_referrer(raw) == expected


def test_time_components_are_utc_with_monday_zero():
    # 2024-03-10 is a Sunday
    assert extract_time_components(_at(15)) == {
        "hour": 15,
        "day_of_week": 6,
        "day_of_month": 10,
        "month": 3,
        "year": 2024,
    }


class TestVisitorClassifier:
    @pytest.mark.asyncio
    async def test_first_visit_is_unique(self, db_session: AsyncSession, short_url):
        classifier = VisitorClassifier(db_session)
        assert await classifier.is_first_seen(
            short_url.id, session_id="s", visitor_id="v", at=_at(10)
        )

    @pytest.mark.asyncio
    async def test_lookback_window_bounds(self, db_session: AsyncSession, short_url, add_visits):
        await add_visits(short_url.id, _at(10), visitor_id="v")
        classifier = VisitorClassifier(db_session, lookback_hours=1)

        assert not await classifier.is_first_seen(
            short_url.id, session_id="other", visitor_id="v", at=_at(10, 30)
        )
        assert await classifier.is_first_seen(
            short_url.id, session_id="other", visitor_id="v", at=_at(11, 30)
        )

    @pytest.mark.asyncio
    async def test_later_visit_does_not_count(self, db_session: AsyncSession, short_url):
        service = VisitService(db_session)
        later = await service.record(
            VisitIn(url_id=short_url.id, visitor_id="v", user_agent="ua", visited_at=_at(12))
        )
        earlier = await service.record(
            VisitIn(url_id=short_url.id, visitor_id="v", user_agent="ua", visited_at=_at(10))
        )

        assert later.is_unique_visitor is True
        assert earlier.is_unique_visitor is True

    @pytest.mark.asyncio
    async def test_scoped_per_url(self, db_session: AsyncSession, short_url, other_url, add_visits):
        await add_visits(short_url.id, _at(10), visitor_id="v")
        classifier = VisitorClassifier(db_session)
        assert await classifier.is_first_seen(
            other_url.id, session_id="s", visitor_id="v", at=_at(10, 5)
        )


class TestVisitService:
    @pytest.mark.asyncio
    async def test_repeat_visitor_counted_once(self, db_session: AsyncSession, short_url):
        service = VisitService(db_session)
        flags = []
        for at in (_at(10, 0), _at(10, 40), _at(12, 0)):
            visit = await service.record(
                VisitIn(url_id=short_url.id, visitor_id="cookie-1", user_agent="ua", visited_at=at)
            )
            flags.append(visit.is_unique_visitor)
        assert flags == [True, False, False]

    @pytest.mark.asyncio
    async def test_anonymous_visitor_matched_by_fingerprint(
        self, db_session: AsyncSession, short_url
    ):
        service = VisitService(db_session)
        hit = dict(url_id=short_url.id, ip_address="203.0.113.7", user_agent="ua")
        first = await service.record(VisitIn(**hit, visited_at=_at(10, 0)))
        second = await service.record(VisitIn(**hit, visited_at=_at(10, 40)))
        next_hour = await service.record(VisitIn(**hit, visited_at=_at(11, 5)))

        assert first.is_unique_visitor is True
        assert second.is_unique_visitor is False
        assert second.session_id == first.session_id
        # A new hour bucket is a new fingerprint
        assert next_hour.session_id != first.session_id
        assert next_hour.is_unique_visitor is True

    @pytest.mark.asyncio
    async def test_record_stores_denormalised_fields(self, db_session: AsyncSession, short_url):
        service = VisitService(db_session)
        visit = await service.record(
            VisitIn(
                url_id=short_url.id,
                ip_address="::ffff:203.0.113.7",
                user_agent="Mozilla/5.0",
                referer="https://news.ycombinator.com/item?id=1",
                geo={"country": "US", "city": "Boston"},
                device={"type": "mobile", "brand": "Apple", "os": {"name": "iOS", "version": "17"}},
                browser={"name": "Safari", "version": "17.0"},
                visited_at=_at(15, 20),
            )
        )
        assert visit.ip_address == "203.0.113.7"
        assert visit.referer == "news.ycombinator.com"
        assert visit.country == "US"
        assert visit.device_type == "mobile"
        assert visit.device_brand == "Apple"
        assert visit.os_name == "iOS"
        assert visit.browser_name == "Safari"
        assert (visit.hour, visit.day_of_week, visit.month, visit.year) == (15, 6, 3, 2024)
        assert visit.session_id == fingerprint("203.0.113.7", "Mozilla/5.0", _at(15, 20))

    @pytest.mark.asyncio
    async def test_defaults_visited_at_to_clock(self, db_session: AsyncSession, short_url):
        service = VisitService(db_session, now=lambda: _at(8))
        visit = await service.record(VisitIn(url_id=short_url.id))
        assert visit.hour == 8
        assert visit.referer == "direct"
        assert visit.device_type == "unknown"
        assert visit.browser_name == "Unknown"

    @pytest.mark.asyncio
    async def test_unknown_url(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await VisitService(db_session).record(VisitIn(url_id=999))


class TestIngestEndpoint:
    @pytest.mark.asyncio
    async def test_record_visit(
        self, client: AsyncClient, ingest_headers: dict, short_url, db_session: AsyncSession
    ):
        response = await client.post(
            "/api/v1/visits/",
            headers=ingest_headers,
            json={"url_id": short_url.id, "visitor_id": "cookie-9", "geo": {"country": "CA"}},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["url_id"] == short_url.id
        assert data["is_unique_visitor"] is True
        assert len(data["session_id"]) == 64

        result = await db_session.execute(select(Visit).where(Visit.id == data["id"]))
        assert result.scalar_one().country == "CA"

    @pytest.mark.asyncio
    async def test_wrong_ingest_key(self, client: AsyncClient, short_url):
        response = await client.post(
            "/api/v1/visits/",
            headers={"X-Ingest-Key": "wrong"},
            json={"url_id": short_url.id},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_ingest_key(self, client: AsyncClient, short_url):
        response = await client.post("/api/v1/visits/", json={"url_id": short_url.id})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_url(self, client: AsyncClient, ingest_headers: dict):
        response = await client.post("/api/v1/visits/", headers=ingest_headers, json={"url_id": 42})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_device_type(self, client: AsyncClient, ingest_headers: dict, short_url):
        response = await client.post(
            "/api/v1/visits/",
            headers=ingest_headers,
            json={"url_id": short_url.id, "device": {"type": "toaster"}},
        )
        assert response.status_code == 422
