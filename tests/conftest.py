import os
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# Set test env vars before importing app modules
os.environ["SECRET_KEY"] = "test-secret-key-must-be-at-least-32-characters-long"
os.environ["INGEST_API_KEY"] = "test-ingest-key"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestingSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def setup_database():
    from clickstats import models  # noqa: F401
    from clickstats.core.limiter import limiter
    from clickstats.db.base import Base

    # Rate limiting is off for the whole suite
    limiter.enabled = False

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return TestingSessionLocal


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    from clickstats.db.session import get_db
    from clickstats.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _bearer(owner_id: str) -> dict:
    from tests.tokens import make_token

    token = make_token(owner_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> dict:
    """Bearer token for the owner of ``short_url``."""
    return _bearer(OWNER_ID)


@pytest.fixture
def other_auth_headers() -> dict:
    return _bearer(OTHER_OWNER_ID)


@pytest.fixture
def ingest_headers() -> dict:
    return {"X-Ingest-Key": "test-ingest-key"}


@pytest.fixture
async def short_url(db_session: AsyncSession):
    """A short URL created by ``OWNER_ID``."""
    from clickstats.models.url import ShortUrl

    url = ShortUrl(
        short_code="abc123",
        original_url="https://example.com/landing",
        title="Landing page",
        created_by=OWNER_ID,
    )
    db_session.add(url)
    await db_session.flush()
    await db_session.refresh(url)
    await db_session.commit()
    return url


@pytest.fixture
async def other_url(db_session: AsyncSession):
    """A short URL created by somebody else."""
    from clickstats.models.url import ShortUrl

    url = ShortUrl(
        short_code="xyz789",
        original_url="https://example.org/",
        created_by=OTHER_OWNER_ID,
    )
    db_session.add(url)
    await db_session.flush()
    await db_session.refresh(url)
    await db_session.commit()
    return url


@pytest.fixture
def add_visits(db_session: AsyncSession) -> Callable[..., Awaitable[list]]:
    """Insert raw visits directly, bypassing classification.

    Usage: ``await add_visits(url_id, at, count=3, country="US", is_unique_visitor=True)``
    """
    from clickstats.models.visit import Visit
    from clickstats.services.visit_service import extract_time_components

    async def _add(url_id: int, at: datetime, count: int = 1, **fields) -> list:
        fields.setdefault("is_unique_visitor", True)
        visits = []
        for i in range(count):
            visit = Visit(
                url_id=url_id,
                ip_address=f"198.51.100.{i + 1}",
                user_agent="pytest",
                session_id=f"sess-{url_id}-{at.isoformat()}-{i}",
                visited_at=at,
                **extract_time_components(at),
                **fields,
            )
            db_session.add(visit)
            visits.append(visit)
        await db_session.commit()
        return visits

    return _add


@pytest.fixture
def db_engine():
    return engine
