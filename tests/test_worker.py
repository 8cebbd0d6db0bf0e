import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine

from clickstats.core.timeutils import ONE_DAY, start_of_day, utc_now
from clickstats.models.rollup import AnalyticsRollup
from clickstats.worker import run_once


@pytest.mark.asyncio
async def test_run_once_success(db_engine, db_session, short_url, add_visits):
    yesterday = start_of_day(utc_now()) - ONE_DAY
    await add_visits(short_url.id, yesterday.replace(hour=12), count=2)

    assert await run_once(db_engine) == 0

    count = await db_session.execute(select(func.count(AnalyticsRollup.id)))
    assert count.scalar_one() == 2


@pytest.mark.asyncio
async def test_run_once_failure_exit_code(caplog):
    # Fresh in-memory database: the visits table does not exist
    broken = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        with caplog.at_level(logging.ERROR):
            assert await run_once(broken) == 1
    finally:
        await broken.dispose()
    assert "Aggregation failed" in caplog.text
