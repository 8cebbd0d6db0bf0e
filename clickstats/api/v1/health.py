import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.core.exceptions import ServiceUnavailableError
from clickstats.db.session import get_db
from clickstats.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=MessageResponse)
async def health_check():
    """Liveness: the process is up and serving."""
    return {"message": "healthy"}


@router.get("/ready", response_model=MessageResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness: the visits and rollup store answers queries."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("Readiness check failed: database connection error")
        raise ServiceUnavailableError("Service not ready") from None
    return {"message": "ready"}
