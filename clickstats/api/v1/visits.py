import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clickstats.api.deps import require_ingest_key
from clickstats.db.session import get_db
from clickstats.schemas.visit import VisitIn, VisitResponse
from clickstats.services.visit_service import VisitService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    response_model=VisitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_ingest_key)],
)
async def record_visit(data: VisitIn, db: AsyncSession = Depends(get_db)):
    """Record one redirect hit. Authenticated via the X-Ingest-Key header."""
    return await VisitService(db).record(data)
