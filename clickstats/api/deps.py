from datetime import date

from fastapi import Depends, Header, Query
from fastapi.security import OAuth2PasswordBearer

from clickstats.core.exceptions import BadRequestError, UnauthorizedError
from clickstats.core.security import decode_token, verify_ingest_key
from clickstats.schemas.analytics import DateRangeQuery, Period

# Tokens are issued by the account service; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/form")


async def get_current_owner(token: str = Depends(oauth2_scheme)) -> str:
    """Dependency returning the owner id (``sub`` claim) of a valid access token."""
    payload = decode_token(token)

    if not payload:
        raise UnauthorizedError("Invalid token")

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    owner_id = payload.get("sub")
    if not owner_id:
        raise UnauthorizedError("Invalid token payload")

    return str(owner_id)


async def require_ingest_key(x_ingest_key: str = Header(..., alias="X-Ingest-Key")) -> None:
    """Dependency guarding the visit ingestion endpoint."""
    if not verify_ingest_key(x_ingest_key):
        raise UnauthorizedError("Invalid ingest key")


async def get_date_range(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    period: Period = Query("last30days"),
) -> DateRangeQuery:
    if start_date and end_date and start_date > end_date:
        raise BadRequestError("start_date must not be after end_date")
    return DateRangeQuery(start_date=start_date, end_date=end_date, period=period)
