"""Token verification for the reporting API.

Accounts and token issuance live in the account service; this module only
verifies HS256 bearer tokens signed with the shared ``SECRET_KEY`` and the
ingest key used by the redirect service.
"""

import hmac
import logging
from typing import Any

import jwt

from clickstats.core.config import settings

logger = logging.getLogger(__name__)

def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None if invalid."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        return payload
    except jwt.PyJWTError:
        return None

def verify_ingest_key(presented: str) -> bool:
    """Constant-time comparison of the presented ingest key."""
    if not settings.INGEST_API_KEY:
        logger.warning("INGEST_API_KEY is not configured; rejecting visit ingestion")
        return False
    return hmac.compare_digest(presented.encode(), settings.INGEST_API_KEY.encode())
