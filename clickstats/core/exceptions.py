"""HTTP-facing error types.

Storage failures are deliberately absent: ``SQLAlchemyError`` propagates to
the caller untouched and is turned into a 500 by the framework.
"""

from fastapi import HTTPException, status

class AppException(HTTPException):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )

class NotFoundError(AppException):
    """Resource does not exist, or is not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"

class UnauthorizedError(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})

class ServiceUnavailableError(AppException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service unavailable"

class BadRequestError(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"
