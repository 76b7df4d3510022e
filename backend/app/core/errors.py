"""
Typed errors raised by the service layer.

Each error carries the HTTP status it maps to; ``main.py`` registers a single
handler that renders them as ``{"detail": ..., "error": ...}``.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse


class MarketplaceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class InvalidState(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class InvalidOperation(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_operation"


class Conflict(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ValidationFailed(MarketplaceError):
    status_code = 422
    code = "validation"


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )
