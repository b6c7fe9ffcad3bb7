# File: app/core/errors.py

"""
Application error types.

Routes raise HTTPException for ordinary 4xx responses. These classes are for
failures that originate below the HTTP layer (hashing, token signing,
configuration) and are mapped to responses by the handlers registered in
app.main.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(AppError):
    """Missing or malformed input at hash or sign time."""

    status_code = 422


class ConfigurationError(AppError):
    """Missing or invalid signing secret / expiry. Never shown to clients verbatim."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Convert AppError to a JSON response.

    Configuration problems are logged with their real reason and reported to
    the client as a generic server error.
    """
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
