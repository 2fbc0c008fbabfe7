"""Mapping from analytics errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from insightify.core.exceptions import (
    AnalyticsError,
    NotFoundError,
    QueryTimeoutError,
    StorageUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[AnalyticsError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StorageUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    QueryTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def status_for(exc: AnalyticsError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    """Render an analytics error as ``{"detail": ..., "errors": [...]}``."""
    code = status_for(exc)
    body: dict = {"detail": str(exc)}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors

    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AnalyticsError, analytics_error_handler)
