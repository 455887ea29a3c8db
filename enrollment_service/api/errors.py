"""Translate core errors into HTTP responses.

Services raise the CoreError hierarchy and never build HTTP responses
themselves.  This module is the one place those errors become status
codes, registered on the app by ``register_error_handlers``.

Body shape for every mapped error: ``{"detail": <message>, "code": <code>}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from enrollment_service.core.errors import (
    ConflictError,
    CoreError,
    NotFoundError,
    PaymentDeclinedError,
    UnauthorizedError,
    UpstreamUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_MAP: list[tuple[type[CoreError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PaymentDeclinedError, status.HTTP_402_PAYMENT_REQUIRED),
    (UpstreamUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(error: CoreError) -> int:
    for cls, code in _STATUS_MAP:
        if isinstance(error, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _core_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, CoreError)
    status_code = status_for(exc)
    headers: dict[str, str] = {}
    if isinstance(exc, UpstreamUnavailableError):
        headers["Retry-After"] = str(exc.retry_after_seconds)

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info(
            "%s %s rejected code=%s status=%d",
            request.method,
            request.url.path,
            exc.code,
            status_code,
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


async def _storage_unavailable_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    # Raised outside a bounded call (e.g. at commit time).
    logger.error("%s %s storage unavailable: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage unavailable", "code": "upstream_unavailable"},
        headers={"Retry-After": "1"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CoreError, _core_error_handler)
    app.add_exception_handler(OperationalError, _storage_unavailable_handler)
