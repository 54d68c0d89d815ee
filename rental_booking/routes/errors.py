"""
Translation of domain errors into HTTP responses.

Body shape for every domain error:
    {"error": "<message>", "code": "<machine readable code>"}
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rental_booking.errors import (
    BookingError,
    ConflictError,
    InfrastructureError,
    IntegrityViolationError,
    ListingUnavailableError,
    NotFoundError,
    PolicyViolationError,
    ValidationFailedError,
)

logger = structlog.get_logger(__name__)

# Most specific first
STATUS_BY_ERROR: tuple[tuple[type[BookingError], int], ...] = (
    (ListingUnavailableError, 404),
    (ValidationFailedError, 400),
    (NotFoundError, 404),
    (IntegrityViolationError, 422),
    (ConflictError, 409),
    (InfrastructureError, 503),
)


def status_for(error: BookingError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 400


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = status_for(exc)
    content = {"error": exc.message, "code": exc.code}
    if isinstance(exc, PolicyViolationError):
        content["rule"] = exc.rule

    log = logger.error if status_code >= 500 else logger.info
    log("request_rejected", status_code=status_code, code=exc.code, path=request.url.path)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
