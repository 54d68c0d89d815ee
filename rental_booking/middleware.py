"""
FastAPI middleware for request tracing and correlation.

Every request gets a request ID that is bound into structlog's context, so
all log lines emitted while handling it (reservation creation, conflict
rejections, cache failures) can be correlated.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add a request ID to each HTTP request.

    The ID is taken from the incoming X-Request-ID header when the caller
    (e.g. a gateway) already assigned one, otherwise a UUID is generated. It is:
    1. Stored in request.state.request_id for route handlers
    2. Bound to structlog contextvars for the duration of the request
    3. Returned in the X-Request-ID response header

    Example:
        >>> from rental_booking.middleware import RequestIDMiddleware
        >>> app.add_middleware(RequestIDMiddleware)
        >>>
        >>> # Response headers will include:
        >>> # X-Request-ID: 550e8400-e29b-41d4-a716-446655440000
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
