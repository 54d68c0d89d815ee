"""
structlog setup shared by the API process and the Celery worker.

Log lines carry the request id bound by RequestIDMiddleware (API) or the
task id bound by the expiry task (worker). Reservation ids, listing ids and
stay dates are passed as UUID / date objects and rendered as strings.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from rental_booking.config import BOOKING_TIMEZONE, LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "rental-booking"

# Library loggers that are chatty at INFO
QUIET_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "celery.worker.strategy",
    "celery.app.trace",
    "kombu",
    "redis",
)


def _add_service_context(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("booking_tz", BOOKING_TIMEZONE)
    return event_dict


def json_renderer() -> Processor:
    """JSON line renderer; values json cannot encode (UUID, date) fall back to str()."""
    return cast(Processor, structlog.processors.JSONRenderer(default=str))


def setup_logging() -> None:
    """
    Configure stdlib logging and structlog for the whole process.

    LOG_LEVEL=INFO (deployed): one JSON object per line
    LOG_LEVEL=DEBUG (local): colored console output
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=LOG_LEVEL,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service_context,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if LOG_LEVEL == "DEBUG":
        # ConsoleRenderer formats tracebacks itself
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors += [
            structlog.processors.format_exc_info,
            json_renderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
