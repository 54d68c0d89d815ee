"""
Celery application for background booking jobs.

Redis is both broker and result backend. Run a worker with:

    celery -A rental_booking.tasks.celery_app worker --loglevel=INFO
"""

from typing import Any

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from rental_booking.config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    app = Celery(
        "rental_booking",
        broker=CELERY_BROKER_URL,
        backend=CELERY_RESULT_BACKEND,
    )

    app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "UTC",
            "enable_utc": True,
            # Successful job results are discarded; failures are kept for inspection
            "task_ignore_result": True,
            "task_store_errors_even_if_ignored": True,
            "result_expires": 86400,
            # A job is acknowledged only after it ran, so a crashed worker re-delivers it
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "worker_prefetch_multiplier": 1,
            "worker_hijack_root_logger": False,
            # Socket timeouts bound how long a publish can hold the caller
            "broker_connection_timeout": 2,
            "broker_transport_options": {
                # Must exceed the longest countdown so delayed jobs are not re-delivered early
                "visibility_timeout": 3600,
                "socket_connect_timeout": 2,
                "socket_timeout": 2,
            },
        }
    )

    app.conf.imports = ("rental_booking.tasks.expiry",)
    return app


@celery_setup_logging.connect
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Use the application's structlog configuration inside workers."""
    from rental_booking.logging_config import setup_logging

    setup_logging()


celery_app = create_celery_app()
