"""
Expiry of unpaid reservation holds.

A job is scheduled for every new reservation, delayed by the hold window.
When it runs, the reservation is cancelled with reason CANCEL_TIME_OUT_INVOICE
if, and only if, it is still unpaid. Failures are logged and recorded; they
never reach the code that scheduled the job.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

import structlog
from sqlalchemy.exc import OperationalError

from rental_booking.metrics import expiry_jobs
from rental_booking.services.reservations import ExpiryOutcome, ReservationLifecycleManager
from rental_booking.tasks.celery_app import celery_app
from rental_booking.tasks.queue import EXPIRE_RESERVATION_JOB, CeleryJobQueue

logger = structlog.get_logger(__name__)


def _default_manager() -> ReservationLifecycleManager:
    from rental_booking.cache import SearchCache, build_cache_store
    from rental_booking.db.engine import engine

    return ReservationLifecycleManager(engine, CeleryJobQueue(), SearchCache(build_cache_store()))


def process_expiry_job(
    payload: Mapping[str, Any],
    manager: Optional[ReservationLifecycleManager] = None,
) -> str:
    """
    Run one expiry job.

    Args:
        payload: Job payload with "reservation_id"
        manager: Lifecycle manager to use (default: one bound to the global engine)

    Returns:
        str: The ExpiryOutcome value, or "failed"

    Raises:
        OperationalError: transient database failures, so the worker can retry
    """
    reservation_id = payload.get("reservation_id")
    try:
        outcome = (manager or _default_manager()).expire_reservation(UUID(str(reservation_id)))
    except OperationalError:
        logger.warning("reservation_expiry_retryable_error", reservation_id=reservation_id)
        raise
    except Exception as e:
        expiry_jobs.labels(outcome="failed").inc()
        logger.exception("reservation_expiry_failed", reservation_id=reservation_id, error=str(e))
        return "failed"

    expiry_jobs.labels(outcome=outcome.value).inc()
    if outcome is ExpiryOutcome.NOT_FOUND:
        logger.warning("reservation_expiry_target_missing", reservation_id=reservation_id)
    return outcome.value


@celery_app.task(
    name=EXPIRE_RESERVATION_JOB,
    bind=True,
    acks_late=True,
    autoretry_for=(OperationalError,),
    retry_kwargs={"max_retries": 3, "countdown": 30},
)
def expire_reservation_task(self: Any, reservation_id: str) -> str:
    """Celery entry point for the expiry job."""
    with structlog.contextvars.bound_contextvars(task_id=self.request.id):
        logger.info(
            "reservation_expiry_started",
            reservation_id=reservation_id,
            retries=self.request.retries,
        )
        return process_expiry_job({"reservation_id": reservation_id})
