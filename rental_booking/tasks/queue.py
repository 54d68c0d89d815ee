"""
Delayed job queue port.

The reservation lifecycle only needs to schedule a named job with a delay.
CeleryJobQueue sends it to the Celery broker; InMemoryJobQueue records it and
runs it on demand, for development and tests.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

import structlog
from kombu.exceptions import OperationalError as BrokerError

from rental_booking.errors import JobSchedulingError
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

EXPIRE_RESERVATION_JOB = "rental_booking.expire_reservation"


class JobQueue(Protocol):
    def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        delay_ms: int,
        remove_on_complete: bool = True,
        remove_on_fail: bool = False,
    ) -> str: ...


class CeleryJobQueue:
    """
    JobQueue that publishes tasks to the Celery broker by name.

    Raises:
        JobSchedulingError: if the broker cannot accept the task
    """

    def __init__(self, app: Optional[Any] = None) -> None:
        if app is None:
            from rental_booking.tasks.celery_app import celery_app

            app = celery_app
        self.app = app

    def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        delay_ms: int,
        remove_on_complete: bool = True,
        remove_on_fail: bool = False,
    ) -> str:
        try:
            result = self.app.send_task(
                job_name,
                kwargs=payload,
                countdown=delay_ms / 1000,
                # Errors are still stored (task_store_errors_even_if_ignored)
                ignore_result=remove_on_complete,
                # Called under the listing lock: publish once, fail fast
                retry=False,
            )
        except (BrokerError, OSError) as e:
            logger.error("job_enqueue_failed", job_name=job_name, error=str(e))
            raise JobSchedulingError() from e

        logger.info("job_enqueued", job_name=job_name, job_id=result.id, delay_ms=delay_ms)
        return str(result.id)


@dataclass
class ScheduledJob:
    job_id: str
    job_name: str
    payload: dict[str, Any]
    run_at: datetime
    remove_on_complete: bool = True
    remove_on_fail: bool = False
    state: str = "delayed"
    result: Any = None
    error: Optional[str] = None
    attempts: int = field(default=0)


class InMemoryJobQueue:
    """
    JobQueue that keeps jobs in memory until run_due() executes them.

    Processors are registered per job name. Completed jobs are dropped when
    remove_on_complete is set; failed jobs are kept unless remove_on_fail.

    Example:
        >>> queue = InMemoryJobQueue()
        >>> queue.register(EXPIRE_RESERVATION_JOB, process_expiry_job)
        >>> queue.enqueue(EXPIRE_RESERVATION_JOB, {"reservation_id": "..."}, delay_ms=900_000)
        >>> queue.run_due(utc_now() + timedelta(minutes=15))
    """

    def __init__(self) -> None:
        self.jobs: list[ScheduledJob] = []
        self._processors: dict[str, Callable[[dict[str, Any]], Any]] = {}
        self._lock = threading.Lock()
        self._counter = 0

    def register(self, job_name: str, processor: Callable[[dict[str, Any]], Any]) -> None:
        self._processors[job_name] = processor

    def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        delay_ms: int,
        remove_on_complete: bool = True,
        remove_on_fail: bool = False,
    ) -> str:
        with self._lock:
            self._counter += 1
            job = ScheduledJob(
                job_id=str(self._counter),
                job_name=job_name,
                payload=dict(payload),
                run_at=utc_now() + timedelta(milliseconds=delay_ms),
                remove_on_complete=remove_on_complete,
                remove_on_fail=remove_on_fail,
            )
            self.jobs.append(job)
        return job.job_id

    def pending(self, job_name: Optional[str] = None) -> list[ScheduledJob]:
        with self._lock:
            return [
                j
                for j in self.jobs
                if j.state == "delayed" and (job_name is None or j.job_name == job_name)
            ]

    def run_due(self, now: Optional[datetime] = None) -> list[ScheduledJob]:
        """
        Run every delayed job whose time has come.

        Args:
            now: Point in time to run up to (default: current UTC time)

        Returns:
            list[ScheduledJob]: The jobs that were executed, in run order
        """
        now = now or utc_now()
        due = sorted((j for j in self.pending() if j.run_at <= now), key=lambda j: j.run_at)

        for job in due:
            processor = self._processors.get(job.job_name)
            job.attempts += 1
            if processor is None:
                job.state, job.error = "failed", f"No processor registered for {job.job_name}"
            else:
                try:
                    job.result = processor(job.payload)
                    job.state = "completed"
                except Exception as e:
                    job.state, job.error = "failed", str(e)
                    logger.exception("job_failed", job_name=job.job_name, job_id=job.job_id)

            remove = job.remove_on_complete if job.state == "completed" else job.remove_on_fail
            if remove:
                with self._lock:
                    self.jobs.remove(job)

        return due
