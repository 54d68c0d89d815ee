"""
Unit tests for the delayed job queues.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any
from unittest.mock import Mock

import pytest
from kombu.exceptions import OperationalError as BrokerError

from rental_booking.errors import JobSchedulingError
from rental_booking.tasks.celery_app import create_celery_app
from rental_booking.tasks.queue import EXPIRE_RESERVATION_JOB, CeleryJobQueue, InMemoryJobQueue
from rental_booking.utils.datetime import utc_now


@pytest.mark.unit
def test_enqueued_job_is_delayed() -> None:
    queue = InMemoryJobQueue()

    job_id = queue.enqueue(EXPIRE_RESERVATION_JOB, {"reservation_id": "abc"}, delay_ms=900_000)

    [job] = queue.pending(EXPIRE_RESERVATION_JOB)
    assert job.job_id == job_id
    assert job.payload == {"reservation_id": "abc"}
    assert job.run_at > utc_now() + timedelta(minutes=14)


@pytest.mark.unit
def test_run_due_skips_jobs_not_yet_due() -> None:
    queue = InMemoryJobQueue()
    processor = Mock(return_value="ok")
    queue.register("job", processor)
    queue.enqueue("job", {}, delay_ms=60_000)

    assert queue.run_due() == []
    processor.assert_not_called()


@pytest.mark.unit
def test_completed_job_is_removed_when_requested() -> None:
    queue = InMemoryJobQueue()
    processor = Mock(return_value="ok")
    queue.register("job", processor)
    queue.enqueue("job", {"n": 1}, delay_ms=1_000, remove_on_complete=True)

    [job] = queue.run_due(utc_now() + timedelta(seconds=5))

    processor.assert_called_once_with({"n": 1})
    assert job.state == "completed"
    assert job.result == "ok"
    assert queue.jobs == []


@pytest.mark.unit
def test_failed_job_is_kept_for_inspection() -> None:
    queue = InMemoryJobQueue()
    queue.register("job", Mock(side_effect=RuntimeError("boom")))
    queue.enqueue("job", {}, delay_ms=0, remove_on_fail=False)

    [job] = queue.run_due(utc_now() + timedelta(seconds=1))

    assert job.state == "failed"
    assert job.error == "boom"
    assert queue.jobs == [job]
    assert queue.pending() == []


@pytest.mark.unit
def test_failed_job_is_removed_when_requested() -> None:
    queue = InMemoryJobQueue()
    queue.register("job", Mock(side_effect=RuntimeError("boom")))
    queue.enqueue("job", {}, delay_ms=0, remove_on_fail=True)

    queue.run_due(utc_now() + timedelta(seconds=1))

    assert queue.jobs == []


@pytest.mark.unit
def test_job_without_processor_fails() -> None:
    queue = InMemoryJobQueue()
    queue.enqueue("unknown", {}, delay_ms=0)

    [job] = queue.run_due(utc_now() + timedelta(seconds=1))

    assert job.state == "failed"
    assert "No processor registered" in (job.error or "")


@pytest.mark.unit
def test_due_jobs_run_in_schedule_order() -> None:
    queue = InMemoryJobQueue()
    seen: list[Any] = []
    queue.register("job", lambda payload: seen.append(payload["n"]))
    queue.enqueue("job", {"n": 2}, delay_ms=2_000)
    queue.enqueue("job", {"n": 1}, delay_ms=1_000)

    queue.run_due(utc_now() + timedelta(seconds=5))

    assert seen == [1, 2]


@pytest.mark.unit
def test_celery_queue_sends_task_by_name_with_countdown() -> None:
    app = Mock()
    app.send_task.return_value = Mock(id="task-1")
    queue = CeleryJobQueue(app=app)

    job_id = queue.enqueue(EXPIRE_RESERVATION_JOB, {"reservation_id": "abc"}, delay_ms=900_000)

    assert job_id == "task-1"
    app.send_task.assert_called_once_with(
        EXPIRE_RESERVATION_JOB,
        kwargs={"reservation_id": "abc"},
        countdown=900.0,
        ignore_result=True,
        retry=False,
    )


@pytest.mark.unit
@pytest.mark.parametrize("error", [BrokerError("broker down"), ConnectionRefusedError()])
def test_celery_queue_broker_failure_raises_scheduling_error(error: Exception) -> None:
    app = Mock()
    app.send_task.side_effect = error
    queue = CeleryJobQueue(app=app)

    with pytest.raises(JobSchedulingError):
        queue.enqueue(EXPIRE_RESERVATION_JOB, {"reservation_id": "abc"}, delay_ms=900_000)


@pytest.mark.unit
def test_celery_app_bounds_broker_waits() -> None:
    conf = create_celery_app().conf

    assert conf.broker_connection_timeout <= 5
    assert conf.broker_transport_options["socket_connect_timeout"] <= 5
    assert conf.broker_transport_options["socket_timeout"] <= 5
