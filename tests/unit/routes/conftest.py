"""
API test client wired to the in-memory test doubles.
"""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from rental_booking.cache import InMemoryCacheStore
from rental_booking.dependencies import (
    get_availability_service,
    get_cache_store,
    get_db_engine,
    get_job_queue,
    get_reservation_manager,
)
from rental_booking.main import app
from rental_booking.services.availability import AvailabilityService
from rental_booking.services.reservations import ReservationLifecycleManager
from rental_booking.tasks.queue import InMemoryJobQueue


@pytest.fixture
def client(
    db_engine: Engine,
    cache_store: InMemoryCacheStore,
    job_queue: InMemoryJobQueue,
    manager: ReservationLifecycleManager,
    availability_service: AvailabilityService,
) -> Generator[TestClient, None, None]:
    """TestClient for the full application against in-memory SQLite."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    app.dependency_overrides[get_job_queue] = lambda: job_queue
    app.dependency_overrides[get_reservation_manager] = lambda: manager
    app.dependency_overrides[get_availability_service] = lambda: availability_service
    yield TestClient(app)
    app.dependency_overrides.clear()
