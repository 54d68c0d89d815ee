"""
FastAPI dependency injection providers.

Routes receive the engine, cache and job queue, and the services built on
them, through these providers. Tests override them with
app.dependency_overrides to run against in-memory SQLite, an
InMemoryCacheStore and an InMemoryJobQueue.

Testing Example:
    >>> from fastapi.testclient import TestClient
    >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    >>> app.dependency_overrides[get_cache_store] = lambda: InMemoryCacheStore()
    >>> app.dependency_overrides[get_job_queue] = lambda: InMemoryJobQueue()
    >>> client = TestClient(app)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.engine import Engine

from rental_booking.cache import CacheStore, SearchCache, build_cache_store
from rental_booking.db.engine import engine
from rental_booking.services.availability import AvailabilityService
from rental_booking.services.overrides import OverrideService
from rental_booking.services.quotes import QuoteService
from rental_booking.services.reservations import ReservationLifecycleManager
from rental_booking.tasks.queue import CeleryJobQueue, JobQueue


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine


@lru_cache(maxsize=1)
def get_cache_store() -> CacheStore:
    """Process-wide cache store (Redis or in-memory, per CACHE_BACKEND)."""
    return build_cache_store()


@lru_cache(maxsize=1)
def get_job_queue() -> JobQueue:
    """Process-wide job queue backed by Celery."""
    return CeleryJobQueue()


def get_search_cache(store: CacheStore = Depends(get_cache_store)) -> SearchCache:
    return SearchCache(store)


def get_reservation_manager(
    db_engine: Engine = Depends(get_db_engine),
    job_queue: JobQueue = Depends(get_job_queue),
    cache: SearchCache = Depends(get_search_cache),
) -> ReservationLifecycleManager:
    return ReservationLifecycleManager(db_engine, job_queue, cache)


def get_availability_service(
    db_engine: Engine = Depends(get_db_engine),
    cache: SearchCache = Depends(get_search_cache),
) -> AvailabilityService:
    return AvailabilityService(db_engine, cache)


def get_quote_service(store: CacheStore = Depends(get_cache_store)) -> QuoteService:
    return QuoteService(store)


def get_override_service(
    db_engine: Engine = Depends(get_db_engine),
    cache: SearchCache = Depends(get_search_cache),
) -> OverrideService:
    return OverrideService(db_engine, cache)
