"""
Shared fixtures.

Unit tests run against a fresh in-memory SQLite database per test, an
in-memory cache store and an in-memory job queue. A fixed clock keeps the
booking policies (window, same-day cutoff) deterministic.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "memory")

import uuid  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402

import pytest  # noqa: E402
import structlog  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from rental_booking.cache import InMemoryCacheStore, SearchCache  # noqa: E402
from rental_booking.db.engine import build_engine  # noqa: E402
from rental_booking.engine.quote import generate_book_hash  # noqa: E402
from rental_booking.models.base import Base  # noqa: E402
from rental_booking.models.enums import ListingStatus, ReservationStatus  # noqa: E402
from rental_booking.models.listings import Listing  # noqa: E402
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride  # noqa: E402
from rental_booking.models.reservations import Reservation  # noqa: E402
from rental_booking.services.availability import AvailabilityService  # noqa: E402
from rental_booking.services.reservations import ReservationLifecycleManager  # noqa: E402
from rental_booking.tasks.queue import InMemoryJobQueue  # noqa: E402

# 2024-11-01 09:00 UTC, a Friday; stays in December are within a 3 month window
FIXED_NOW = datetime(2024, 11, 1, 9, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo any process-wide structlog configuration a test (or importing the app) installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database with the full schema."""
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def search_cache(cache_store: InMemoryCacheStore) -> SearchCache:
    return SearchCache(cache_store)


@pytest.fixture
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def manager(
    db_engine: Engine, job_queue: InMemoryJobQueue, search_cache: SearchCache
) -> ReservationLifecycleManager:
    return ReservationLifecycleManager(db_engine, job_queue, search_cache, clock=fixed_clock)


@pytest.fixture
def availability_service(db_engine: Engine, search_cache: SearchCache) -> AvailabilityService:
    return AvailabilityService(db_engine, search_cache, clock=fixed_clock)


def insert_listing(engine: Engine, **fields: Any) -> dict[str, Any]:
    """Insert a bookable listing; keyword arguments override the defaults."""
    listing_id = fields.pop("id", None) or uuid.uuid4()
    row: dict[str, Any] = {
        "id": listing_id,
        "slug": f"beach-house-{listing_id.hex[:8]}",
        "name": "Beach House",
        "address": "1 Ocean Drive",
        "host_id": uuid.uuid4(),
        "region_id": 1,
        "status": ListingStatus.LISTING_COMPLETED.value,
        "guest_number": 4,
        "amenities": ["wifi", "pool"],
        "is_instant_booking": True,
        "is_no_free_cancellation": False,
        "default_price": 100.0,
        "default_availability": True,
        "booking_window": None,
        "buffer_period": None,
        "restricted_check_in": [],
        "restricted_check_out": [],
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    row.update(fields)
    with engine.begin() as conn:
        conn.execute(insert(Listing).values(row))
    return row


@pytest.fixture
def listing_factory(db_engine: Engine) -> Callable[..., dict[str, Any]]:
    def _make(**fields: Any) -> dict[str, Any]:
        return insert_listing(db_engine, **fields)

    return _make


@pytest.fixture
def listing(listing_factory: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return listing_factory()


@pytest.fixture
def override_factory(db_engine: Engine) -> Callable[..., None]:
    """Insert an availability override (available=...) or a price override (price=...)."""

    def _make(
        listing_id: uuid.UUID,
        start: date,
        end: date,
        available: Optional[bool] = None,
        price: Optional[float] = None,
    ) -> None:
        with db_engine.begin() as conn:
            if available is not None:
                conn.execute(
                    insert(AvailabilityOverride).values(
                        listing_id=listing_id,
                        start_date=start,
                        end_date=end,
                        availability_override=available,
                        created_at=FIXED_NOW,
                        updated_at=FIXED_NOW,
                    )
                )
            if price is not None:
                conn.execute(
                    insert(PriceOverride).values(
                        listing_id=listing_id,
                        start_date=start,
                        end_date=end,
                        price_override=price,
                        created_at=FIXED_NOW,
                        updated_at=FIXED_NOW,
                    )
                )

    return _make


@pytest.fixture
def reservation_factory(db_engine: Engine) -> Callable[..., uuid.UUID]:
    """Insert a reservation row directly, bypassing the lifecycle manager."""

    def _make(
        listing_id: uuid.UUID,
        check_in: date,
        check_out: date,
        status: ReservationStatus = ReservationStatus.ORDER_PAID_COMPLETED,
    ) -> uuid.UUID:
        reservation_id = uuid.uuid4()
        with db_engine.begin() as conn:
            conn.execute(
                insert(Reservation).values(
                    id=reservation_id,
                    booking_number=f"SH-{reservation_id.hex[:10].upper()}",
                    listing_id=listing_id,
                    check_in_date=check_in,
                    check_out_date=check_out,
                    night_staying=(check_out - check_in).days,
                    guest_number=2,
                    guest_info=[],
                    status=status.value,
                    created_at=FIXED_NOW,
                    updated_at=FIXED_NOW,
                )
            )
        return reservation_id

    return _make


def make_payload(
    listing_id: uuid.UUID,
    check_in: date,
    check_out: date,
    total_price: float = 400.0,
    guest_number: int = 2,
    **extra: Any,
) -> dict[str, Any]:
    """Reservation draft with a valid book hash."""
    payload: dict[str, Any] = {
        "listing_id": listing_id,
        "check_in_date": check_in,
        "check_out_date": check_out,
        "night_staying": (check_out - check_in).days,
        "total_price": total_price,
        "guest_number": guest_number,
        "guest_id": uuid.uuid4(),
        "guest_info": [{"name": "Ada Lovelace", "email": "ada@example.com"}],
    }
    payload.update(extra)
    payload["book_hash"] = generate_book_hash(payload)
    return payload


@pytest.fixture
def payload_factory() -> Callable[..., dict[str, Any]]:
    return make_payload
