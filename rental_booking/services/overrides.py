"""Host management of availability and price overrides."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from rental_booking.cache import SearchCache
from rental_booking.db.readers.listings import get_listing_row
from rental_booking.db.writers.overrides import (
    OverrideModel,
    create_override,
    list_overrides,
    soft_delete_override,
    update_override,
)
from rental_booking.errors import InvalidDateRangeError, ListingNotFoundError
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride

logger = structlog.get_logger(__name__)


def _check_range(model: OverrideModel, start_date: date, end_date: date) -> None:
    # Availability overrides are half-open, price overrides inclusive
    if model is AvailabilityOverride and start_date >= end_date:
        raise InvalidDateRangeError("Start date must be before end date")
    if model is PriceOverride and start_date > end_date:
        raise InvalidDateRangeError("End date must not be before start date")


class OverrideService:
    def __init__(self, db_engine: Engine, cache: Optional[SearchCache] = None) -> None:
        self.engine = db_engine
        self.cache = cache

    def _listing_slug(self, conn: Any, listing_id: UUID) -> Optional[str]:
        row = get_listing_row(conn, listing_id=listing_id)
        if row is None:
            raise ListingNotFoundError("Listing not found")
        return row["slug"]

    def _invalidate(self, slug: Optional[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate_listing(slug)

    def list_for_listing(self, model: OverrideModel, listing_id: UUID) -> list[dict[str, Any]]:
        with self.engine.connect() as conn:
            self._listing_slug(conn, listing_id)
            return list_overrides(conn, model, listing_id)

    def create(
        self,
        model: OverrideModel,
        listing_id: UUID,
        start_date: date,
        end_date: date,
        values: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Raises:
            InvalidDateRangeError, ListingNotFoundError, DuplicateOverrideError
        """
        _check_range(model, start_date, end_date)
        with self.engine.begin() as conn:
            slug = self._listing_slug(conn, listing_id)
            stored = create_override(conn, model, listing_id, start_date, end_date, dict(values))
        self._invalidate(slug)
        return stored

    def update(
        self,
        model: OverrideModel,
        listing_id: UUID,
        start_date: date,
        end_date: date,
        changes: Mapping[str, Any],
    ) -> dict[str, Any]:
        """
        Raises:
            InvalidDateRangeError, ListingNotFoundError, OverrideNotFoundError,
            DuplicateOverrideError
        """
        values = {k: v for k, v in changes.items() if v is not None}
        _check_range(model, values.get("start_date", start_date), values.get("end_date", end_date))
        with self.engine.begin() as conn:
            slug = self._listing_slug(conn, listing_id)
            stored = update_override(conn, model, listing_id, start_date, end_date, values)
        self._invalidate(slug)
        return stored

    def delete(
        self, model: OverrideModel, listing_id: UUID, start_date: date, end_date: date
    ) -> None:
        """
        Raises:
            ListingNotFoundError, OverrideNotFoundError
        """
        with self.engine.begin() as conn:
            slug = self._listing_slug(conn, listing_id)
            soft_delete_override(conn, model, listing_id, start_date, end_date)
        self._invalidate(slug)
