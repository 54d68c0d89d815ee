"""
Availability and price override writers.

Overrides are keyed by (listing_id, start_date, end_date). A soft-deleted
override still occupies its key, so creating the same range again revives
the deleted row instead of inserting a new one.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from rental_booking.errors import DuplicateOverrideError, OverrideNotFoundError
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

OverrideModel = Union[type[AvailabilityOverride], type[PriceOverride]]


def _key(model: OverrideModel, listing_id: UUID, start_date: date, end_date: date) -> Any:
    return and_(
        model.listing_id == listing_id,
        model.start_date == start_date,
        model.end_date == end_date,
    )


def _fetch(
    conn: Connection,
    model: OverrideModel,
    listing_id: UUID,
    start_date: date,
    end_date: date,
) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(model).where(_key(model, listing_id, start_date, end_date)))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def list_overrides(
    conn: Connection, model: OverrideModel, listing_id: UUID
) -> list[dict[str, Any]]:
    """Active overrides of a listing, ordered by range."""
    rows = conn.execute(
        select(model)
        .where(model.listing_id == listing_id)
        .where(model.deleted_at.is_(None))
        .order_by(model.start_date, model.end_date)
    ).mappings()
    return [dict(r) for r in rows]


def create_override(
    conn: Connection,
    model: OverrideModel,
    listing_id: UUID,
    start_date: date,
    end_date: date,
    values: dict[str, Any],
) -> dict[str, Any]:
    """
    Create an override for a listing date range.

    Args:
        conn: Active connection (within transaction)
        model: AvailabilityOverride or PriceOverride
        listing_id: Owning listing
        start_date: First date of the range
        end_date: End of the range (see the model for inclusivity)
        values: Model-specific value columns

    Returns:
        dict: The stored override row

    Raises:
        DuplicateOverrideError: if an active override exists for the same range
    """
    now = utc_now()
    existing = _fetch(conn, model, listing_id, start_date, end_date)

    if existing is not None and existing["deleted_at"] is None:
        raise DuplicateOverrideError(
            f"An override for {start_date.isoformat()}..{end_date.isoformat()} already exists"
        )

    if existing is not None:
        conn.execute(
            update(model)
            .where(_key(model, listing_id, start_date, end_date))
            .values(**values, deleted_at=None, updated_at=now)
        )
        logger.info(
            "override_revived",
            table=model.__tablename__,
            listing_id=str(listing_id),
            start_date=str(start_date),
            end_date=str(end_date),
        )
    else:
        conn.execute(
            insert(model).values(
                listing_id=listing_id,
                start_date=start_date,
                end_date=end_date,
                created_at=now,
                updated_at=now,
                **values,
            )
        )
        logger.info(
            "override_created",
            table=model.__tablename__,
            listing_id=str(listing_id),
            start_date=str(start_date),
            end_date=str(end_date),
        )

    stored = _fetch(conn, model, listing_id, start_date, end_date)
    if stored is None:
        raise OverrideNotFoundError("Override not found")
    return stored


def update_override(
    conn: Connection,
    model: OverrideModel,
    listing_id: UUID,
    start_date: date,
    end_date: date,
    values: dict[str, Any],
) -> dict[str, Any]:
    """
    Update an active override, including moving it to a new date range.

    Raises:
        OverrideNotFoundError: if no active override has this key
        DuplicateOverrideError: if the new range collides with another override
    """
    existing = _fetch(conn, model, listing_id, start_date, end_date)
    if existing is None or existing["deleted_at"] is not None:
        raise OverrideNotFoundError("Override not found")

    new_start = values.get("start_date", start_date)
    new_end = values.get("end_date", end_date)
    if (new_start, new_end) != (start_date, end_date):
        target = _fetch(conn, model, listing_id, new_start, new_end)
        if target is not None and target["deleted_at"] is None:
            raise DuplicateOverrideError(
                f"An override for {new_start.isoformat()}..{new_end.isoformat()} already exists"
            )
        if target is not None:
            # A soft-deleted row still owns the key
            conn.execute(
                model.__table__.delete().where(_key(model, listing_id, new_start, new_end))
            )

    try:
        conn.execute(
            update(model)
            .where(_key(model, listing_id, start_date, end_date))
            .values(**values, updated_at=utc_now())
        )
    except IntegrityError as e:
        raise DuplicateOverrideError("An override for this date range already exists") from e

    stored = _fetch(conn, model, listing_id, new_start, new_end)
    if stored is None:
        raise OverrideNotFoundError("Override not found")
    return stored


def soft_delete_override(
    conn: Connection,
    model: OverrideModel,
    listing_id: UUID,
    start_date: date,
    end_date: date,
) -> None:
    """
    Soft delete an override (sets deleted_at).

    Raises:
        OverrideNotFoundError: if no active override has this key
    """
    result = conn.execute(
        update(model)
        .where(_key(model, listing_id, start_date, end_date))
        .where(model.deleted_at.is_(None))
        .values(deleted_at=utc_now(), updated_at=utc_now())
    )
    if result.rowcount == 0:
        raise OverrideNotFoundError("Override not found")
    logger.info(
        "override_deleted",
        table=model.__tablename__,
        listing_id=str(listing_id),
        start_date=str(start_date),
        end_date=str(end_date),
    )
