"""
Reservation writers.

All functions take an open Connection so callers control the transaction:
the conflict check, the insert and the expiry scheduling of a new
reservation must share one unit of work.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from rental_booking.config import DEBUG
from rental_booking.models.enums import CANCEL_REASON_TIMEOUT, EXPIRABLE_STATUSES, ReservationStatus
from rental_booking.models.reservations import Reservation
from rental_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Columns callers may change through update_reservation_fields
UPDATABLE_COLUMNS = frozenset(
    {
        "check_in_date",
        "check_out_date",
        "night_staying",
        "guest_number",
        "guest_info",
        "base_price",
        "tax",
        "service_fee",
        "guest_deposit",
        "total_price",
    }
)


def insert_reservation(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a new reservation row.

    Args:
        conn: Connection inside the creating transaction
        row: Column values; must include id, listing_id and the stay dates

    Raises:
        sqlalchemy.exc.IntegrityError: if the database rejects the row, e.g.
            the PostgreSQL no-overlap exclusion constraint
    """
    now = utc_now()
    values = {"created_at": now, "updated_at": now, **row}

    if DEBUG:
        logger.debug("reservation_insert_payload", payload=json.dumps(values, default=str))

    conn.execute(insert(Reservation).values(values))
    logger.info(
        "reservation_inserted",
        reservation_id=str(values["id"]),
        listing_id=str(values["listing_id"]),
        check_in=str(values["check_in_date"]),
        check_out=str(values["check_out_date"]),
    )


def update_reservation_fields(
    conn: Connection, reservation_id: UUID, values: dict[str, Any]
) -> None:
    """
    Update non-status fields of a reservation.

    Args:
        conn: Active connection (within transaction)
        reservation_id: Reservation to update
        values: Column values; keys outside UPDATABLE_COLUMNS are rejected
    """
    unknown = set(values) - UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"Columns cannot be updated: {sorted(unknown)}")
    if not values:
        return

    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(**values, updated_at=utc_now())
    )


def update_reservation_status(
    conn: Connection,
    reservation_id: UUID,
    status: ReservationStatus,
    cancel_reason: Optional[str] = None,
    cancelled_by_id: Optional[UUID] = None,
) -> None:
    """Set a reservation status, with cancellation details when cancelling."""
    values: dict[str, Any] = {"status": status.value, "updated_at": utc_now()}
    if status == ReservationStatus.ORDER_CANCELED:
        values["cancel_reason"] = cancel_reason
        values["cancelled_by_id"] = cancelled_by_id

    conn.execute(update(Reservation).where(Reservation.id == reservation_id).values(**values))


def cancel_if_unpaid(conn: Connection, reservation_id: UUID) -> bool:
    """
    Cancel a reservation only if it is still an unpaid hold.

    The status condition is part of the UPDATE itself, so a payment that
    lands concurrently is never overwritten.

    Returns:
        bool: True if the row was cancelled, False if it had moved on
    """
    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.deleted_at.is_(None))
        .where(Reservation.status.in_(sorted(EXPIRABLE_STATUSES)))
        .values(
            status=ReservationStatus.ORDER_CANCELED.value,
            cancel_reason=CANCEL_REASON_TIMEOUT,
            updated_at=utc_now(),
        )
    )
    return result.rowcount == 1


def soft_delete_reservation(conn: Connection, reservation_id: UUID) -> None:
    """Administrative soft delete (sets deleted_at)."""
    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(deleted_at=utc_now(), updated_at=utc_now())
    )
