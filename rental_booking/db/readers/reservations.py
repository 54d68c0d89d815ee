"""Read access to reservations for conflict checks and lookups."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Connection

from rental_booking.engine.types import DateRange, HeldStay
from rental_booking.models.enums import CALENDAR_RELEASING_STATUSES
from rental_booking.models.reservations import Reservation


def _held_stays_stmt(window: DateRange) -> Any:
    return (
        select(
            Reservation.id,
            Reservation.listing_id,
            Reservation.check_in_date,
            Reservation.check_out_date,
            Reservation.status,
        )
        .where(Reservation.deleted_at.is_(None))
        .where(Reservation.status.not_in(sorted(CALENDAR_RELEASING_STATUSES)))
        .where(Reservation.check_in_date < window.check_out)
        .where(Reservation.check_out_date > window.check_in)
    )


def _to_held_stay(row: Any) -> HeldStay:
    return HeldStay(
        reservation_id=row["id"],
        check_in=row["check_in_date"],
        check_out=row["check_out_date"],
        status=row["status"],
    )


def get_held_stays(
    conn: Connection,
    listing_id: UUID,
    window: DateRange,
    exclude_reservation_id: Optional[UUID] = None,
) -> list[HeldStay]:
    """
    Calendar-holding reservations of a listing that intersect a window.

    Pass the stay widened by the listing buffer period as the window so that
    buffer violations are visible to the caller too.

    Args:
        conn: Active database connection
        listing_id: Listing to check
        window: Date range to intersect
        exclude_reservation_id: Reservation to ignore (used on update)

    Returns:
        list[HeldStay]: Held stays, ordered by check-in
    """
    stmt = _held_stays_stmt(window).where(Reservation.listing_id == listing_id)
    if exclude_reservation_id is not None:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)
    rows = conn.execute(stmt.order_by(Reservation.check_in_date)).mappings()
    return [_to_held_stay(r) for r in rows]


def get_held_stays_for_listings(
    conn: Connection,
    listing_ids: list[UUID],
    window: DateRange,
) -> dict[UUID, list[HeldStay]]:
    """Bulk variant of get_held_stays used by multi-listing search."""
    held: dict[UUID, list[HeldStay]] = defaultdict(list)
    if not listing_ids:
        return held
    stmt = _held_stays_stmt(window).where(Reservation.listing_id.in_(listing_ids))
    for row in conn.execute(stmt.order_by(Reservation.check_in_date)).mappings():
        held[row["listing_id"]].append(_to_held_stay(row))
    return held


def get_reservation(
    conn: Connection,
    reservation_id: UUID,
    include_deleted: bool = False,
) -> Optional[dict[str, Any]]:
    """Fetch one reservation row as a dict, or None."""
    stmt = select(Reservation).where(Reservation.id == reservation_id)
    if not include_deleted:
        stmt = stmt.where(Reservation.deleted_at.is_(None))
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_reservation_for_update(conn: Connection, reservation_id: UUID) -> Optional[dict[str, Any]]:
    """Fetch and row-lock a reservation for a status or date change."""
    row = (
        conn.execute(
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .where(Reservation.deleted_at.is_(None))
            .with_for_update()
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None
