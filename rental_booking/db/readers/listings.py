"""Read access to listings and their override collections."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from rental_booking.engine.types import (
    AvailabilityOverrideRule,
    ListingSnapshot,
    PriceOverrideRule,
)
from rental_booking.models.enums import ListingStatus
from rental_booking.models.listings import Listing
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride


def _weekdays(value: Optional[Iterable[Any]]) -> frozenset[int]:
    return frozenset(int(v) for v in (value or []))


def build_snapshot(
    row: Mapping[str, Any],
    availability_rows: Iterable[Mapping[str, Any]] = (),
    price_rows: Iterable[Mapping[str, Any]] = (),
) -> ListingSnapshot:
    """
    Convert a listing row and its override rows into a ListingSnapshot.

    Args:
        row: Listing row mapping
        availability_rows: Availability override rows, in precedence order
        price_rows: Price override rows, in precedence order

    Returns:
        ListingSnapshot: Immutable value consumed by the booking rules
    """
    return ListingSnapshot(
        id=row["id"],
        slug=row.get("slug"),
        status=row.get("status"),
        name=row.get("name"),
        address=row.get("address"),
        host_id=row.get("host_id"),
        guest_capacity=row.get("guest_number"),
        default_price=row.get("default_price"),
        default_availability=row.get("default_availability"),
        booking_window=row.get("booking_window"),
        buffer_period=row.get("buffer_period"),
        restricted_check_in=_weekdays(row.get("restricted_check_in")),
        restricted_check_out=_weekdays(row.get("restricted_check_out")),
        min_booking_night=row.get("min_booking_night"),
        max_booking_night=row.get("max_booking_night"),
        same_day_booking_cutoff_time=row.get("same_day_booking_cutoff_time"),
        availability_overrides=tuple(
            AvailabilityOverrideRule(
                start_date=a["start_date"],
                end_date=a["end_date"],
                available=bool(a["availability_override"]),
            )
            for a in availability_rows
        ),
        price_overrides=tuple(
            PriceOverrideRule(
                start_date=p["start_date"],
                end_date=p["end_date"],
                price=float(p["price_override"]),
            )
            for p in price_rows
        ),
    )


def _load_overrides(
    conn: Connection, listing_ids: list[UUID]
) -> tuple[dict[UUID, list[Any]], dict[UUID, list[Any]]]:
    availability: dict[UUID, list[Any]] = defaultdict(list)
    prices: dict[UUID, list[Any]] = defaultdict(list)
    if not listing_ids:
        return availability, prices

    for a in conn.execute(
        select(AvailabilityOverride)
        .where(AvailabilityOverride.listing_id.in_(listing_ids))
        .where(AvailabilityOverride.deleted_at.is_(None))
        .order_by(AvailabilityOverride.start_date, AvailabilityOverride.end_date)
    ).mappings():
        availability[a["listing_id"]].append(a)

    for p in conn.execute(
        select(PriceOverride)
        .where(PriceOverride.listing_id.in_(listing_ids))
        .where(PriceOverride.deleted_at.is_(None))
        .order_by(PriceOverride.start_date, PriceOverride.end_date)
    ).mappings():
        prices[p["listing_id"]].append(p)

    return availability, prices


def get_listing_row(
    conn: Connection,
    listing_id: Optional[UUID] = None,
    slug: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """Fetch a non-deleted listing row by id or slug."""
    if listing_id is None and slug is None:
        raise ValueError("listing_id or slug is required")

    stmt = select(Listing).where(Listing.deleted_at.is_(None))
    if listing_id is not None:
        stmt = stmt.where(Listing.id == listing_id)
    else:
        stmt = stmt.where(Listing.slug == slug)

    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_listing_snapshot(
    conn: Connection,
    listing_id: Optional[UUID] = None,
    slug: Optional[str] = None,
) -> Optional[ListingSnapshot]:
    """
    Load a listing with its availability and price overrides.

    Args:
        conn: Active database connection
        listing_id: Listing id (takes precedence over slug)
        slug: Listing slug

    Returns:
        Optional[ListingSnapshot]: None if the listing does not exist or is deleted
    """
    row = get_listing_row(conn, listing_id=listing_id, slug=slug)
    if row is None:
        return None
    availability, prices = _load_overrides(conn, [row["id"]])
    return build_snapshot(row, availability[row["id"]], prices[row["id"]])


def lock_listing(conn: Connection, listing_id: UUID) -> bool:
    """
    Take a row lock on the listing for the rest of the transaction.

    Reservation writers for the same listing queue up behind this lock, so
    their check-then-insert sequences cannot interleave. SQLite has no row
    locks; there the whole transaction is already serialized.

    Returns:
        bool: False if the listing does not exist
    """
    row = conn.execute(
        select(Listing.id)
        .where(Listing.id == listing_id)
        .where(Listing.deleted_at.is_(None))
        .with_for_update()
    ).fetchone()
    return row is not None


def find_search_candidates(
    conn: Connection,
    min_guests: int = 0,
    listing_name: Optional[str] = None,
    region_id: Optional[int] = None,
    slug: Optional[str] = None,
    free_cancellation: bool = False,
) -> list[ListingSnapshot]:
    """
    Load published listings matching the cheap, column-level search filters.

    Calendar rules (availability, policies, conflicts) are applied afterwards
    in Python on the returned snapshots.
    """
    stmt = (
        select(Listing)
        .where(Listing.deleted_at.is_(None))
        .where(Listing.status == ListingStatus.LISTING_COMPLETED.value)
    )
    if min_guests > 0:
        stmt = stmt.where(Listing.guest_number >= min_guests)
    if listing_name:
        stmt = stmt.where(func.lower(Listing.name).contains(listing_name.lower(), autoescape=True))
    if region_id is not None:
        stmt = stmt.where(Listing.region_id == region_id)
    if slug:
        stmt = stmt.where(Listing.slug == slug)
    if free_cancellation:
        stmt = stmt.where(Listing.is_no_free_cancellation.is_(False))

    rows = [dict(r) for r in conn.execute(stmt.order_by(Listing.created_at.desc())).mappings()]
    availability, prices = _load_overrides(conn, [r["id"] for r in rows])
    return [build_snapshot(r, availability[r["id"]], prices[r["id"]]) for r in rows]


def get_listing_extras(conn: Connection, listing_ids: list[UUID]) -> dict[UUID, dict[str, Any]]:
    """Display and sorting fields the snapshots do not carry."""
    if not listing_ids:
        return {}
    rows = conn.execute(
        select(
            Listing.id,
            Listing.amenities,
            Listing.region_id,
            Listing.created_at,
            Listing.is_instant_booking,
            Listing.is_no_free_cancellation,
            Listing.cancellation_policy,
        ).where(Listing.id.in_(listing_ids))
    ).mappings()
    return {r["id"]: dict(r) for r in rows}
