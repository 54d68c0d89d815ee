"""
Read path: single-listing availability checks and multi-listing search.

Both paths evaluate the same rules as reservation creation (availability
overrides, booking policies, held stays with buffer) but never lock or write,
and both answer "not available" uniformly without naming the failing rule.
Answers are cached in the SearchCache for a few minutes.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from rental_booking import metrics
from rental_booking.cache import SearchCache
from rental_booking.db.readers.listings import (
    find_search_candidates,
    get_listing_extras,
    get_listing_snapshot,
)
from rental_booking.db.readers.reservations import get_held_stays, get_held_stays_for_listings
from rental_booking.engine.availability import is_range_open
from rental_booking.engine.conflicts import is_stay_available
from rental_booking.engine.policy import parse_buffer_period, satisfies_booking_policy
from rental_booking.engine.pricing import daily_prices, nightly_rate_for_range
from rental_booking.engine.types import DateRange, HeldStay, ListingSnapshot
from rental_booking.errors import InvalidSearchError, ListingNotFoundError, ListingUnavailableError
from rental_booking.models.enums import ListingStatus
from rental_booking.schemas.search import SearchRequest, Sorting
from rental_booking.utils.datetime import booking_now

logger = structlog.get_logger(__name__)

SORTABLE_FIELDS = ("name", "created_at", "default_price", "price")


def is_bookable(
    listing: ListingSnapshot,
    stay: DateRange,
    held: Iterable[HeldStay],
    now: datetime,
) -> bool:
    """Every calendar rule at once: overrides, policies, held stays and buffer."""
    if not is_range_open(listing.default_availability, listing.availability_overrides, stay):
        return False
    if not satisfies_booking_policy(listing, stay, now):
        return False
    return is_stay_available(stay, held, parse_buffer_period(listing.buffer_period))


def _price_breakdown(listing: ListingSnapshot, stay: DateRange) -> dict[str, Any]:
    prices = daily_prices(listing.default_price, listing.price_overrides, stay)
    return {
        "check_in_date": stay.check_in.isoformat(),
        "check_out_date": stay.check_out.isoformat(),
        "night_staying": stay.nights,
        "daily_price": prices,
        "total_price": sum(prices),
    }


class AvailabilityService:
    """
    Args:
        db_engine: SQLAlchemy engine
        cache: Search cache (optional; None disables caching)
        clock: Returns "now" in the booking timezone
    """

    def __init__(
        self,
        db_engine: Engine,
        cache: Optional[SearchCache] = None,
        clock: Callable[[], datetime] = booking_now,
    ) -> None:
        self.engine = db_engine
        self.cache = cache
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Single listing
    # ------------------------------------------------------------------ #

    def check_availability(
        self,
        slug: str,
        start_date: date,
        end_date: date,
        guests: Optional[int] = None,
        use_cache: bool = True,
    ) -> dict[str, Any]:
        """
        Check whether a listing can be booked for a stay and price it.

        Args:
            slug: Listing slug
            start_date: Check-in date
            end_date: Check-out date
            guests: Party size (adults + children), checked against capacity
            use_cache: Read and populate the search cache

        Returns:
            dict: Listing fields, daily_price list, total_price and night_staying

        Raises:
            InvalidDateRangeError: start_date is not before end_date
            ListingUnavailableError: for every other reason
        """
        stay = DateRange(start_date, end_date)
        caching = use_cache and self.cache is not None
        key = SearchCache.availability_key(slug, start_date, end_date)

        quote = None
        if caching:
            try:
                quote = self.cache.get(key)
            except ListingUnavailableError:
                metrics.availability_checks.labels(outcome="cached_unavailable").inc()
                raise
            if quote is not None:
                metrics.availability_checks.labels(outcome="cached_available").inc()

        if quote is None:
            with metrics.db_query_duration.labels(operation="check_availability").time():
                quote = self._quote_from_database(slug, stay)
            if quote is None:
                metrics.availability_checks.labels(outcome="unavailable").inc()
                if caching:
                    self.cache.set_not_found(key)
                raise ListingUnavailableError()
            metrics.availability_checks.labels(outcome="available").inc()
            if caching:
                self.cache.set(key, quote)

        # Capacity depends on the request, not the calendar, so it is checked after the cache
        capacity = quote.get("guest_number")
        if guests is not None and capacity is not None and guests > capacity:
            raise ListingUnavailableError()
        return quote

    def _quote_from_database(self, slug: str, stay: DateRange) -> Optional[dict[str, Any]]:
        with self.engine.connect() as conn:
            listing = get_listing_snapshot(conn, slug=slug)
            if listing is None or listing.status != ListingStatus.LISTING_COMPLETED.value:
                logger.debug("availability_listing_missing", slug=slug)
                return None
            buffer_nights = parse_buffer_period(listing.buffer_period)
            held = get_held_stays(conn, listing.id, stay.widened(buffer_nights))

        if not is_bookable(listing, stay, held, self.clock()):
            logger.debug("availability_rules_rejected", slug=slug)
            return None

        return {
            "listing_id": str(listing.id),
            "slug": listing.slug,
            "name": listing.name,
            "address": listing.address,
            "guest_number": listing.guest_capacity,
            "default_price": listing.default_price,
            **_price_breakdown(listing, stay),
        }

    def calculate_total_price(
        self, listing_id: UUID, start_date: date, end_date: date
    ) -> dict[str, Any]:
        """
        Price a stay without checking availability.

        Raises:
            InvalidDateRangeError
            ListingNotFoundError
        """
        stay = DateRange(start_date, end_date)
        with self.engine.connect() as conn:
            listing = get_listing_snapshot(conn, listing_id=listing_id)
        if listing is None:
            raise ListingNotFoundError("Listing not found")
        return {"listing_id": str(listing.id), **_price_breakdown(listing, stay)}

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def search_listings(self, query: SearchRequest) -> dict[str, Any]:
        """
        Search published listings and return one page of results.

        With check-in/check-out, only listings bookable for that stay are
        returned and each result carries the stay's total price.

        Raises:
            InvalidSearchError: unknown sorting field or inconsistent filters
            InvalidDateRangeError: check_in is not before check_out
        """
        stay = self._validate_search(query)
        caching = query.use_cache and self.cache is not None
        key = SearchCache.search_key(
            query.filters.model_dump(mode="json"),
            query.params.model_dump(mode="json"),
            query.pagination.model_dump(mode="json"),
        )

        if caching:
            cached = self.cache.get(key)
            if cached is not None:
                metrics.search_requests.labels(source="cache").inc()
                return cached

        with metrics.db_query_duration.labels(operation="search").time():
            results = self._matching_listings(query, stay)

        if query.filters.sorting is not None:
            results = sort_results(results, query.filters.sorting)

        page = paginate(results, query.pagination.page, query.pagination.limit)
        metrics.search_requests.labels(source="database").inc()
        logger.info(
            "search_completed",
            total_records=page["pagination"]["total_records"],
            page=query.pagination.page,
        )
        if caching:
            self.cache.set(key, page)
        return page

    def _validate_search(self, query: SearchRequest) -> Optional[DateRange]:
        sorting = query.filters.sorting
        if sorting is not None and sorting.sorting_by not in SORTABLE_FIELDS:
            raise InvalidSearchError(
                f"Invalid sorting field '{sorting.sorting_by}'. "
                f"Allowed: {', '.join(SORTABLE_FIELDS)}"
            )

        price = query.filters.price_per_night
        if price and price.min is not None and price.max is not None and price.min > price.max:
            raise InvalidSearchError("price_per_night.min must not exceed price_per_night.max")

        params = query.params
        if (params.check_in is None) != (params.check_out is None):
            raise InvalidSearchError("check_in and check_out must be provided together")
        if params.check_in is None or params.check_out is None:
            return None
        return DateRange(params.check_in, params.check_out)

    def _matching_listings(
        self, query: SearchRequest, stay: Optional[DateRange]
    ) -> list[dict[str, Any]]:
        filters, params = query.filters, query.params
        min_guests = params.guests.total if params.guests else 0

        with self.engine.connect() as conn:
            candidates = find_search_candidates(
                conn,
                min_guests=min_guests,
                listing_name=filters.listing_name,
                region_id=params.region_id,
                slug=params.slug,
                free_cancellation=filters.free_cancellation,
            )
            ids = [c.id for c in candidates]
            extras = get_listing_extras(conn, ids)
            held: dict[UUID, list[HeldStay]] = {}
            if stay is not None and candidates:
                widest = max(parse_buffer_period(c.buffer_period) for c in candidates)
                held = get_held_stays_for_listings(conn, ids, stay.widened(widest))

        now = self.clock()
        price = filters.price_per_night
        required_amenities = set(filters.amenities)
        results = []

        for listing in candidates:
            extra = extras.get(listing.id, {})
            if required_amenities and not required_amenities <= set(extra.get("amenities") or []):
                continue

            rate = nightly_rate_for_range(listing.default_price, listing.price_overrides, stay)
            if price and price.min is not None and rate < price.min:
                continue
            if price and price.max is not None and rate > price.max:
                continue

            if stay is not None and not is_bookable(listing, stay, held.get(listing.id, []), now):
                continue

            item = {
                "id": str(listing.id),
                "slug": listing.slug,
                "name": listing.name,
                "address": listing.address,
                "region_id": extra.get("region_id"),
                "guest_number": listing.guest_capacity,
                "amenities": extra.get("amenities") or [],
                "default_price": listing.default_price,
                "price": rate,
                "is_instant_booking": extra.get("is_instant_booking"),
                "is_no_free_cancellation": extra.get("is_no_free_cancellation"),
                "cancellation_policy": extra.get("cancellation_policy"),
                "created_at": extra["created_at"].isoformat() if extra.get("created_at") else None,
            }
            if stay is not None:
                breakdown = _price_breakdown(listing, stay)
                item.update(
                    night_staying=breakdown["night_staying"],
                    total_price=breakdown["total_price"],
                )
            results.append(item)

        return results


def sort_results(items: list[dict[str, Any]], sorting: Sorting) -> list[dict[str, Any]]:
    """Sort search results; entries without a value for the field go last."""
    field = sorting.sorting_by
    present = [i for i in items if i.get(field) is not None]
    missing = [i for i in items if i.get(field) is None]

    def sort_key(item: dict[str, Any]) -> Any:
        value = item[field]
        return value.lower() if isinstance(value, str) and field == "name" else value

    present.sort(key=sort_key, reverse=sorting.desc)
    return present + missing


def paginate(items: list[dict[str, Any]], page: int, limit: int) -> dict[str, Any]:
    """Slice one page out of the results and describe the pagination."""
    total_records = len(items)
    total_pages = math.ceil(total_records / limit) if total_records else 0
    start = (page - 1) * limit
    return {
        "data": items[start : start + limit],
        "pagination": {
            "limit": limit,
            "current_page": page,
            "next_page": page + 1 if page < total_pages else None,
            "previous_page": page - 1 if page > 1 else None,
            "total_records": total_records,
            "total_pages": total_pages,
        },
    }
