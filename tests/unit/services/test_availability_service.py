"""
Unit tests for availability checks and listing search.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable

import pytest

from rental_booking.cache import NOT_FOUND, InMemoryCacheStore, SearchCache
from rental_booking.errors import (
    UNAVAILABLE_MESSAGE,
    InvalidDateRangeError,
    InvalidSearchError,
    ListingNotFoundError,
    ListingUnavailableError,
)
from rental_booking.models.enums import ListingStatus, ReservationStatus
from rental_booking.schemas.search import SearchRequest, Sorting
from rental_booking.services.availability import AvailabilityService, paginate, sort_results

DEC_1 = date(2024, 12, 1)
DEC_5 = date(2024, 12, 5)

ListingFactory = Callable[..., dict[str, Any]]


# =============================================================================
# Single listing availability
# =============================================================================


@pytest.mark.unit
def test_available_listing_returns_priced_quote(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    override_factory: Callable[..., None],
) -> None:
    override_factory(listing["id"], date(2024, 12, 24), date(2024, 12, 26), price=250.0)

    quote = availability_service.check_availability(
        listing["slug"], date(2024, 12, 22), date(2024, 12, 28)
    )

    assert quote["listing_id"] == str(listing["id"])
    assert quote["slug"] == listing["slug"]
    assert quote["check_in_date"] == "2024-12-22"
    assert quote["check_out_date"] == "2024-12-28"
    assert quote["night_staying"] == 6
    assert quote["daily_price"] == [100.0, 100.0, 250.0, 250.0, 250.0, 100.0]
    assert quote["total_price"] == 1050.0
    assert quote["guest_number"] == 4


@pytest.mark.unit
def test_unknown_slug_is_unavailable(availability_service: AvailabilityService) -> None:
    with pytest.raises(ListingUnavailableError) as exc_info:
        availability_service.check_availability("no-such-listing", DEC_1, DEC_5)

    assert exc_info.value.message == UNAVAILABLE_MESSAGE


@pytest.mark.unit
def test_invalid_range_is_a_validation_error(
    availability_service: AvailabilityService, listing: dict[str, Any]
) -> None:
    with pytest.raises(InvalidDateRangeError):
        availability_service.check_availability(listing["slug"], DEC_5, DEC_1)


@pytest.mark.unit
def test_unpublished_listing_is_unavailable(
    availability_service: AvailabilityService, listing_factory: ListingFactory
) -> None:
    draft = listing_factory(status=ListingStatus.LISTING_DRAFT.value)

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(draft["slug"], DEC_1, DEC_5)


@pytest.mark.unit
def test_held_dates_are_unavailable(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    reservation_factory(listing["id"], date(2024, 12, 3), date(2024, 12, 6))

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(listing["slug"], DEC_1, DEC_5)


@pytest.mark.unit
def test_cancelled_reservation_does_not_hold_dates(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    reservation_factory(listing["id"], DEC_1, DEC_5, status=ReservationStatus.ORDER_CANCELED)

    assert availability_service.check_availability(listing["slug"], DEC_1, DEC_5)["total_price"]


@pytest.mark.unit
def test_policy_violation_is_reported_uniformly(
    availability_service: AvailabilityService, listing_factory: ListingFactory
) -> None:
    strict = listing_factory(min_booking_night=7)

    with pytest.raises(ListingUnavailableError) as exc_info:
        availability_service.check_availability(strict["slug"], DEC_1, DEC_5)

    assert exc_info.value.message == UNAVAILABLE_MESSAGE


@pytest.mark.unit
def test_buffer_period_applies_to_availability(
    availability_service: AvailabilityService,
    listing_factory: ListingFactory,
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    buffered = listing_factory(buffer_period="1 night")
    reservation_factory(buffered["id"], date(2024, 11, 25), DEC_1)

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(buffered["slug"], DEC_1, DEC_5)

    availability_service.check_availability(buffered["slug"], date(2024, 12, 2), DEC_5)


@pytest.mark.unit
def test_blocked_override_makes_listing_unavailable(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    override_factory: Callable[..., None],
) -> None:
    override_factory(listing["id"], date(2024, 12, 4), date(2024, 12, 10), available=False)

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(listing["slug"], DEC_1, DEC_5)


@pytest.mark.unit
def test_guest_count_above_capacity_is_unavailable(
    availability_service: AvailabilityService, listing: dict[str, Any]
) -> None:
    assert availability_service.check_availability(listing["slug"], DEC_1, DEC_5, guests=4)

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(listing["slug"], DEC_1, DEC_5, guests=5)


@pytest.mark.unit
def test_positive_answer_is_served_from_cache(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    first = availability_service.check_availability(listing["slug"], DEC_1, DEC_5)
    # Written behind the service's back, so the cache is not invalidated
    reservation_factory(listing["id"], DEC_1, DEC_5)

    assert availability_service.check_availability(listing["slug"], DEC_1, DEC_5) == first
    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(listing["slug"], DEC_1, DEC_5, use_cache=False)


@pytest.mark.unit
def test_negative_answer_is_cached_as_sentinel(
    availability_service: AvailabilityService, cache_store: InMemoryCacheStore
) -> None:
    for _ in range(2):
        with pytest.raises(ListingUnavailableError):
            availability_service.check_availability("ghost-listing", DEC_1, DEC_5)

    assert cache_store.get(SearchCache.availability_key("ghost-listing", DEC_1, DEC_5)) == NOT_FOUND


@pytest.mark.unit
def test_capacity_is_checked_on_cache_hit(
    availability_service: AvailabilityService, listing: dict[str, Any]
) -> None:
    availability_service.check_availability(listing["slug"], DEC_1, DEC_5)

    with pytest.raises(ListingUnavailableError):
        availability_service.check_availability(listing["slug"], DEC_1, DEC_5, guests=9)


@pytest.mark.unit
def test_service_without_cache(db_engine: Any, listing: dict[str, Any]) -> None:
    service = AvailabilityService(
        db_engine, cache=None, clock=lambda: datetime(2024, 11, 1, 9, 0, tzinfo=timezone.utc)
    )

    assert service.check_availability(listing["slug"], DEC_1, DEC_5)["total_price"] == 400.0


# =============================================================================
# Price calculation
# =============================================================================


@pytest.mark.unit
def test_calculate_total_price_ignores_availability(
    availability_service: AvailabilityService,
    listing: dict[str, Any],
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    reservation_factory(listing["id"], DEC_1, DEC_5)

    breakdown = availability_service.calculate_total_price(listing["id"], DEC_1, DEC_5)

    assert breakdown["total_price"] == 400.0
    assert breakdown["daily_price"] == [100.0] * 4


@pytest.mark.unit
def test_calculate_total_price_unknown_listing(availability_service: AvailabilityService) -> None:
    with pytest.raises(ListingNotFoundError):
        availability_service.calculate_total_price(uuid.uuid4(), DEC_1, DEC_5)


# =============================================================================
# Search
# =============================================================================


@pytest.fixture
def catalog(listing_factory: ListingFactory) -> dict[str, dict[str, Any]]:
    return {
        "cabin": listing_factory(
            name="Alpine Cabin", default_price=80.0, amenities=["wifi"], guest_number=2
        ),
        "villa": listing_factory(
            name="Sea Villa",
            default_price=300.0,
            amenities=["wifi", "pool"],
            guest_number=8,
            is_no_free_cancellation=True,
        ),
        "loft": listing_factory(
            name="City Loft", default_price=150.0, amenities=["wifi", "gym"], guest_number=4
        ),
    }


def names(page: dict[str, Any]) -> list[str]:
    return [item["name"] for item in page["data"]]


def search(service: AvailabilityService, **body: Any) -> dict[str, Any]:
    return service.search_listings(SearchRequest.model_validate({"use_cache": False, **body}))


@pytest.mark.unit
def test_search_without_filters_returns_published_listings(
    availability_service: AvailabilityService,
    catalog: dict[str, dict[str, Any]],
    listing_factory: ListingFactory,
) -> None:
    listing_factory(name="Hidden Draft", status=ListingStatus.LISTING_DRAFT.value)

    page = search(availability_service)

    assert sorted(names(page)) == ["Alpine Cabin", "City Loft", "Sea Villa"]
    assert page["pagination"]["total_records"] == 3


@pytest.mark.unit
def test_search_filters_by_amenities(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(availability_service, filters={"amenities": ["wifi", "pool"]})

    assert names(page) == ["Sea Villa"]


@pytest.mark.unit
def test_search_filters_by_price_range(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(availability_service, filters={"price_per_night": {"min": 100, "max": 200}})

    assert names(page) == ["City Loft"]


@pytest.mark.unit
def test_search_price_uses_overrides_within_stay(
    availability_service: AvailabilityService,
    catalog: dict[str, dict[str, Any]],
    override_factory: Callable[..., None],
) -> None:
    override_factory(catalog["cabin"]["id"], DEC_1, DEC_5, price=500.0)

    page = search(
        availability_service,
        filters={"price_per_night": {"min": 400}},
        params={"check_in": "2024-12-02", "check_out": "2024-12-04"},
    )

    assert names(page) == ["Alpine Cabin"]
    assert page["data"][0]["total_price"] == 1000.0
    assert page["data"][0]["night_staying"] == 2


@pytest.mark.unit
def test_search_filters_by_name_case_insensitively(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    assert names(search(availability_service, filters={"listing_name": "loft"})) == ["City Loft"]


@pytest.mark.unit
def test_search_filters_by_guest_count(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(availability_service, params={"guests": {"adults": 3, "children": [6, 9]}})

    assert names(page) == ["Sea Villa"]


@pytest.mark.unit
def test_search_free_cancellation_only(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(availability_service, filters={"free_cancellation": True})

    assert sorted(names(page)) == ["Alpine Cabin", "City Loft"]


@pytest.mark.unit
def test_search_with_dates_excludes_booked_listings(
    availability_service: AvailabilityService,
    catalog: dict[str, dict[str, Any]],
    reservation_factory: Callable[..., uuid.UUID],
) -> None:
    reservation_factory(catalog["villa"]["id"], DEC_1, DEC_5)

    page = search(
        availability_service, params={"check_in": "2024-12-02", "check_out": "2024-12-04"}
    )

    assert sorted(names(page)) == ["Alpine Cabin", "City Loft"]


@pytest.mark.unit
def test_search_sorting_by_price_ascending(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(
        availability_service, filters={"sorting": {"sorting_by": "default_price", "desc": False}}
    )

    assert names(page) == ["Alpine Cabin", "City Loft", "Sea Villa"]


@pytest.mark.unit
def test_search_sorting_by_name_descending(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(availability_service, filters={"sorting": {"sorting_by": "name", "desc": True}})

    assert names(page) == ["Sea Villa", "City Loft", "Alpine Cabin"]


@pytest.mark.unit
def test_search_pagination(
    availability_service: AvailabilityService, catalog: dict[str, dict[str, Any]]
) -> None:
    page = search(
        availability_service,
        filters={"sorting": {"sorting_by": "name", "desc": False}},
        pagination={"page": 2, "limit": 2},
    )

    assert names(page) == ["Sea Villa"]
    assert page["pagination"] == {
        "limit": 2,
        "current_page": 2,
        "next_page": None,
        "previous_page": 1,
        "total_records": 3,
        "total_pages": 2,
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "body",
    [
        {"filters": {"sorting": {"sorting_by": "rating"}}},
        {"filters": {"price_per_night": {"min": 300, "max": 100}}},
        {"params": {"check_in": "2024-12-01"}},
    ],
)
def test_invalid_search_requests(availability_service: AvailabilityService, body: Any) -> None:
    with pytest.raises(InvalidSearchError):
        search(availability_service, **body)


@pytest.mark.unit
def test_search_results_are_cached(
    availability_service: AvailabilityService,
    catalog: dict[str, dict[str, Any]],
    listing_factory: ListingFactory,
) -> None:
    request = SearchRequest.model_validate({"filters": {"listing_name": "a"}})
    first = availability_service.search_listings(request)

    listing_factory(name="Another Place")

    assert availability_service.search_listings(request) == first
    fresh = availability_service.search_listings(request.model_copy(update={"use_cache": False}))
    assert fresh["pagination"]["total_records"] == first["pagination"]["total_records"] + 1


# =============================================================================
# Sorting and pagination helpers
# =============================================================================


@pytest.mark.unit
def test_sort_results_puts_missing_values_last() -> None:
    items = [{"price": None, "n": 1}, {"price": 20.0, "n": 2}, {"price": 10.0, "n": 3}]

    ordered = sort_results(items, Sorting(sorting_by="price", desc=False))

    assert [i["n"] for i in ordered] == [3, 2, 1]


@pytest.mark.unit
def test_paginate_empty_results() -> None:
    page = paginate([], page=1, limit=10)

    assert page["data"] == []
    assert page["pagination"]["total_pages"] == 0
    assert page["pagination"]["next_page"] is None
    assert page["pagination"]["previous_page"] is None


@pytest.mark.unit
def test_paginate_middle_page() -> None:
    page = paginate(list(range(25)), page=2, limit=10)

    assert page["data"] == list(range(10, 20))
    assert page["pagination"]["next_page"] == 3
    assert page["pagination"]["previous_page"] == 1
    assert page["pagination"]["total_pages"] == 3
