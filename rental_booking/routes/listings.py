from datetime import date
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from rental_booking.dependencies import get_availability_service
from rental_booking.errors import BookingError
from rental_booking.schemas.search import SearchRequest, SearchResponse
from rental_booking.services.availability import AvailabilityService

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/listings/{slug}/availability")
def check_availability(
    slug: str,
    start_date: date = Query(..., description="Check-in date"),
    end_date: date = Query(..., description="Check-out date"),
    adults: int = Query(0, ge=0),
    children: Optional[list[int]] = Query(None, description="Ages of children"),
    use_cache: bool = Query(True),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """
    Check whether a listing can be booked for a stay, and price it.

    Returns:
        dict: Listing fields with daily_price, total_price and night_staying

    Errors:
        400 if start_date is not before end_date,
        404 "Listing not found or not available for the selected dates" otherwise
    """
    guests = adults + len(children or []) if (adults or children) else None
    try:
        return service.check_availability(
            slug, start_date, end_date, guests=guests, use_cache=use_cache
        )
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("availability_check_failed", slug=slug, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/{listing_id}/price")
def calculate_price(
    listing_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """Nightly prices and total for a stay, ignoring availability."""
    return service.calculate_total_price(listing_id, start_date, end_date)


@router.post("/listings/search", response_model=SearchResponse)
def search_listings(
    payload: SearchRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> dict[str, Any]:
    """
    Search published listings.

    Example:
        >>> POST /api/v1/listings/search
        {"params": {"check_in": "2024-12-01", "check_out": "2024-12-05"}}
    """
    try:
        return service.search_listings(payload)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("search_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
