"""Host endpoints for availability and price overrides."""

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from rental_booking.dependencies import get_override_service
from rental_booking.models.overrides import AvailabilityOverride, PriceOverride
from rental_booking.schemas.overrides import (
    AvailabilityOverridePayload,
    AvailabilityOverrideResponse,
    AvailabilityOverrideUpdatePayload,
    PriceOverridePayload,
    PriceOverrideResponse,
    PriceOverrideUpdatePayload,
)
from rental_booking.services.overrides import OverrideService

router = APIRouter()

AVAILABILITY_PATH = "/listings/{listing_id}/availability-overrides"
PRICE_PATH = "/listings/{listing_id}/price-overrides"


# =============================================================================
# Availability overrides
# =============================================================================


@router.get(AVAILABILITY_PATH, response_model=list[AvailabilityOverrideResponse])
def list_availability_overrides(
    listing_id: UUID, service: OverrideService = Depends(get_override_service)
) -> list[dict[str, Any]]:
    return service.list_for_listing(AvailabilityOverride, listing_id)


@router.post(
    AVAILABILITY_PATH,
    status_code=status.HTTP_201_CREATED,
    response_model=AvailabilityOverrideResponse,
)
def create_availability_override(
    listing_id: UUID,
    payload: AvailabilityOverridePayload,
    service: OverrideService = Depends(get_override_service),
) -> dict[str, Any]:
    return service.create(
        AvailabilityOverride,
        listing_id,
        payload.start_date,
        payload.end_date,
        {"availability_override": payload.availability_override},
    )


@router.patch(
    AVAILABILITY_PATH + "/{start_date}/{end_date}", response_model=AvailabilityOverrideResponse
)
def update_availability_override(
    listing_id: UUID,
    start_date: date,
    end_date: date,
    payload: AvailabilityOverrideUpdatePayload,
    service: OverrideService = Depends(get_override_service),
) -> dict[str, Any]:
    return service.update(
        AvailabilityOverride,
        listing_id,
        start_date,
        end_date,
        payload.model_dump(exclude_unset=True),
    )


@router.delete(
    AVAILABILITY_PATH + "/{start_date}/{end_date}", status_code=status.HTTP_204_NO_CONTENT
)
def delete_availability_override(
    listing_id: UUID,
    start_date: date,
    end_date: date,
    service: OverrideService = Depends(get_override_service),
) -> Response:
    service.delete(AvailabilityOverride, listing_id, start_date, end_date)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Price overrides
# =============================================================================


@router.get(PRICE_PATH, response_model=list[PriceOverrideResponse])
def list_price_overrides(
    listing_id: UUID, service: OverrideService = Depends(get_override_service)
) -> list[dict[str, Any]]:
    return service.list_for_listing(PriceOverride, listing_id)


@router.post(PRICE_PATH, status_code=status.HTTP_201_CREATED, response_model=PriceOverrideResponse)
def create_price_override(
    listing_id: UUID,
    payload: PriceOverridePayload,
    service: OverrideService = Depends(get_override_service),
) -> dict[str, Any]:
    return service.create(
        PriceOverride,
        listing_id,
        payload.start_date,
        payload.end_date,
        {"price_override": payload.price_override, "type": payload.type},
    )


@router.patch(PRICE_PATH + "/{start_date}/{end_date}", response_model=PriceOverrideResponse)
def update_price_override(
    listing_id: UUID,
    start_date: date,
    end_date: date,
    payload: PriceOverrideUpdatePayload,
    service: OverrideService = Depends(get_override_service),
) -> dict[str, Any]:
    return service.update(
        PriceOverride, listing_id, start_date, end_date, payload.model_dump(exclude_unset=True)
    )


@router.delete(PRICE_PATH + "/{start_date}/{end_date}", status_code=status.HTTP_204_NO_CONTENT)
def delete_price_override(
    listing_id: UUID,
    start_date: date,
    end_date: date,
    service: OverrideService = Depends(get_override_service),
) -> Response:
    service.delete(PriceOverride, listing_id, start_date, end_date)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
