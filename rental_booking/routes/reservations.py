from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status

from rental_booking.dependencies import get_quote_service, get_reservation_manager
from rental_booking.errors import BookingError
from rental_booking.schemas.reservations import (
    BookHashResponse,
    BookHashTerms,
    PreReservationPayload,
    ReservationCancelPayload,
    ReservationCreatePayload,
    ReservationResponse,
    ReservationStatusPayload,
    ReservationUpdatePayload,
)
from rental_booking.services.quotes import QuoteService
from rental_booking.services.reservations import ReservationLifecycleManager

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations/generate-book-hash", response_model=BookHashResponse)
def generate_book_hash(
    payload: BookHashTerms,
    quotes: QuoteService = Depends(get_quote_service),
) -> dict[str, str]:
    """
    Compute the book hash binding a quote's material terms.

    Returns:
        dict: {"book_hash": "<sha256 hex>"}
    """
    return {"book_hash": quotes.generate_book_hash(payload.model_dump())}


@router.post("/reservations/pre-booking", response_model=BookHashResponse)
def stage_pre_booking(
    payload: PreReservationPayload,
    quotes: QuoteService = Depends(get_quote_service),
) -> dict[str, str]:
    """
    Stage a draft reservation for one hour under its book hash.
    """
    try:
        book_hash = quotes.stage_pre_reservation(payload.model_dump(mode="json"))
        return {"book_hash": book_hash}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("pre_booking_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/pre-booking/{book_hash}")
def get_pre_booking(
    book_hash: str,
    quotes: QuoteService = Depends(get_quote_service),
) -> dict[str, Any]:
    return quotes.get_pre_reservation(book_hash)


@router.post(
    "/reservations",
    status_code=status.HTTP_201_CREATED,
    response_model=ReservationResponse,
)
def create_reservation(
    payload: ReservationCreatePayload,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> dict[str, Any]:
    """
    Create a reservation from a hashed quote.

    The reservation starts in ORDER_CREATED and is cancelled automatically
    if it is still unpaid when the hold window ends.

    Returns:
        dict: The created reservation

    Errors:
        400 validation / policy / unavailable dates, 404 listing,
        409 dates already reserved, 422 altered quote, 503 scheduling failure
    """
    try:
        return manager.create_reservation(payload.model_dump())
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_creation_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> dict[str, Any]:
    return manager.get_reservation(reservation_id)


@router.patch("/reservations/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: UUID,
    payload: ReservationUpdatePayload,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> dict[str, Any]:
    """
    Update dates, guests or price fields of a reservation.

    Changed dates are re-checked against every other stay of the listing.
    """
    try:
        return manager.update_reservation(reservation_id, payload.model_dump(exclude_unset=True))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "reservation_update_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/status", response_model=ReservationResponse)
def change_reservation_status(
    reservation_id: UUID,
    payload: ReservationStatusPayload,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> dict[str, Any]:
    """Apply a payment, completion, cancellation or refund status change."""
    return manager.transition_status(
        reservation_id,
        payload.status,
        cancel_reason=payload.cancel_reason,
        cancelled_by_id=payload.cancelled_by_id,
    )


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: UUID,
    payload: ReservationCancelPayload,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> dict[str, Any]:
    return manager.cancel_reservation(reservation_id, payload.reason, payload.cancelled_by_id)


@router.delete("/reservations/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_reservation(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_reservation_manager),
) -> Response:
    """Administrative soft delete."""
    manager.remove_reservation(reservation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
