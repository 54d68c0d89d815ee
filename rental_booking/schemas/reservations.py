from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rental_booking.models.enums import ReservationStatus


class GuestInfo(BaseModel):
    """A guest staying in the reservation."""

    name: Optional[str] = Field(None, description="Guest full name")
    email: Optional[str] = Field(None, description="Guest email")
    phone: Optional[str] = Field(None, description="Guest phone number")
    age: Optional[int] = Field(None, ge=0, description="Guest age")


class BookHashTerms(BaseModel):
    """
    The material terms of a quote, bound together by the book hash.
    """

    listing_id: UUID = Field(..., description="Listing being booked")
    check_in_date: date = Field(..., description="First night of the stay")
    check_out_date: date = Field(..., description="Departure date (not a night of the stay)")
    night_staying: Optional[int] = Field(None, ge=1, description="Number of nights")
    total_price: float = Field(..., ge=0, description="Quoted total price")
    guest_number: int = Field(..., ge=1, description="Number of guests")


class BookHashResponse(BaseModel):
    book_hash: str


class PreReservationPayload(BookHashTerms):
    """Draft reservation staged between quote and booking."""

    book_hash: Optional[str] = Field(
        None, description="Hash to verify against the terms, if already known"
    )
    guest_id: Optional[UUID] = None
    host_id: Optional[UUID] = None
    base_price: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    service_fee: Optional[float] = Field(None, ge=0)
    guest_deposit: Optional[float] = Field(None, ge=0)
    guest_info: Optional[list[GuestInfo]] = None


class ReservationCreatePayload(PreReservationPayload):
    """
    Schema for creating a reservation. `book_hash` is required at runtime and
    checked by the lifecycle manager, so a missing hash yields a domain error.
    """


class ReservationUpdatePayload(BaseModel):
    """
    Schema for updating a reservation. All fields are optional.
    Note: status changes go through the status endpoint.
    """

    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    guest_number: Optional[int] = Field(None, ge=1)
    guest_info: Optional[list[GuestInfo]] = None
    base_price: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    service_fee: Optional[float] = Field(None, ge=0)
    guest_deposit: Optional[float] = Field(None, ge=0)
    total_price: Optional[float] = Field(None, ge=0)


class ReservationStatusPayload(BaseModel):
    status: ReservationStatus = Field(..., description="Target status")
    cancel_reason: Optional[str] = Field(None, description="Reason, when cancelling")
    cancelled_by_id: Optional[UUID] = Field(None, description="User who cancelled")


class ReservationCancelPayload(BaseModel):
    reason: Optional[str] = Field(None, description="Cancellation reason")
    cancelled_by_id: Optional[UUID] = None


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    listing_id: UUID
    guest_id: Optional[UUID] = None
    host_id: Optional[UUID] = None
    listing_name: Optional[str] = None
    listing_address: Optional[str] = None
    check_in_date: date
    check_out_date: date
    night_staying: int
    guest_number: Optional[int] = None
    guest_info: Optional[list[dict[str, Any]]] = None
    base_price: Optional[float] = None
    tax: Optional[float] = None
    service_fee: Optional[float] = None
    guest_deposit: Optional[float] = None
    total_price: Optional[float] = None
    status: str
    cancel_reason: Optional[str] = None
    cancelled_by_id: Optional[UUID] = None
    book_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
