from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AvailabilityOverridePayload(BaseModel):
    """
    Schema for creating an availability override.
    Covers the nights start_date <= d < end_date.
    """

    start_date: date = Field(..., description="First night covered")
    end_date: date = Field(..., description="First night no longer covered")
    availability_override: bool = Field(..., description="True opens the nights, False blocks them")


class AvailabilityOverrideUpdatePayload(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    availability_override: Optional[bool] = None


class PriceOverridePayload(BaseModel):
    """
    Schema for creating a price override.
    Covers the nights start_date <= d <= end_date.
    """

    start_date: date = Field(..., description="First night covered")
    end_date: date = Field(..., description="Last night covered")
    price_override: float = Field(..., ge=0, description="Nightly price for the covered nights")
    type: Optional[str] = Field(None, description="Free-form label, e.g. seasonal")


class PriceOverrideUpdatePayload(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    price_override: Optional[float] = Field(None, ge=0)
    type: Optional[str] = None


class AvailabilityOverrideResponse(BaseModel):
    listing_id: UUID
    start_date: date
    end_date: date
    availability_override: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PriceOverrideResponse(BaseModel):
    listing_id: UUID
    start_date: date
    end_date: date
    price_override: float
    type: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
