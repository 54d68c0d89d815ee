from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.sql import func

from rental_booking.models.base import Base


class AvailabilityOverride(Base):
    """
    ORM model for host-declared availability exceptions.

    Keyed by (listing_id, start_date, end_date); the override covers the
    nights start_date <= d < end_date and makes them bookable (True) or
    blocked (False) regardless of the listing default.
    """

    __tablename__ = "availability_overrides"

    listing_id = Column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    start_date = Column(Date, primary_key=True)
    end_date = Column(Date, primary_key=True)
    availability_override = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class PriceOverride(Base):
    """
    ORM model for date-ranged nightly price overrides.

    Keyed by (listing_id, start_date, end_date); the override covers the
    nights start_date <= d <= end_date, both ends inclusive.
    """

    __tablename__ = "price_overrides"

    listing_id = Column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    start_date = Column(Date, primary_key=True)
    end_date = Column(Date, primary_key=True)
    price_override = Column(Float, nullable=False)
    type = Column(String(50), nullable=True)  # e.g. "seasonal", "weekend"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)
