from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    SmallInteger,
    String,
    Text,
    Time,
    Uuid,
)
from sqlalchemy.sql import func

from rental_booking.models.base import Base


class Listing(Base):
    """
    ORM model for host listings.

    Listings are owned by the listing service; the booking engine only reads
    them. Besides identity and display fields, a listing carries its default
    price and availability and the optional booking policy attributes
    (booking window, buffer period, restricted weekdays, min/max nights and
    the same-day cutoff). A NULL policy attribute means "no restriction".
    """

    __tablename__ = "listings"

    id = Column(Uuid, primary_key=True)
    slug = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=True)
    address = Column(String(255), nullable=True)
    host_id = Column(Uuid, nullable=False, index=True)
    region_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=True)
    guest_number = Column(SmallInteger, nullable=True)  # capacity
    amenities = Column(JSON, nullable=False, default=list)
    is_instant_booking = Column(Boolean, nullable=True)
    is_no_free_cancellation = Column(Boolean, nullable=True)
    cancellation_policy = Column(String(20), nullable=True)

    default_price = Column(Float, nullable=True)
    default_availability = Column(Boolean, nullable=True)

    booking_window = Column(String(20), nullable=True)  # "Inactive" | "3 months"
    buffer_period = Column(String(40), nullable=True)  # "None" | "1 night" | "2 nights"
    restricted_check_in = Column(JSON, nullable=False, default=list)  # weekdays, 0 = Sunday
    restricted_check_out = Column(JSON, nullable=False, default=list)
    min_booking_night = Column(Integer, nullable=True)
    max_booking_night = Column(Integer, nullable=True)
    same_day_booking_cutoff_time = Column(Time, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)
