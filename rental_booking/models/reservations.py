# models/reservations.py

from sqlalchemy import (
    DDL,
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    event,
)
from sqlalchemy.sql import func

from rental_booking.models.base import Base
from rental_booking.models.enums import ReservationStatus

NO_OVERLAP_CONSTRAINT = "reservations_no_overlapping_stays"


class Reservation(Base):
    """
    ORM model for guest reservations.

    A reservation holds the listing calendar for [check_in_date,
    check_out_date) while its status is anything but ORDER_CANCELED or
    ORDER_FAIL. Listing name, address, host and the quoted prices are copied
    at creation time so the record stays stable if the listing changes.
    Cancellation is a status; deleted_at is only set administratively.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("check_in_date < check_out_date", name="date_order"),
        Index("ix_reservations_listing_dates", "listing_id", "check_in_date", "check_out_date"),
    )

    id = Column(Uuid, primary_key=True)
    booking_number = Column(String(16), nullable=True, unique=True)
    listing_id = Column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(Uuid, nullable=True, index=True)
    host_id = Column(Uuid, nullable=True, index=True)
    listing_name = Column(String(255), nullable=True)
    listing_address = Column(String(255), nullable=True)

    base_price = Column(Float, nullable=True)
    tax = Column(Float, nullable=True)
    service_fee = Column(Float, nullable=True)
    guest_deposit = Column(Float, nullable=True)
    total_price = Column(Float, nullable=True)

    night_staying = Column(Integer, nullable=True)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    guest_number = Column(Integer, nullable=True)
    guest_info = Column(JSON, nullable=False, default=list)

    status = Column(
        String(32), nullable=False, default=ReservationStatus.ORDER_CREATED.value, index=True
    )
    cancel_reason = Column(String(255), nullable=True)
    cancelled_by_id = Column(Uuid, nullable=True)
    book_hash = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)


# PostgreSQL enforces the no-overlap invariant itself; other dialects rely on
# the serialized check-then-insert in services/reservations.py.
event.listen(
    Base.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE reservations ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist ("
        "listing_id WITH =, "
        "daterange(check_in_date, check_out_date, '[)') WITH &&"
        ") WHERE (status NOT IN ('ORDER_CANCELED', 'ORDER_FAIL') AND deleted_at IS NULL)"
    ).execute_if(dialect="postgresql"),
)
