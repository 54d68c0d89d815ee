"""Status enums for listings and reservations."""

import enum


class ListingStatus(str, enum.Enum):
    LISTING_DRAFT = "LISTING_DRAFT"
    LISTING_IN_REVIEW = "LISTING_IN_REVIEW"
    LISTING_REJECTED = "LISTING_REJECTED"
    LISTING_COMPLETED = "LISTING_COMPLETED"
    LISTING_DELETED = "LISTING_DELETED"


class ReservationStatus(str, enum.Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_WAITING_PAYMENT = "ORDER_WAITING_PAYMENT"
    ORDER_PAID_PARTIAL = "ORDER_PAID_PARTIAL"
    ORDER_PAID_COMPLETED = "ORDER_PAID_COMPLETED"
    ORDER_PROCESSING = "ORDER_PROCESSING"
    ORDER_COMPLETED = "ORDER_COMPLETED"
    ORDER_CANCELED = "ORDER_CANCELED"
    ORDER_FAIL = "ORDER_FAIL"
    REFUND_PENDING = "REFUND_PENDING"
    REFUND_COMPLETED = "REFUND_COMPLETED"
    REFUND_FAIL = "REFUND_FAIL"


# Reservations in these statuses never hold the calendar
CALENDAR_RELEASING_STATUSES = frozenset(
    {ReservationStatus.ORDER_CANCELED.value, ReservationStatus.ORDER_FAIL.value}
)

# Unpaid holds released by the expiry job
EXPIRABLE_STATUSES = frozenset(
    {ReservationStatus.ORDER_CREATED.value, ReservationStatus.ORDER_WAITING_PAYMENT.value}
)

TERMINAL_STATUSES = frozenset(
    {
        ReservationStatus.ORDER_COMPLETED.value,
        ReservationStatus.ORDER_CANCELED.value,
        ReservationStatus.ORDER_FAIL.value,
        ReservationStatus.REFUND_COMPLETED.value,
        ReservationStatus.REFUND_FAIL.value,
    }
)

CANCEL_REASON_TIMEOUT = "CANCEL_TIME_OUT_INVOICE"
