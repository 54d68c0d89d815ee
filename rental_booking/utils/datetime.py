"""UTC and booking-calendar datetime utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from rental_booking.config import BOOKING_TIMEZONE


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def booking_now() -> datetime:
    """
    Return the current time in the booking calendar's timezone.

    Booking policies such as the same-day cutoff and the booking window are
    defined in local listing time, not UTC.
    """
    return datetime.now(ZoneInfo(BOOKING_TIMEZONE))


def iter_nights(start: date, end: date) -> Iterator[date]:
    """Yield every night of the half-open range [start, end)."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
