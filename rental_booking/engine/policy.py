"""
Listing booking policies evaluated against a candidate stay.

Every check is a pure function of the listing snapshot, the stay and the
current local time. The buffer period is parsed here but enforced together
with the reservation conflict check (see engine/conflicts.py), because it
needs reservation data.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from rental_booking.engine.types import DateRange, ListingSnapshot
from rental_booking.errors import PolicyViolationError

BOOKING_WINDOW_INACTIVE = "inactive"

_BOOKING_WINDOW_RE = re.compile(r"^\s*(\d+)\s+(day|week|month|year)s?\s*$", re.IGNORECASE)
_BUFFER_PERIOD_RE = re.compile(r"^\s*(\d+)\s+nights?\s*$", re.IGNORECASE)

# Policy rule identifiers reported by PolicyViolationError.rule
RULE_BOOKING_WINDOW = "booking_window"
RULE_RESTRICTED_CHECK_IN = "restricted_check_in"
RULE_RESTRICTED_CHECK_OUT = "restricted_check_out"
RULE_MIN_NIGHTS = "min_booking_night"
RULE_MAX_NIGHTS = "max_booking_night"
RULE_SAME_DAY_CUTOFF = "same_day_booking_cutoff_time"
RULE_GUEST_CAPACITY = "guest_number"


def parse_booking_window(value: Optional[str]) -> Optional[relativedelta]:
    """
    Parse a booking window such as "3 months" into a relativedelta.

    Returns None for "Inactive", empty or unrecognised values, which all mean
    the listing accepts bookings any distance into the future.
    """
    if not value or value.strip().lower() == BOOKING_WINDOW_INACTIVE:
        return None
    match = _BOOKING_WINDOW_RE.match(value)
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2).lower()
    return relativedelta(**{f"{unit}s": amount})


def parse_buffer_period(value: Optional[str]) -> int:
    """Number of nights required between consecutive stays ("None" -> 0)."""
    if not value:
        return 0
    match = _BUFFER_PERIOD_RE.match(value)
    if not match:
        return 0
    return int(match.group(1))


def weekday_number(day: date) -> int:
    """Weekday numbered 0 (Sunday) .. 6 (Saturday)."""
    return day.isoweekday() % 7


def _check_booking_window(listing: ListingSnapshot, stay: DateRange, today: date) -> None:
    window = parse_booking_window(listing.booking_window)
    if window is None:
        return
    if stay.check_in > today + window:
        raise PolicyViolationError(
            RULE_BOOKING_WINDOW,
            f"Check-in is beyond the booking window of {listing.booking_window}",
        )


def _check_restricted_days(listing: ListingSnapshot, stay: DateRange) -> None:
    if weekday_number(stay.check_in) in listing.restricted_check_in:
        raise PolicyViolationError(
            RULE_RESTRICTED_CHECK_IN, "Check-in is not allowed on the selected weekday"
        )
    if weekday_number(stay.check_out) in listing.restricted_check_out:
        raise PolicyViolationError(
            RULE_RESTRICTED_CHECK_OUT, "Check-out is not allowed on the selected weekday"
        )


def _check_stay_length(listing: ListingSnapshot, stay: DateRange) -> None:
    if listing.min_booking_night is not None and stay.nights < listing.min_booking_night:
        raise PolicyViolationError(
            RULE_MIN_NIGHTS, f"Minimum stay is {listing.min_booking_night} nights"
        )
    if listing.max_booking_night is not None and stay.nights > listing.max_booking_night:
        raise PolicyViolationError(
            RULE_MAX_NIGHTS, f"Maximum stay is {listing.max_booking_night} nights"
        )


def _check_same_day_cutoff(listing: ListingSnapshot, stay: DateRange, now: datetime) -> None:
    cutoff = listing.same_day_booking_cutoff_time
    if cutoff is None or stay.check_in != now.date():
        return
    if now.time().replace(tzinfo=None) > cutoff.replace(tzinfo=None):
        raise PolicyViolationError(
            RULE_SAME_DAY_CUTOFF,
            f"Same-day bookings close at {cutoff.strftime('%H:%M')}",
        )


def validate_booking_policy(listing: ListingSnapshot, stay: DateRange, now: datetime) -> None:
    """
    Run every listing policy against the stay.

    Args:
        listing: Listing snapshot with policy attributes
        stay: Candidate stay
        now: Current time in the booking timezone

    Raises:
        PolicyViolationError: naming the first rule that failed
    """
    _check_booking_window(listing, stay, now.date())
    _check_restricted_days(listing, stay)
    _check_stay_length(listing, stay)
    _check_same_day_cutoff(listing, stay, now)


def satisfies_booking_policy(listing: ListingSnapshot, stay: DateRange, now: datetime) -> bool:
    """Boolean form of validate_booking_policy for the search path."""
    try:
        validate_booking_policy(listing, stay, now)
    except PolicyViolationError:
        return False
    return True


def check_guest_capacity(listing: ListingSnapshot, guests: Optional[int]) -> None:
    """
    Reject parties larger than the listing accepts.

    Raises:
        PolicyViolationError: with rule RULE_GUEST_CAPACITY
    """
    if guests is None or listing.guest_capacity is None:
        return
    if guests > listing.guest_capacity:
        raise PolicyViolationError(
            RULE_GUEST_CAPACITY, f"This listing accepts at most {listing.guest_capacity} guests"
        )
