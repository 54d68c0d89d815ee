"""
Availability resolution for a listing calendar.

A host-declared override always beats the listing default, in either
direction. When overrides disagree on the same night, an open (`True`)
override wins: hosts use them to carve out bookable exceptions.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from rental_booking.engine.types import AvailabilityOverrideRule, DateRange
from rental_booking.utils.datetime import iter_nights


def is_date_open(
    default_availability: Optional[bool],
    overrides: Iterable[AvailabilityOverrideRule],
    day: date,
) -> bool:
    """
    Decide whether a single night is open for booking.

    Args:
        default_availability: Listing default; None means open
        overrides: Availability overrides of the listing
        day: Night to check

    Returns:
        bool: True if the night can be booked
    """
    covering = [o for o in overrides if o.covers(day)]
    if covering:
        return any(o.available for o in covering)
    if default_availability is None:
        return True
    return default_availability


def closed_nights(
    default_availability: Optional[bool],
    overrides: Iterable[AvailabilityOverrideRule],
    stay: DateRange,
) -> list[date]:
    """Return the nights of the stay that are not open."""
    rules = tuple(overrides)
    return [
        night
        for night in iter_nights(stay.check_in, stay.check_out)
        if not is_date_open(default_availability, rules, night)
    ]


def covering_open_override(
    overrides: Iterable[AvailabilityOverrideRule],
    stay: DateRange,
) -> Optional[AvailabilityOverrideRule]:
    """Return the first open override that covers the whole stay, if any."""
    for override in overrides:
        if override.available and override.covers_range(stay):
            return override
    return None


def is_range_open(
    default_availability: Optional[bool],
    overrides: Iterable[AvailabilityOverrideRule],
    stay: DateRange,
) -> bool:
    """
    Decide whether every night of a stay is open.

    An open override covering the entire stay is sufficient on its own, even
    on a listing that is closed by default. An open override that covers only
    part of the stay opens only the nights it covers; the remaining nights
    fall back to the default.
    """
    rules = tuple(overrides)
    if covering_open_override(rules, stay) is not None:
        return True
    return not closed_nights(default_availability, rules, stay)
