"""Nightly price resolution with date-ranged overrides."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from rental_booking.engine.types import DateRange, PriceOverrideRule
from rental_booking.utils.datetime import iter_nights


def price_for_date(
    default_price: Optional[float],
    overrides: Iterable[PriceOverrideRule],
    day: date,
) -> float:
    """
    Resolve the price of a single night.

    The first override whose inclusive range contains the night wins,
    otherwise the listing default applies, otherwise zero.

    Args:
        default_price: Listing default nightly price
        overrides: Price overrides, in precedence order
        day: Night to price

    Returns:
        float: Non-negative price for the night
    """
    for override in overrides:
        if override.covers(day):
            return max(float(override.price), 0.0)
    if default_price is None:
        return 0.0
    return max(float(default_price), 0.0)


def daily_prices(
    default_price: Optional[float],
    overrides: Iterable[PriceOverrideRule],
    stay: DateRange,
) -> list[float]:
    """Price of every night in [check_in, check_out), one entry per night."""
    rules = tuple(overrides)
    return [
        price_for_date(default_price, rules, night)
        for night in iter_nights(stay.check_in, stay.check_out)
    ]


def total_price(
    default_price: Optional[float],
    overrides: Iterable[PriceOverrideRule],
    stay: DateRange,
) -> float:
    """Total price of a stay: the sum of its nightly prices."""
    return sum(daily_prices(default_price, overrides, stay))


def nightly_rate_for_range(
    default_price: Optional[float],
    overrides: Iterable[PriceOverrideRule],
    stay: Optional[DateRange] = None,
) -> float:
    """
    Representative nightly rate used by search filters and sorting.

    Uses the first override touching the stay, else the default price.
    Without a stay the default price is used.
    """
    if stay is not None:
        for override in overrides:
            if override.intersects(stay):
                return max(float(override.price), 0.0)
    return max(float(default_price or 0.0), 0.0)
