"""
Typed values shared by the pure booking rules.

The rule modules (availability, pricing, policy, conflicts) operate only on
these values, never on database rows, so they can be evaluated and tested
without a database. Readers in rental_booking.db.readers build them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Optional
from uuid import UUID

from rental_booking.errors import InvalidDateRangeError


@dataclass(frozen=True)
class DateRange:
    """Half-open stay range: nights check_in .. check_out - 1."""

    check_in: date
    check_out: date

    def __post_init__(self) -> None:
        if self.check_in >= self.check_out:
            raise InvalidDateRangeError()

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def widened(self, days: int) -> "DateRange":
        """Return the range extended by `days` on both sides."""
        if days <= 0:
            return self
        delta = timedelta(days=days)
        return DateRange(self.check_in - delta, self.check_out + delta)


@dataclass(frozen=True)
class AvailabilityOverrideRule:
    """Host exception to default availability, covering start_date <= d < end_date."""

    start_date: date
    end_date: date
    available: bool

    def covers(self, day: date) -> bool:
        return self.start_date <= day < self.end_date

    def covers_range(self, stay: DateRange) -> bool:
        return self.start_date <= stay.check_in and stay.check_out <= self.end_date

    def intersects(self, stay: DateRange) -> bool:
        return self.start_date < stay.check_out and self.end_date > stay.check_in


@dataclass(frozen=True)
class PriceOverrideRule:
    """Nightly price override, covering start_date <= d <= end_date (inclusive)."""

    start_date: date
    end_date: date
    price: float

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def intersects(self, stay: DateRange) -> bool:
        return self.start_date <= stay.check_out and self.end_date >= stay.check_in


@dataclass(frozen=True)
class HeldStay:
    """A reservation that currently holds the listing calendar."""

    reservation_id: UUID
    check_in: date
    check_out: date
    status: str


@dataclass(frozen=True)
class ListingSnapshot:
    """Everything the rules need to know about one listing."""

    id: UUID
    slug: Optional[str] = None
    status: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    host_id: Optional[UUID] = None
    guest_capacity: Optional[int] = None
    default_price: Optional[float] = None
    default_availability: Optional[bool] = None
    booking_window: Optional[str] = None
    buffer_period: Optional[str] = None
    restricted_check_in: frozenset[int] = field(default_factory=frozenset)
    restricted_check_out: frozenset[int] = field(default_factory=frozenset)
    min_booking_night: Optional[int] = None
    max_booking_night: Optional[int] = None
    same_day_booking_cutoff_time: Optional[time] = None
    availability_overrides: tuple[AvailabilityOverrideRule, ...] = ()
    price_overrides: tuple[PriceOverrideRule, ...] = ()
