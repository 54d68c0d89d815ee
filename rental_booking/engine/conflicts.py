"""
Reservation conflict detection.

Two stays conflict when their half-open night ranges overlap. This covers
every textual case (candidate starts inside an existing stay, an existing
stay starts inside the candidate, either contains the other). Cancelled and
failed reservations never hold the calendar; readers filter them out before
the held stays reach these functions.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from rental_booking.engine.types import DateRange, HeldStay
from rental_booking.models.enums import CALENDAR_RELEASING_STATUSES


def ranges_overlap(a: DateRange, b: DateRange) -> bool:
    return a.check_in < b.check_out and b.check_in < a.check_out


def holds_calendar(status: Optional[str]) -> bool:
    return status not in CALENDAR_RELEASING_STATUSES


def _relevant(held: Iterable[HeldStay], exclude_id: Optional[UUID]) -> list[HeldStay]:
    return [
        h
        for h in held
        if holds_calendar(h.status) and (exclude_id is None or h.reservation_id != exclude_id)
    ]


def find_conflicts(
    stay: DateRange,
    held: Iterable[HeldStay],
    exclude_id: Optional[UUID] = None,
) -> list[HeldStay]:
    """Held stays whose nights overlap the candidate stay."""
    return [
        h
        for h in _relevant(held, exclude_id)
        if ranges_overlap(stay, DateRange(h.check_in, h.check_out))
    ]


def find_buffer_violations(
    stay: DateRange,
    held: Iterable[HeldStay],
    buffer_nights: int,
    exclude_id: Optional[UUID] = None,
) -> list[HeldStay]:
    """
    Held stays that sit inside the cleaning buffer around the candidate stay.

    With a buffer of N nights, an existing stay may not end fewer than N
    nights before check-in, nor begin fewer than N nights after check-out.
    Direct overlaps are reported by find_conflicts, not here.
    """
    if buffer_nights <= 0:
        return []
    widened = stay.widened(buffer_nights)
    return [
        h
        for h in _relevant(held, exclude_id)
        if ranges_overlap(widened, DateRange(h.check_in, h.check_out))
        and not ranges_overlap(stay, DateRange(h.check_in, h.check_out))
    ]


def is_stay_available(
    stay: DateRange,
    held: Iterable[HeldStay],
    buffer_nights: int = 0,
    exclude_id: Optional[UUID] = None,
) -> bool:
    """True if no held stay overlaps the stay or violates its buffer."""
    held = list(held)
    if find_conflicts(stay, held, exclude_id):
        return False
    return not find_buffer_violations(stay, held, buffer_nights, exclude_id)
