"""
Error taxonomy for the booking engine.

Route handlers translate these into HTTP responses (see routes/errors.py).
The categories matter to clients: a conflict means "try different dates",
an integrity violation means "re-quote", and an unavailable listing is
reported uniformly so the failing rule is not leaked.
"""

from __future__ import annotations

from typing import Optional

UNAVAILABLE_MESSAGE = "Listing not found or not available for the selected dates"


class BookingError(Exception):
    """Base class for all domain errors raised by the booking engine."""

    code = "booking.error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# =============================================================================
# Validation / availability
# =============================================================================


class ValidationFailedError(BookingError):
    code = "validation.failed"


class InvalidDateRangeError(ValidationFailedError):
    code = "validation.invalid_date_range"

    def __init__(self, message: str = "Start date must be before end date") -> None:
        super().__init__(message)


class PolicyViolationError(ValidationFailedError):
    """A listing booking policy rejected the stay. `rule` names the failing policy."""

    code = "validation.policy_violation"

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule


class DatesUnavailableError(ValidationFailedError):
    code = "validation.dates_unavailable"

    def __init__(
        self, message: str = "The listing is not available for the selected dates"
    ) -> None:
        super().__init__(message)


class ListingUnavailableError(ValidationFailedError):
    """Uniform failure for the search / availability read path."""

    code = "validation.is_not_found"

    def __init__(self, message: str = UNAVAILABLE_MESSAGE) -> None:
        super().__init__(message)


class InvalidSearchError(ValidationFailedError):
    code = "validation.invalid_search"


class MissingBookHashError(ValidationFailedError):
    code = "validation.book_hash_required"

    def __init__(self, message: str = "book_hash is required") -> None:
        super().__init__(message)


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(BookingError):
    code = "not_found"


class ListingNotFoundError(NotFoundError):
    code = "listing.not_found"


class ReservationNotFoundError(NotFoundError):
    code = "reservation.not_found"


class PreReservationNotFoundError(NotFoundError):
    code = "pre_reservation.not_found"

    def __init__(self, message: str = "Pre-reservation data not found") -> None:
        super().__init__(message)


class OverrideNotFoundError(NotFoundError):
    code = "override.not_found"


# =============================================================================
# Integrity
# =============================================================================


class IntegrityViolationError(BookingError):
    code = "integrity.violation"


class BookHashMismatchError(IntegrityViolationError):
    code = "integrity.book_hash_mismatch"

    def __init__(self, message: str = "The reservation details have been altered.") -> None:
        super().__init__(message)


# =============================================================================
# Conflicts
# =============================================================================


class ConflictError(BookingError):
    code = "conflict"


class ReservationConflictError(ConflictError):
    code = "reservation.dates_taken"

    def __init__(self, message: str = "The selected date range is already reserved.") -> None:
        super().__init__(message)


class DuplicateOverrideError(ConflictError):
    code = "override.duplicate"


class InvalidStatusTransitionError(ConflictError):
    code = "reservation.invalid_status_transition"


# =============================================================================
# Infrastructure
# =============================================================================


class InfrastructureError(BookingError):
    code = "infrastructure.unavailable"


class JobSchedulingError(InfrastructureError):
    code = "infrastructure.job_scheduling_failed"

    def __init__(
        self, message: str = "Could not schedule reservation expiry; reservation not created"
    ) -> None:
        super().__init__(message)
