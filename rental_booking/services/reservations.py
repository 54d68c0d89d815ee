"""
Reservation lifecycle: creation, modification, status changes and expiry.

Creation is the only path that turns a quote into a calendar hold. Its
check-then-insert runs in one database transaction behind a row lock on the
listing, and the expiry job is scheduled inside that same transaction: if the
job cannot be scheduled the reservation is rolled back rather than left as a
hold that would never be released.
"""

from __future__ import annotations

import enum
import hashlib
import uuid
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from rental_booking import metrics
from rental_booking.cache import SearchCache
from rental_booking.config import RESERVATION_HOLD_MINUTES
from rental_booking.db.readers.listings import get_listing_row, get_listing_snapshot, lock_listing
from rental_booking.db.readers.reservations import (
    get_held_stays,
    get_reservation,
    get_reservation_for_update,
)
from rental_booking.db.writers.reservations import (
    UPDATABLE_COLUMNS,
    cancel_if_unpaid,
    insert_reservation,
    soft_delete_reservation,
    update_reservation_fields,
    update_reservation_status,
)
from rental_booking.engine.availability import is_range_open
from rental_booking.engine.conflicts import find_buffer_violations, find_conflicts
from rental_booking.engine.policy import (
    check_guest_capacity,
    parse_buffer_period,
    validate_booking_policy,
)
from rental_booking.engine.quote import verify_book_hash
from rental_booking.engine.types import DateRange, ListingSnapshot
from rental_booking.errors import (
    BookHashMismatchError,
    DatesUnavailableError,
    InvalidStatusTransitionError,
    JobSchedulingError,
    ListingNotFoundError,
    MissingBookHashError,
    PolicyViolationError,
    ReservationConflictError,
    ReservationNotFoundError,
    ValidationFailedError,
)
from rental_booking.models.enums import (
    CALENDAR_RELEASING_STATUSES,
    TERMINAL_STATUSES,
    ReservationStatus,
)
from rental_booking.models.reservations import NO_OVERLAP_CONSTRAINT
from rental_booking.tasks.queue import EXPIRE_RESERVATION_JOB, JobQueue
from rental_booking.utils.datetime import booking_now, utc_now

logger = structlog.get_logger(__name__)

S = ReservationStatus

ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    S.ORDER_CREATED: frozenset(
        {
            S.ORDER_WAITING_PAYMENT,
            S.ORDER_PAID_PARTIAL,
            S.ORDER_PAID_COMPLETED,
            S.ORDER_CANCELED,
            S.ORDER_FAIL,
        }
    ),
    S.ORDER_WAITING_PAYMENT: frozenset(
        {S.ORDER_PAID_PARTIAL, S.ORDER_PAID_COMPLETED, S.ORDER_CANCELED, S.ORDER_FAIL}
    ),
    S.ORDER_PAID_PARTIAL: frozenset(
        {
            S.ORDER_PAID_COMPLETED,
            S.ORDER_PROCESSING,
            S.ORDER_CANCELED,
            S.ORDER_FAIL,
            S.REFUND_PENDING,
        }
    ),
    S.ORDER_PAID_COMPLETED: frozenset(
        {S.ORDER_PROCESSING, S.ORDER_COMPLETED, S.ORDER_CANCELED, S.REFUND_PENDING}
    ),
    S.ORDER_PROCESSING: frozenset(
        {S.ORDER_COMPLETED, S.ORDER_CANCELED, S.ORDER_FAIL, S.REFUND_PENDING}
    ),
    S.REFUND_PENDING: frozenset({S.REFUND_COMPLETED, S.REFUND_FAIL}),
    S.ORDER_COMPLETED: frozenset(),
    S.ORDER_CANCELED: frozenset(),
    S.ORDER_FAIL: frozenset(),
    S.REFUND_COMPLETED: frozenset(),
    S.REFUND_FAIL: frozenset(),
}

# Payload fields copied verbatim onto a new reservation row
_CREATE_FIELDS = (
    "guest_id",
    "base_price",
    "tax",
    "service_fee",
    "guest_deposit",
    "total_price",
    "guest_number",
    "guest_info",
    "book_hash",
)


class ExpiryOutcome(str, enum.Enum):
    EXPIRED = "expired"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"


def generate_booking_number(reservation_id: UUID, created_at: datetime) -> str:
    """Human-facing booking reference, e.g. SH-3FA85F6457."""
    digest = hashlib.sha256(f"{reservation_id}-{created_at.isoformat()}".encode("utf-8"))
    return f"SH-{digest.hexdigest()[:10].upper()}"


def is_overlap_violation(error: IntegrityError) -> bool:
    """True if the database rejected a row for overlapping another stay."""
    orig = error.orig
    # 23P01 = exclusion_violation
    if getattr(orig, "sqlstate", None) == "23P01" or getattr(orig, "pgcode", None) == "23P01":
        return True
    return NO_OVERLAP_CONSTRAINT in str(orig)


def _as_uuid(value: Any) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class ReservationLifecycleManager:
    """
    Owns every write to the reservations table.

    The expiry job of a new hold is published inside the creating transaction,
    so a broker failure rolls the hold back instead of leaving a reservation
    that never expires. The cost is one broker round trip while the listing
    row is locked; CeleryJobQueue publishes without retries and the broker
    socket timeouts cap that wait.

    Args:
        db_engine: SQLAlchemy engine
        job_queue: Queue used to schedule the expiry of unpaid holds
        cache: Search cache to invalidate after calendar changes (optional)
        hold_minutes: How long an unpaid reservation holds the calendar
        clock: Returns "now" in the booking timezone (policy evaluation)
    """

    def __init__(
        self,
        db_engine: Engine,
        job_queue: JobQueue,
        cache: Optional[SearchCache] = None,
        hold_minutes: int = RESERVATION_HOLD_MINUTES,
        clock: Callable[[], datetime] = booking_now,
    ) -> None:
        self.engine = db_engine
        self.job_queue = job_queue
        self.cache = cache
        self.hold_minutes = hold_minutes
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    def create_reservation(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Create a reservation from a quoted, hashed draft.

        Args:
            payload: Draft fields (listing_id, check_in_date, check_out_date,
                night_staying, total_price, guest_number, book_hash, guest and
                price pass-through fields)

        Returns:
            dict: The stored reservation row, in ORDER_CREATED

        Raises:
            MissingBookHashError / BookHashMismatchError: quote integrity failed
            InvalidDateRangeError, PolicyViolationError, DatesUnavailableError
            ListingNotFoundError: listing missing or deleted
            ReservationConflictError: dates (or buffer) taken by another stay
            JobSchedulingError: expiry job could not be scheduled
        """
        book_hash = payload.get("book_hash")
        if not book_hash:
            metrics.reservation_rejections.labels(reason="book_hash").inc()
            raise MissingBookHashError()
        if not verify_book_hash(payload, book_hash):
            metrics.reservation_rejections.labels(reason="book_hash").inc()
            logger.warning("book_hash_mismatch", listing_id=str(payload.get("listing_id")))
            raise BookHashMismatchError()

        listing_id = _as_uuid(payload["listing_id"])
        stay = DateRange(_as_date(payload["check_in_date"]), _as_date(payload["check_out_date"]))
        night_staying = payload.get("night_staying")
        if night_staying is not None and int(night_staying) != stay.nights:
            raise ValidationFailedError("night_staying does not match the selected dates")

        reservation_id = uuid.uuid4()
        now = utc_now()

        with metrics.db_query_duration.labels(operation="create_reservation").time():
            try:
                with self.engine.begin() as conn:
                    listing = self._lock_and_load_listing(conn, listing_id)
                    self._validate_stay(listing, stay, payload.get("guest_number"))
                    self._ensure_no_conflict(conn, listing, stay)

                    row = {field: payload.get(field) for field in _CREATE_FIELDS}
                    row.update(
                        id=reservation_id,
                        booking_number=generate_booking_number(reservation_id, now),
                        listing_id=listing.id,
                        host_id=payload.get("host_id") or listing.host_id,
                        listing_name=listing.name,
                        listing_address=listing.address,
                        check_in_date=stay.check_in,
                        check_out_date=stay.check_out,
                        night_staying=stay.nights,
                        status=ReservationStatus.ORDER_CREATED.value,
                        created_at=now,
                        updated_at=now,
                    )
                    insert_reservation(conn, row)
                    self._schedule_expiry(reservation_id)
                    reservation = get_reservation(conn, reservation_id)
            except IntegrityError as e:
                if not is_overlap_violation(e):
                    raise
                metrics.reservation_rejections.labels(reason="conflict").inc()
                logger.info("reservation_overlap_rejected_by_database", listing_id=str(listing_id))
                raise ReservationConflictError() from e

        if reservation is None:
            raise ReservationNotFoundError("Reservation not found")
        metrics.reservations_created.inc()
        logger.info(
            "reservation_created",
            reservation_id=str(reservation_id),
            booking_number=reservation["booking_number"],
            listing_id=str(listing_id),
            check_in=stay.check_in.isoformat(),
            check_out=stay.check_out.isoformat(),
        )
        self._invalidate(listing.slug)
        return reservation

    def _lock_and_load_listing(self, conn: Connection, listing_id: UUID) -> ListingSnapshot:
        if not lock_listing(conn, listing_id):
            raise ListingNotFoundError("Listing not found")
        listing = get_listing_snapshot(conn, listing_id=listing_id)
        if listing is None:
            raise ListingNotFoundError("Listing not found")
        return listing

    def _validate_stay(
        self, listing: ListingSnapshot, stay: DateRange, guest_number: Optional[int]
    ) -> None:
        try:
            validate_booking_policy(listing, stay, self.clock())
            check_guest_capacity(listing, guest_number)
        except PolicyViolationError as e:
            metrics.reservation_rejections.labels(reason="policy").inc()
            logger.info("reservation_policy_violation", listing_id=str(listing.id), rule=e.rule)
            raise

        if not is_range_open(listing.default_availability, listing.availability_overrides, stay):
            metrics.reservation_rejections.labels(reason="unavailable").inc()
            raise DatesUnavailableError()

    def _ensure_no_conflict(
        self,
        conn: Connection,
        listing: ListingSnapshot,
        stay: DateRange,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        buffer_nights = parse_buffer_period(listing.buffer_period)
        held = get_held_stays(conn, listing.id, stay.widened(buffer_nights), exclude_id)

        conflicts = find_conflicts(stay, held, exclude_id)
        if conflicts:
            metrics.reservation_rejections.labels(reason="conflict").inc()
            logger.info(
                "reservation_conflict",
                listing_id=str(listing.id),
                conflicting_ids=[str(h.reservation_id) for h in conflicts],
            )
            raise ReservationConflictError()

        if find_buffer_violations(stay, held, buffer_nights, exclude_id):
            metrics.reservation_rejections.labels(reason="buffer").inc()
            logger.info(
                "reservation_buffer_violation",
                listing_id=str(listing.id),
                buffer_nights=buffer_nights,
            )
            raise ReservationConflictError(
                f"The selected dates are too close to another stay "
                f"(buffer period of {buffer_nights} night(s))."
            )

    def _schedule_expiry(self, reservation_id: UUID) -> None:
        try:
            self.job_queue.enqueue(
                EXPIRE_RESERVATION_JOB,
                {"reservation_id": str(reservation_id)},
                delay_ms=self.hold_minutes * 60 * 1000,
                remove_on_complete=True,
                remove_on_fail=False,
            )
        except JobSchedulingError:
            metrics.reservation_rejections.labels(reason="scheduling").inc()
            raise

    # ------------------------------------------------------------------ #
    # Reads and modifications
    # ------------------------------------------------------------------ #

    def get_reservation(self, reservation_id: UUID) -> dict[str, Any]:
        with self.engine.connect() as conn:
            reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise ReservationNotFoundError("Reservation not found")
        return reservation

    def update_reservation(
        self, reservation_id: UUID, changes: Mapping[str, Any]
    ) -> dict[str, Any]:
        """
        Update non-status fields of a reservation.

        Date changes are re-checked against every other stay of the listing
        (including the buffer period) inside the same locked transaction.

        Raises:
            ReservationNotFoundError: unknown or deleted reservation
            InvalidStatusTransitionError: reservation no longer holds the calendar
            InvalidDateRangeError, ReservationConflictError
        """
        values = {k: v for k, v in changes.items() if k in UPDATABLE_COLUMNS and v is not None}

        with metrics.db_query_duration.labels(operation="update_reservation").time():
            try:
                with self.engine.begin() as conn:
                    current = get_reservation_for_update(conn, reservation_id)
                    if current is None:
                        raise ReservationNotFoundError("Reservation not found")
                    if current["status"] in TERMINAL_STATUSES:
                        raise InvalidStatusTransitionError(
                            f"Reservation in status {current['status']} can no longer be modified"
                        )

                    new_in = _as_date(values.get("check_in_date", current["check_in_date"]))
                    new_out = _as_date(values.get("check_out_date", current["check_out_date"]))
                    listing_slug = None
                    if (new_in, new_out) != (current["check_in_date"], current["check_out_date"]):
                        stay = DateRange(new_in, new_out)
                        listing = self._lock_and_load_listing(conn, current["listing_id"])
                        self._ensure_no_conflict(conn, listing, stay, exclude_id=reservation_id)
                        values.update(
                            check_in_date=new_in, check_out_date=new_out, night_staying=stay.nights
                        )
                        listing_slug = listing.slug

                    update_reservation_fields(conn, reservation_id, values)
                    reservation = get_reservation(conn, reservation_id)
            except IntegrityError as e:
                if not is_overlap_violation(e):
                    raise
                raise ReservationConflictError() from e

        if reservation is None:
            raise ReservationNotFoundError("Reservation not found")
        logger.info(
            "reservation_updated", reservation_id=str(reservation_id), fields=sorted(values)
        )
        if listing_slug:
            self._invalidate(listing_slug)
        return reservation

    def transition_status(
        self,
        reservation_id: UUID,
        new_status: ReservationStatus,
        cancel_reason: Optional[str] = None,
        cancelled_by_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        """
        Move a reservation to a new status along ALLOWED_TRANSITIONS.

        Setting the status a reservation already has is a no-op, so retried
        payment notifications are harmless.

        Raises:
            ReservationNotFoundError
            InvalidStatusTransitionError: transition not allowed from the current status
        """
        new_status = ReservationStatus(new_status)
        with self.engine.begin() as conn:
            current = get_reservation_for_update(conn, reservation_id)
            if current is None:
                raise ReservationNotFoundError("Reservation not found")

            from_status = ReservationStatus(current["status"])
            if from_status == new_status:
                return current
            if new_status not in ALLOWED_TRANSITIONS[from_status]:
                raise InvalidStatusTransitionError(
                    f"Cannot change reservation status from {from_status.value} "
                    f"to {new_status.value}"
                )

            update_reservation_status(
                conn, reservation_id, new_status, cancel_reason, cancelled_by_id
            )
            reservation = get_reservation(conn, reservation_id)
            listing_row = get_listing_row(conn, listing_id=current["listing_id"])

        if reservation is None:
            raise ReservationNotFoundError("Reservation not found")
        metrics.status_transitions.labels(
            from_status=from_status.value, to_status=new_status.value
        ).inc()
        logger.info(
            "reservation_status_changed",
            reservation_id=str(reservation_id),
            from_status=from_status.value,
            to_status=new_status.value,
        )
        if new_status.value in CALENDAR_RELEASING_STATUSES and listing_row:
            self._invalidate(listing_row["slug"])
        return reservation

    def cancel_reservation(
        self,
        reservation_id: UUID,
        reason: Optional[str] = None,
        cancelled_by_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        return self.transition_status(
            reservation_id, ReservationStatus.ORDER_CANCELED, reason, cancelled_by_id
        )

    def remove_reservation(self, reservation_id: UUID) -> None:
        """Administrative soft delete."""
        with self.engine.begin() as conn:
            current = get_reservation_for_update(conn, reservation_id)
            if current is None:
                raise ReservationNotFoundError("Reservation not found")
            soft_delete_reservation(conn, reservation_id)
            listing_row = get_listing_row(conn, listing_id=current["listing_id"])

        logger.info("reservation_removed", reservation_id=str(reservation_id))
        if listing_row:
            self._invalidate(listing_row["slug"])

    # ------------------------------------------------------------------ #
    # Expiry
    # ------------------------------------------------------------------ #

    def expire_reservation(self, reservation_id: UUID) -> ExpiryOutcome:
        """
        Release an unpaid hold once its hold window has passed.

        Only ORDER_CREATED and ORDER_WAITING_PAYMENT are cancelled; every other
        status is left untouched. Safe to run any number of times.

        Returns:
            ExpiryOutcome: EXPIRED, SKIPPED or NOT_FOUND
        """
        listing_row = None
        with self.engine.begin() as conn:
            if cancel_if_unpaid(conn, reservation_id):
                outcome = ExpiryOutcome.EXPIRED
                reservation = get_reservation(conn, reservation_id)
                if reservation is not None:
                    listing_row = get_listing_row(conn, listing_id=reservation["listing_id"])
            elif get_reservation(conn, reservation_id, include_deleted=True) is not None:
                outcome = ExpiryOutcome.SKIPPED
            else:
                outcome = ExpiryOutcome.NOT_FOUND

        logger.info(
            "reservation_expiry_processed",
            reservation_id=str(reservation_id),
            outcome=outcome.value,
        )
        if listing_row:
            self._invalidate(listing_row["slug"])
        return outcome

    def _invalidate(self, slug: Optional[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate_listing(slug)
