"""Book hash generation and pre-reservation staging."""

from __future__ import annotations

import hmac
import json
from typing import Any, Mapping

import structlog
from redis.exceptions import RedisError

from rental_booking.cache import PRE_RESERVATION_PREFIX, CacheStore
from rental_booking.config import PRE_RESERVATION_TTL_SECONDS
from rental_booking.engine.quote import generate_book_hash
from rental_booking.errors import (
    BookHashMismatchError,
    InfrastructureError,
    PreReservationNotFoundError,
)

logger = structlog.get_logger(__name__)


def pre_reservation_key(book_hash: str) -> str:
    return f"{PRE_RESERVATION_PREFIX}:{book_hash}"


class QuoteService:
    """
    Stages quoted drafts between the availability check and the booking.

    Unlike the search cache, staged drafts are the client's only copy of the
    quote, so store failures are reported instead of ignored.
    """

    def __init__(self, store: CacheStore, ttl_seconds: int = PRE_RESERVATION_TTL_SECONDS) -> None:
        self.store = store
        self.ttl_ms = ttl_seconds * 1000

    def generate_book_hash(self, terms: Mapping[str, Any]) -> str:
        return generate_book_hash(terms)

    def stage_pre_reservation(self, payload: Mapping[str, Any]) -> str:
        """
        Store a draft reservation under its book hash for one hour.

        Args:
            payload: JSON-compatible draft (dates as ISO strings)

        Returns:
            str: The book hash the draft is stored under

        Raises:
            BookHashMismatchError: payload carries a book_hash that does not match it
            InfrastructureError: the store is unreachable
        """
        book_hash = generate_book_hash(payload)
        supplied = payload.get("book_hash")
        if supplied and not hmac.compare_digest(supplied, book_hash):
            raise BookHashMismatchError()

        draft = {**payload, "book_hash": book_hash}
        try:
            self.store.set(
                pre_reservation_key(book_hash), json.dumps(draft, default=str), self.ttl_ms
            )
        except (RedisError, OSError) as e:
            logger.error("pre_reservation_store_failed", error=str(e))
            raise InfrastructureError("Could not stage the pre-reservation") from e

        logger.info(
            "pre_reservation_staged",
            book_hash=book_hash,
            listing_id=str(payload.get("listing_id")),
        )
        return book_hash

    def get_pre_reservation(self, book_hash: str) -> dict[str, Any]:
        """
        Raises:
            PreReservationNotFoundError: unknown or expired hash
            InfrastructureError: the store is unreachable
        """
        try:
            raw = self.store.get(pre_reservation_key(book_hash))
        except (RedisError, OSError) as e:
            logger.error("pre_reservation_read_failed", error=str(e))
            raise InfrastructureError("Could not read the pre-reservation") from e
        if raw is None:
            raise PreReservationNotFoundError()
        return json.loads(raw)
