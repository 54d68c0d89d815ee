"""
Book hash: a fingerprint binding the material terms of a quoted stay.

The hash covers listing id, dates, night count, total price and guest
count. A client that alters any of them after quoting no longer matches the
hash it was given, and the reservation is rejected.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import date, datetime
from typing import Any, Mapping, Optional

BOOK_HASH_FIELDS = (
    "listing_id",
    "check_in_date",
    "check_out_date",
    "night_staying",
    "total_price",
    "guest_number",
)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        # 150.0 and 150 must hash the same
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def book_hash_payload(terms: Mapping[str, Any]) -> str:
    """Canonical string the digest is computed over."""
    return "-".join(_render(terms.get(name)) for name in BOOK_HASH_FIELDS)


def generate_book_hash(terms: Mapping[str, Any]) -> str:
    """
    Compute the book hash for a draft reservation.

    Args:
        terms: Mapping with the material reservation fields

    Returns:
        str: SHA-256 hex digest
    """
    return hashlib.sha256(book_hash_payload(terms).encode("utf-8")).hexdigest()


def verify_book_hash(terms: Mapping[str, Any], book_hash: Optional[str]) -> bool:
    """True if book_hash matches the terms it claims to bind."""
    if not book_hash:
        return False
    return hmac.compare_digest(generate_book_hash(terms), book_hash)
