"""
Unit tests for reservation endpoints.
"""

from __future__ import annotations

import uuid
from typing import Any
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from rental_booking.engine.quote import generate_book_hash
from rental_booking.errors import JobSchedulingError
from rental_booking.services.reservations import ReservationLifecycleManager

BASE = "/api/v1/reservations"


def terms(listing_id: Any, check_in: str = "2024-12-01", check_out: str = "2024-12-05", **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "listing_id": str(listing_id),
        "check_in_date": check_in,
        "check_out_date": check_out,
        "night_staying": 4,
        "total_price": 400.0,
        "guest_number": 2,
    }
    body.update(extra)
    return body


def hashed(body: dict[str, Any]) -> dict[str, Any]:
    return {**body, "book_hash": generate_book_hash(body)}


@pytest.fixture
def reservation(client: TestClient, listing: dict[str, Any]) -> dict[str, Any]:
    response = client.post(BASE, json=hashed(terms(listing["id"])))
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Book hash and pre-booking
# =============================================================================


@pytest.mark.unit
def test_generate_book_hash(client: TestClient, listing: dict[str, Any]) -> None:
    body = terms(listing["id"])

    response = client.post(f"{BASE}/generate-book-hash", json=body)

    assert response.status_code == 200
    assert response.json() == {"book_hash": generate_book_hash(body)}


@pytest.mark.unit
def test_pre_booking_round_trip(client: TestClient, listing: dict[str, Any]) -> None:
    body = terms(listing["id"], guest_info=[{"name": "Ada Lovelace"}])

    staged = client.post(f"{BASE}/pre-booking", json=body)
    book_hash = staged.json()["book_hash"]
    fetched = client.get(f"{BASE}/pre-booking/{book_hash}")

    assert staged.status_code == 200
    assert fetched.status_code == 200
    assert fetched.json()["book_hash"] == book_hash
    assert fetched.json()["check_in_date"] == "2024-12-01"


@pytest.mark.unit
def test_pre_booking_not_found(client: TestClient) -> None:
    response = client.get(f"{BASE}/pre-booking/{'a' * 64}")

    assert response.status_code == 404
    assert response.json() == {
        "error": "Pre-reservation data not found",
        "code": "pre_reservation.not_found",
    }


@pytest.mark.unit
def test_pre_booking_with_wrong_hash(client: TestClient, listing: dict[str, Any]) -> None:
    response = client.post(f"{BASE}/pre-booking", json={**terms(listing["id"]), "book_hash": "x"})

    assert response.status_code == 422
    assert response.json()["code"] == "integrity.book_hash_mismatch"


# =============================================================================
# Creation
# =============================================================================


@pytest.mark.unit
def test_create_reservation(reservation: dict[str, Any], listing: dict[str, Any]) -> None:
    assert reservation["status"] == "ORDER_CREATED"
    assert reservation["listing_id"] == str(listing["id"])
    assert reservation["night_staying"] == 4
    assert reservation["booking_number"].startswith("SH-")


@pytest.mark.unit
def test_create_overlapping_reservation_conflicts(
    client: TestClient, listing: dict[str, Any], reservation: dict[str, Any]
) -> None:
    body = hashed(terms(listing["id"], "2024-12-03", "2024-12-07"))

    response = client.post(BASE, json=body)

    assert response.status_code == 409
    assert response.json() == {
        "error": "The selected date range is already reserved.",
        "code": "reservation.dates_taken",
    }


@pytest.mark.unit
def test_create_with_altered_price_is_rejected(client: TestClient, listing: dict[str, Any]) -> None:
    body = hashed(terms(listing["id"]))
    body["total_price"] = 1.0

    response = client.post(BASE, json=body)

    assert response.status_code == 422
    assert response.json()["error"] == "The reservation details have been altered."


@pytest.mark.unit
def test_create_without_hash(client: TestClient, listing: dict[str, Any]) -> None:
    response = client.post(BASE, json=terms(listing["id"]))

    assert response.status_code == 400
    assert response.json()["code"] == "validation.book_hash_required"


@pytest.mark.unit
def test_create_policy_violation_names_rule(
    client: TestClient, listing_factory: Any
) -> None:
    strict = listing_factory(min_booking_night=7)

    response = client.post(BASE, json=hashed(terms(strict["id"])))

    assert response.status_code == 400
    assert response.json()["rule"] == "min_booking_night"


@pytest.mark.unit
def test_create_for_unknown_listing(client: TestClient) -> None:
    response = client.post(BASE, json=hashed(terms(uuid.uuid4())))

    assert response.status_code == 404
    assert response.json()["code"] == "listing.not_found"


@pytest.mark.unit
def test_create_with_invalid_body(client: TestClient) -> None:
    response = client.post(BASE, json={"listing_id": "not-a-uuid"})

    assert response.status_code == 422


@pytest.mark.unit
def test_scheduling_failure_returns_503(
    client: TestClient, manager: ReservationLifecycleManager, listing: dict[str, Any]
) -> None:
    manager.job_queue = Mock()
    manager.job_queue.enqueue.side_effect = JobSchedulingError()

    response = client.post(BASE, json=hashed(terms(listing["id"])))

    assert response.status_code == 503
    assert response.json()["code"] == "infrastructure.job_scheduling_failed"


@pytest.mark.unit
def test_unexpected_error_returns_500(
    client: TestClient, manager: ReservationLifecycleManager, listing: dict[str, Any]
) -> None:
    manager.job_queue = Mock()
    manager.job_queue.enqueue.side_effect = RuntimeError("broken")

    response = client.post(BASE, json=hashed(terms(listing["id"])))

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


# =============================================================================
# Reads and modifications
# =============================================================================


@pytest.mark.unit
def test_get_reservation(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.get(f"{BASE}/{reservation['id']}")

    assert response.status_code == 200
    assert response.json()["id"] == reservation["id"]


@pytest.mark.unit
def test_get_unknown_reservation(client: TestClient) -> None:
    response = client.get(f"{BASE}/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["code"] == "reservation.not_found"


@pytest.mark.unit
def test_patch_reservation_dates(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.patch(
        f"{BASE}/{reservation['id']}", json={"check_out_date": "2024-12-06", "guest_number": 3}
    )

    assert response.status_code == 200
    assert response.json()["check_out_date"] == "2024-12-06"
    assert response.json()["night_staying"] == 5
    assert response.json()["guest_number"] == 3


@pytest.mark.unit
def test_patch_reversed_dates(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.patch(f"{BASE}/{reservation['id']}", json={"check_out_date": "2024-11-30"})

    assert response.status_code == 400
    assert response.json()["error"] == "Start date must be before end date"


@pytest.mark.unit
def test_status_change(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.post(
        f"{BASE}/{reservation['id']}/status", json={"status": "ORDER_PAID_COMPLETED"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ORDER_PAID_COMPLETED"


@pytest.mark.unit
def test_invalid_status_change(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.post(f"{BASE}/{reservation['id']}/status", json={"status": "REFUND_COMPLETED"})

    assert response.status_code == 409
    assert response.json()["code"] == "reservation.invalid_status_transition"


@pytest.mark.unit
def test_unknown_status_value(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.post(f"{BASE}/{reservation['id']}/status", json={"status": "PAID"})

    assert response.status_code == 422


@pytest.mark.unit
def test_cancel_reservation(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.post(f"{BASE}/{reservation['id']}/cancel", json={"reason": "plans changed"})

    assert response.status_code == 200
    assert response.json()["status"] == "ORDER_CANCELED"
    assert response.json()["cancel_reason"] == "plans changed"


@pytest.mark.unit
def test_delete_reservation(client: TestClient, reservation: dict[str, Any]) -> None:
    response = client.delete(f"{BASE}/{reservation['id']}")

    assert response.status_code == 204
    assert client.get(f"{BASE}/{reservation['id']}").status_code == 404
