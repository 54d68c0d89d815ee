"""
Prometheus metrics for availability lookups, reservations and background jobs.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., reservations created)
    - Histogram: Observations bucketed by value (e.g., query latency)

Example:
    >>> from rental_booking.metrics import availability_checks
    >>> availability_checks.labels(outcome="available").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Read Path Metrics
# =============================================================================

availability_checks = Counter(
    "booking_availability_checks_total",
    "Total single-listing availability checks",
    ["outcome"],
)
"""
Counter for availability checks.

Labels:
    outcome: available, unavailable, cached_available, cached_unavailable, invalid
"""

search_requests = Counter(
    "booking_search_requests_total",
    "Total multi-listing search requests",
    ["source"],
)
"""
Counter for search requests.

Labels:
    source: cache or database
"""

cache_operations = Counter(
    "booking_cache_operations_total",
    "Search cache operations by result",
    ["operation", "result"],
)
"""
Counter for cache operations.

Labels:
    operation: get, set, invalidate
    result: hit, miss, ok, error
"""

# =============================================================================
# Reservation Metrics
# =============================================================================

reservations_created = Counter(
    "booking_reservations_created_total",
    "Total reservations created",
)

reservation_rejections = Counter(
    "booking_reservation_rejections_total",
    "Reservation create/update attempts rejected by the engine",
    ["reason"],
)
"""
Counter for rejected reservation writes.

Labels:
    reason: conflict, buffer, book_hash, policy, unavailable, scheduling
"""

status_transitions = Counter(
    "booking_reservation_status_transitions_total",
    "Reservation status transitions",
    ["from_status", "to_status"],
)

# =============================================================================
# Background Job Metrics
# =============================================================================

expiry_jobs = Counter(
    "booking_expiry_jobs_total",
    "Reservation expiry job executions by outcome",
    ["outcome"],
)
"""
Counter for expiry jobs.

Labels:
    outcome: expired, skipped, not_found, failed
"""

# =============================================================================
# Database Metrics
# =============================================================================

db_query_duration = Histogram(
    "booking_db_query_duration_seconds",
    "Database query execution time in seconds",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
"""
Histogram for database query duration.

Labels:
    operation: create_reservation, update_reservation, check_availability, search

Buckets: 0.01s, 0.05s, 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, +Inf
"""
