"""
Health and readiness check endpoints for Kubernetes probes.

Readiness depends on the database only. The search cache is reported but
never makes the service unready: the engine answers correctly without it.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.engine import Engine

from rental_booking.cache import CacheStore, RedisCacheStore
from rental_booking.db.engine import check_engine_health
from rental_booking.dependencies import get_cache_store, get_db_engine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness probe endpoint.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


def _cache_status(store: CacheStore) -> str:
    if not isinstance(store, RedisCacheStore):
        return "memory"
    try:
        store.client.ping()
    except (RedisError, OSError) as e:
        logger.warning("readiness_cache_unreachable", error=str(e))
        return "degraded"
    return "ok"


@router.get("/ready")
def readiness_check(
    db_engine: Engine = Depends(get_db_engine),
    store: CacheStore = Depends(get_cache_store),
) -> JSONResponse:
    """
    Readiness probe endpoint.

    Returns 503 if the database is not accessible.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"database": "ok", "cache": "ok"}}
    """
    checks = {"cache": _cache_status(store)}

    if check_engine_health(db_engine):
        checks["database"] = "ok"
        return JSONResponse(content={"status": "ready", "checks": checks})

    logger.error("readiness_check_failed", reason="database_not_accessible")
    checks["database"] = "failed"
    return JSONResponse(
        status_code=503,
        content={"status": "not ready", "checks": checks},
    )
