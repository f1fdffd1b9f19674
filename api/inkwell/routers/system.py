"""Liveness, public configuration and cache status."""

from __future__ import annotations

import logging
import time

import redis
from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..cache import get_redis_client

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=schemas.HealthResponse)
def health() -> schemas.HealthResponse:
    return schemas.HealthResponse(uptime_s=round(time.monotonic() - _STARTED_AT, 3))


@router.get("/config", response_model=schemas.Config)
def public_config() -> schemas.Config:
    """Limits clients need for form validation (comment depth, upload size, ...)."""
    return schemas.Config()


@router.get("/health/redis")
def cache_health() -> dict:
    """
    Whether the stats cache is reachable.

    503 means statistics are computed on every request; nothing else depends
    on Redis.
    """
    client = get_redis_client()
    try:
        reachable = client is not None and bool(client.ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        reachable = False

    if not reachable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cache unavailable")
    return {"status": "ok", "cache": "redis"}
