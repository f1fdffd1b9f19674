"""Optional Redis cache for computed statistics.

Keys are stored under ``CACHE_PREFIX`` so several deployments can share a
Redis database. With ``REDIS_URL`` set to an empty string, or while the
server is unreachable, reads miss and writes are dropped.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, TypeVar

import redis

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
CACHE_PREFIX = os.getenv("CACHE_PREFIX", "inkwell:")
DEFAULT_TTL = 300

# After a failed connection, wait this long before trying again
RECONNECT_BACKOFF_S = 30

T = TypeVar("T")

_client: redis.Redis | None = None
_failed_at: float | None = None


def get_redis_client() -> redis.Redis | None:
    """Shared client, connected lazily; None while the cache is off or down."""
    global _client, _failed_at

    if _client is not None:
        return _client

    url = os.getenv("REDIS_URL", DEFAULT_REDIS_URL)
    if not url:
        return None
    if _failed_at is not None and time.monotonic() - _failed_at < RECONNECT_BACKOFF_S:
        return None

    try:
        candidate = redis.from_url(url, decode_responses=True, socket_connect_timeout=1)
        candidate.ping()
    except (redis.RedisError, ValueError) as e:
        _failed_at = time.monotonic()
        logger.warning(f"Stats cache disabled, Redis not reachable: {e}")
        return None

    _client, _failed_at = candidate, None
    logger.info(f"Stats cache connected ({url.rsplit('@', 1)[-1]})")
    return _client


def _key(name: str) -> str:
    return f"{CACHE_PREFIX}{name}"


def _run(op: str, name: str, call: Callable[[redis.Redis], T], default: T) -> T:
    """Run ``call`` against the client, logging and returning ``default`` on failure."""
    client = get_redis_client()
    if client is None:
        return default
    try:
        return call(client)
    except redis.RedisError as e:
        logger.warning(f"Cache {op} failed for '{name}': {e}")
        return default


def cache_get(name: str) -> Any | None:
    """JSON-decoded value stored under ``name``, or None."""
    raw = _run("get", name, lambda c: c.get(_key(name)), None)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Discarding undecodable cache entry '{name}'")
        return None


def cache_set(name: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
    """Store ``value`` as JSON for ``ttl`` seconds."""
    payload = json.dumps(value, default=str)
    return _run("set", name, lambda c: bool(c.setex(_key(name), ttl, payload)), False)


def cache_delete(name: str) -> bool:
    return _run("delete", name, lambda c: bool(c.delete(_key(name))), False)


def cache_invalidate(pattern: str) -> int:
    """Delete every key matching a glob ``pattern`` (e.g. ``post_stats:12:*``)."""

    def _purge(client: redis.Redis) -> int:
        keys = list(client.scan_iter(match=_key(pattern)))
        return client.delete(*keys) if keys else 0

    deleted = _run("invalidate", pattern, _purge, 0)
    if deleted:
        logger.debug(f"Invalidated {deleted} cache entries matching '{pattern}'")
    return deleted
