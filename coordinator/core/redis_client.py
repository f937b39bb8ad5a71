"""Shared Redis connection plus the gate throttle and directory cache built on it."""

import json
from typing import Any, cast

import redis
import structlog

from coordinator.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Return the process-wide Redis client, connecting lazily.

    Change events, gate scan throttling and the provider list cache all go
    through this one client.
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; any failure counts as unreachable."""
    try:
        get_redis_client().ping()
    except Exception as e:
        logger.warning("redis_unreachable", error=str(e))
        return False
    return True


def close_redis_connection() -> None:
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class ScanThrottle:
    """
    Per-device budget of badge scans in a fixed window.

    The first scan in a window creates the counter with an expiry; later
    scans bump it until the budget is spent. Redis errors let the scan
    through so a cache outage never locks students out at the gate.
    """

    KEY_PREFIX = "ratelimit:gate"

    def __init__(self, redis_client: redis.Redis, budget: int, window_seconds: int = 60):
        self.redis = redis_client
        self.budget = budget
        self.window_seconds = window_seconds

    def key_for(self, device_id: str) -> str:
        return f"{self.KEY_PREFIX}:{device_id}"

    def allow(self, device_id: str) -> bool:
        """Count one scan from ``device_id`` and report whether it fits the budget."""
        key = self.key_for(device_id)
        try:
            used = cast(str | None, self.redis.get(key))
            if used is None:
                self.redis.setex(key, self.window_seconds, 1)
                return True
            if int(used) >= self.budget:
                return False
            self.redis.incr(key)
        except Exception as e:
            logger.warning("scan_throttle_unavailable", device_id=device_id, error=str(e))
        return True


class JsonCache:
    """Short-lived JSON snapshots of directory reads."""

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int | None = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    def load(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss or a Redis error."""
        try:
            raw = cast(str | None, self.redis.get(key))
        except Exception:
            return None
        return json.loads(raw) if raw else None

    def store(self, key: str, value: Any) -> bool:
        """Cache ``value`` under ``key``; False if Redis rejected the write."""
        encoded = json.dumps(value, default=str)
        try:
            if self.ttl_seconds:
                self.redis.setex(key, self.ttl_seconds, encoded)
            else:
                self.redis.set(key, encoded)
        except Exception:
            return False
        return True
