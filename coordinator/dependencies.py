"""FastAPI dependencies."""

from typing import Annotated

import redis
import structlog
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import RateLimitException
from coordinator.core.redis_client import JsonCache, ScanThrottle, get_redis_client
from coordinator.core.security import read_actor_token
from coordinator.database import get_db
from coordinator.schemas.appointments import GateScanRequest
from coordinator.schemas.auth import Actor

logger = structlog.get_logger(__name__)

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Actor:
    """
    Extract the caller's identity and role from the JWT.

    Args:
        credentials: Bearer token credentials

    Returns:
        Authenticated actor

    Raises:
        HTTPException: If token is invalid, expired or lacks a role
    """
    actor = read_actor_token(credentials.credentials)
    if actor is None:
        raise _credentials_error()
    return actor


def get_redis() -> redis.Redis:
    """Shared Redis client."""
    return get_redis_client()


def get_change_publisher(
    redis_client: Annotated[redis.Redis, Depends(get_redis)],
) -> ChangePublisher:
    """Publisher for row change events."""
    return ChangePublisher(redis_client)


def get_directory_cache(
    redis_client: Annotated[redis.Redis, Depends(get_redis)],
) -> JsonCache:
    """Directory cache backed by Redis."""
    return JsonCache(redis_client, ttl_seconds=settings.provider_cache_ttl_seconds)


async def verify_gate_device(
    x_gate_secret: Annotated[str | None, Header()] = None,
) -> None:
    """
    Check the shared secret presented by an entry-gate device.

    Raises:
        HTTPException: If the secret is missing or wrong
    """
    if x_gate_secret != settings.gate_device_secret:
        logger.warning("gate_device_rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid gate device credentials",
        )


async def limit_gate_scans(
    data: GateScanRequest,
    redis_client: Annotated[redis.Redis, Depends(get_redis)],
) -> GateScanRequest:
    """
    Throttle badge scans per gate device.

    Raises:
        RateLimitException: If the device exceeded its per-minute budget
    """
    throttle = ScanThrottle(redis_client, settings.gate_scan_rate_limit_per_minute)
    if not throttle.allow(data.device_id):
        logger.warning("gate_scan_rate_limited", device_id=data.device_id)
        raise RateLimitException("Too many scans from this gate device")
    return data


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
Publisher = Annotated[ChangePublisher, Depends(get_change_publisher)]
Cache = Annotated[JsonCache, Depends(get_directory_cache)]
GateDevice = Depends(verify_gate_device)
ThrottledScan = Annotated[GateScanRequest, Depends(limit_gate_scans)]
