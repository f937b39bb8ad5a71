"""Bearer tokens identifying students and counselors."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import ValidationError

from coordinator.config import settings
from coordinator.schemas.auth import Actor

TOKEN_TYPE = "access"


def issue_actor_token(actor: Actor, expires_delta: timedelta | None = None) -> str:
    """
    Sign a token carrying the actor's id, role and display name.

    Args:
        actor: Identity to encode
        expires_delta: Lifetime override, defaults to the configured expiry

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims: dict[str, Any] = {
        "sub": str(actor.id),
        "role": actor.role.value,
        "name": actor.name,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def read_actor_token(token: str) -> Actor | None:
    """
    Verify a token and rebuild the actor it names.

    Returns None for a bad signature, an expired token, a token of another
    type, or claims that do not describe a known role.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if claims.get("type") != TOKEN_TYPE or not isinstance(claims.get("sub"), str):
        return None

    try:
        return Actor(id=UUID(claims["sub"]), role=claims.get("role"), name=claims.get("name") or "")
    except (ValueError, ValidationError):
        return None
