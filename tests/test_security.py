"""Tests for actor tokens and gate scan throttling."""

from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

from jose import jwt

from coordinator.config import settings
from coordinator.core.redis_client import ScanThrottle
from coordinator.core.security import issue_actor_token, read_actor_token
from coordinator.schemas.auth import Actor, ActorRole


def test_token_round_trip() -> None:
    actor = Actor(id=uuid4(), role=ActorRole.PROVIDER, name="Ms. Dana Reyes")

    decoded = read_actor_token(issue_actor_token(actor))

    assert decoded == actor
    assert decoded.is_provider


def test_rejected_tokens() -> None:
    actor = Actor(id=uuid4(), role=ActorRole.REQUESTER, name="Lea Cruz")

    assert read_actor_token(issue_actor_token(actor, timedelta(seconds=-5))) is None
    assert read_actor_token("garbage") is None

    unknown_role = jwt.encode(
        {"sub": str(actor.id), "role": "janitor", "type": "access"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    assert read_actor_token(unknown_role) is None

    refresh = jwt.encode(
        {"sub": str(actor.id), "role": "requester", "type": "refresh"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    assert read_actor_token(refresh) is None


def test_scan_throttle_budget() -> None:
    redis_client = MagicMock()
    redis_client.get.return_value = None
    throttle = ScanThrottle(redis_client, budget=3)

    assert throttle.allow("gate-1")
    redis_client.setex.assert_called_once_with("ratelimit:gate:gate-1", 60, 1)

    redis_client.get.return_value = "2"
    assert throttle.allow("gate-1")
    redis_client.incr.assert_called_once_with("ratelimit:gate:gate-1")

    redis_client.get.return_value = "3"
    assert not throttle.allow("gate-1")


def test_scan_throttle_fails_open() -> None:
    redis_client = MagicMock()
    redis_client.get.side_effect = ConnectionError("down")

    assert ScanThrottle(redis_client, budget=1).allow("gate-1")
