"""Real-time change events over Redis pub/sub."""

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import redis
import structlog

logger = structlog.get_logger(__name__)

CHANNEL_PREFIX = "changes"


def channel_for(table: str, recipient_id: UUID | str) -> str:
    """Channel a single recipient subscribes to for one table."""
    return f"{CHANNEL_PREFIX}:{table}:{recipient_id}"


class ChangePublisher:
    """
    Fire-and-forget publisher of row change events.

    Events are fanned out per recipient so subscribers only receive rows they
    may see. An event only says "this row changed": listeners re-fetch the
    record and keep polling as a fallback, since delivery is at-least-once
    and may be lost entirely.
    """

    def __init__(self, redis_client: redis.Redis | None):
        """Initialize publisher with an optional Redis client."""
        self.redis = redis_client

    def publish(
        self,
        table: str,
        row_id: UUID | str,
        recipients: Iterable[UUID | str | None],
        event: str = "updated",
    ) -> int:
        """
        Publish a change event to each distinct recipient channel.

        Args:
            table: Table the row belongs to
            row_id: Changed row ID
            recipients: User IDs allowed to see the row; ``None`` entries are skipped
            event: Change kind (created, updated)

        Returns:
            Number of channels published to
        """
        if self.redis is None:
            return 0

        payload: dict[str, Any] = {
            "table": table,
            "row_id": str(row_id),
            "event": event,
            "at": datetime.now(UTC).isoformat(),
        }
        message = json.dumps(payload)

        sent = 0
        for recipient in {str(r) for r in recipients if r is not None}:
            try:
                self.redis.publish(channel_for(table, recipient), message)
                sent += 1
            except Exception as e:
                logger.warning(
                    "change_event_publish_failed",
                    table=table,
                    row_id=str(row_id),
                    recipient_id=recipient,
                    error=str(e),
                )
        return sent
