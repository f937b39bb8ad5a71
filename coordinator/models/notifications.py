"""Notification table: append-only inbox of messages per recipient."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
)

from coordinator.models.metadata import metadata

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("recipient_id", Uuid, nullable=False),
    Column("message", Text, nullable=False),
    Column("priority", String(20), nullable=False, server_default="normal"),
    Column("is_read", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "priority IN ('normal', 'high')",
        name="notifications_priority_check",
    ),
    Index("idx_notifications_recipient", "recipient_id"),
    Index("idx_notifications_recipient_read", "recipient_id", "is_read"),
)
