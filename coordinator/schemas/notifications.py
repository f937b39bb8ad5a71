"""Notification schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class NotificationRecord(BaseModel):
    """Schema for a single inbox entry."""

    id: UUID
    recipient_id: UUID
    message: str
    priority: Literal["normal", "high"]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Schema for a recipient's inbox."""

    total: int
    unread: int
    items: list[NotificationRecord]


class MarkReadResponse(BaseModel):
    """Schema for bulk read acknowledgement."""

    updated: int


class ReminderResponse(BaseModel):
    """Schema for reminder generation result."""

    created: int
