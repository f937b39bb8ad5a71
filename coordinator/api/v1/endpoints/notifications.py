"""Notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from coordinator.dependencies import CurrentActor, DatabaseSession, Publisher
from coordinator.schemas.notifications import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationRecord,
    ReminderResponse,
)
from coordinator.services.notification_service import NotificationService
from coordinator.services.workflow import utcnow

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="Get notification inbox",
)
async def list_notifications(
    actor: CurrentActor,
    db: DatabaseSession,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> NotificationListResponse:
    """
    Get the authenticated user's notifications, newest first.

    Args:
        actor: Authenticated user
        db: Database session
        unread_only: Only unread entries
        limit: Maximum number of records to return
        offset: Number of records to skip

    Returns:
        Inbox page with total and unread counts
    """
    service = NotificationService(db)
    return await service.list_for_user(actor.id, unread_only, limit, offset)


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationRecord,
    status_code=status.HTTP_200_OK,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> NotificationRecord:
    service = NotificationService(db)
    return await service.mark_read(actor.id, notification_id)


@router.post(
    "/read-all",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications as read",
)
async def mark_all_notifications_read(
    actor: CurrentActor,
    db: DatabaseSession,
) -> MarkReadResponse:
    service = NotificationService(db)
    return MarkReadResponse(updated=await service.mark_all_read(actor.id))


@router.post(
    "/reminders",
    response_model=ReminderResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate upcoming-session reminders",
)
async def generate_reminders(
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> ReminderResponse:
    """
    Write a reminder for each confirmed session starting within the
    reminder window. Repeated calls do not duplicate reminders.
    """
    service = NotificationService(db, publisher)
    return ReminderResponse(created=await service.send_reminders(actor.id, utcnow()))
