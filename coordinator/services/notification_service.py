"""Notification service: the inbox every state transition writes to."""

from datetime import UTC, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import NotFoundException
from coordinator.models.appointments import appointments
from coordinator.models.notifications import notifications
from coordinator.schemas.appointments import AppointmentResponse, AppointmentStatus
from coordinator.schemas.notifications import NotificationListResponse, NotificationRecord
from coordinator.services.conflict_checker import minutes_until

logger = structlog.get_logger(__name__)

STATUS_MESSAGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: (
        "Your appointment on {date} has been CONFIRMED by Counselor {provider_name}."
    ),
    AppointmentStatus.CANCELLED: "Your appointment on {date} was CANCELLED.",
    AppointmentStatus.COMPLETED: "Your session on {date} has been marked COMPLETED.",
}

NEW_REQUEST = "New Appointment Request: {requester_name} for {date} at {time}"
CANCELLED_BY_REQUESTER = "{requester_name} cancelled the appointment on {date} at {time}."

TRANSFER_INCOMING = (
    "Incoming transfer request: {requester_name} on {date} at {time} from {provider_name}."
)
TRANSFER_ASK_REQUESTER = (
    "Counselor {provider_name} has requested to transfer your session to {target_name}."
)
TRANSFER_TARGET_READY = "{target_name} accepted the transfer. Your approval is needed."
TRANSFER_REQUESTER_READY = "{requester_name} approved the transfer. Your acceptance is needed."
TRANSFER_DECLINED = "The transfer of {requester_name}'s appointment to {target_name} was declined."
TRANSFER_REVOKED = "The transfer request for {requester_name} on {date} was withdrawn."
TRANSFER_DONE_REQUESTER = "Your appointment on {date} at {time} is now with {target_name}."
TRANSFER_DONE_TARGET = "{requester_name} on {date} at {time} has been transferred to you."
TRANSFER_DONE_ORIGIN = "{requester_name}'s appointment was transferred to {target_name}."

RESCHEDULE_PROPOSED = (
    "Counselor {provider_name} has proposed to reschedule your appointment "
    "to {proposed_date} at {proposed_time}."
)
RESCHEDULE_ACCEPTED = "Student {requester_name} approved the reschedule to {date} at {time}."
RESCHEDULE_DECLINED = "Student {requester_name} declined the reschedule. The appointment was cancelled."
RESCHEDULE_RETRACTED = "Counselor {provider_name} withdrew the reschedule proposal."

ENTRY_REQUESTED = (
    "Verification request: {requester_name} is at the gate for {time}, verified by {verifier}."
)
ENTRY_ALLOWED = "Your entry for the {time} session has been ALLOWED by Counselor {provider_name}."
ENTRY_DENIED = "Your entry for the {time} session was DENIED by Counselor {provider_name}."

REMINDER = "Reminder: You have an upcoming appointment on {date} at {time}."


def render(template: str, appointment: AppointmentResponse, **extra: object) -> str:
    """Fill a message template from an appointment's display fields."""
    fields: dict[str, object] = {
        "requester_name": appointment.requester_name,
        "provider_name": appointment.provider_name,
        "target_name": appointment.transfer_target_provider_name,
        "date": appointment.date.isoformat(),
        "time": appointment.time,
        "proposed_date": appointment.proposed_date.isoformat() if appointment.proposed_date else None,
        "proposed_time": appointment.proposed_time,
    }
    fields.update(extra)
    return template.format(**fields)


def status_message(appointment: AppointmentResponse) -> str | None:
    """Fixed requester-facing message for the appointment's current status."""
    template = STATUS_MESSAGES.get(appointment.status)
    if template is None:
        return None
    return render(template, appointment)


class NotificationService:
    """Service for writing and reading notifications."""

    def __init__(self, db: AsyncSession, publisher: ChangePublisher | None = None):
        """Initialize service with database session and optional event publisher."""
        self.db = db
        self.publisher = publisher

    async def notify(
        self,
        recipient_id: UUID,
        message: str,
        priority: str = "normal",
    ) -> UUID | None:
        """
        Append a notification for a recipient.

        Best effort: a failure is logged and swallowed so it never undoes the
        transition that triggered it.

        Args:
            recipient_id: User to notify
            message: Message text
            priority: normal or high

        Returns:
            New notification ID, or None if it could not be stored
        """
        try:
            stmt = (
                insert(notifications)
                .values(
                    recipient_id=recipient_id,
                    message=message,
                    priority=priority,
                    created_at=datetime.now(UTC),
                )
                .returning(notifications.c.id)
            )
            result = await self.db.execute(stmt)
            notification_id = result.scalar_one()
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "notification_failed",
                recipient_id=str(recipient_id),
                error=str(e),
            )
            return None

        if self.publisher is not None:
            self.publisher.publish("notifications", notification_id, [recipient_id], "created")

        logger.info(
            "notification_created",
            notification_id=str(notification_id),
            recipient_id=str(recipient_id),
            priority=priority,
        )
        return notification_id

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> NotificationListResponse:
        """
        List a user's notifications, newest first.

        Args:
            user_id: Recipient ID
            unread_only: Only return unread entries
            limit: Page size
            offset: Page offset

        Returns:
            Inbox page with totals
        """
        conditions = [notifications.c.recipient_id == user_id]
        if unread_only:
            conditions.append(notifications.c.is_read.is_(False))

        total_result = await self.db.execute(
            select(func.count()).select_from(notifications).where(and_(*conditions))
        )
        total = total_result.scalar() or 0

        unread = await self.unread_count(user_id)

        result = await self.db.execute(
            select(notifications)
            .where(and_(*conditions))
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        items = [NotificationRecord.model_validate(dict(row._mapping)) for row in result.fetchall()]

        return NotificationListResponse(total=total, unread=unread, items=items)

    async def unread_count(self, user_id: UUID) -> int:
        """Count unread notifications for a user."""
        result = await self.db.execute(
            select(func.count())
            .select_from(notifications)
            .where(
                notifications.c.recipient_id == user_id,
                notifications.c.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> NotificationRecord:
        """
        Mark one notification as read.

        Raises:
            NotFoundException: If the notification does not belong to the user
        """
        result = await self.db.execute(
            update(notifications)
            .where(
                notifications.c.id == notification_id,
                notifications.c.recipient_id == user_id,
            )
            .values(is_read=True)
            .returning(notifications)
        )
        row = result.fetchone()
        if row is None:
            await self.db.rollback()
            raise NotFoundException("Notification not found")

        await self.db.commit()
        return NotificationRecord.model_validate(dict(row._mapping))

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of a user as read."""
        result = await self.db.execute(
            update(notifications)
            .where(
                notifications.c.recipient_id == user_id,
                notifications.c.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def send_reminders(self, user_id: UUID, now: datetime) -> int:
        """
        Remind a user of confirmed appointments starting soon.

        Each reminder text is written at most once per user, so repeated calls
        from a polling client do not pile up duplicates.

        Args:
            user_id: Requester or provider ID
            now: Current time (aware)

        Returns:
            Number of reminders created
        """
        tz = ZoneInfo(settings.schedule_timezone)
        window_minutes = timedelta(hours=settings.reminder_window_hours).total_seconds() / 60

        result = await self.db.execute(
            select(appointments).where(
                or_(
                    appointments.c.requester_id == user_id,
                    appointments.c.provider_id == user_id,
                ),
                appointments.c.status == AppointmentStatus.CONFIRMED.value,
            )
        )
        upcoming = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        existing_result = await self.db.execute(
            select(notifications.c.message).where(notifications.c.recipient_id == user_id)
        )
        already_sent = {row.message for row in existing_result.fetchall()}

        created = 0
        for appointment in upcoming:
            remaining = minutes_until(appointment.date, appointment.time, tz, now)
            if not 0 < remaining <= window_minutes:
                continue

            message = render(REMINDER, appointment)
            if message in already_sent:
                continue

            if await self.notify(user_id, message) is not None:
                already_sent.add(message)
                created += 1

        return created
