"""Shared plumbing for services that mutate appointments."""

from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, date, datetime
from typing import Any, TypeVar
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.concurrency import run_optimistic
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    StaleRecordError,
)
from coordinator.models.appointments import appointments
from coordinator.schemas.appointments import AppointmentResponse
from coordinator.schemas.auth import Actor
from coordinator.services.notification_service import NotificationService
from coordinator.services.slot_ledger_service import ACTIVE_VALUES, SlotLedgerService

T = TypeVar("T")

Clock = Callable[[], datetime]

# (recipient_id, message) or (recipient_id, message, priority)
Notice = tuple[UUID, str] | tuple[UUID, str, str]


def utcnow() -> datetime:
    return datetime.now(UTC)


class AppointmentWorkflow:
    """Base class holding the session, ledger, notifier and clock."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: ChangePublisher | None = None,
        clock: Clock | None = None,
    ):
        """Initialize with database session, optional event publisher and clock."""
        self.db = db
        self.publisher = publisher
        self.clock = clock or utcnow
        self.ledger = SlotLedgerService(db)
        self.notifier = NotificationService(db, publisher)
        self.tz = ZoneInfo(settings.schedule_timezone)

    async def _load(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Read the current appointment row.

        Raises:
            NotFoundException: If no such appointment exists
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.fetchone()
        if row is None:
            raise NotFoundException("Appointment not found")
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def _write(self, current: AppointmentResponse, values: dict[str, Any]) -> AppointmentResponse:
        """
        Apply ``values`` only if the row still has the version we read.

        Raises:
            StaleRecordError: If another writer bumped the version first
        """
        stmt = (
            update(appointments)
            .where(
                appointments.c.id == current.id,
                appointments.c.version == current.version,
            )
            .values(**values, version=current.version + 1, updated_at=self.clock())
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if row is None:
            raise StaleRecordError("appointments", current.id)
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def _transact(self, action: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await run_optimistic(
            self.db,
            operation,
            action=action,
            attempts=settings.optimistic_retry_attempts,
        )

    async def _provider_day(self, provider_id: UUID, on_date: date) -> list[AppointmentResponse]:
        """Active appointments a provider holds on a day."""
        result = await self.db.execute(
            select(appointments).where(
                appointments.c.provider_id == provider_id,
                appointments.c.date == on_date,
                appointments.c.status.in_(ACTIVE_VALUES),
            )
        )
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def _requester_active(self, requester_id: UUID) -> list[AppointmentResponse]:
        """Every active appointment a requester holds."""
        result = await self.db.execute(
            select(appointments).where(
                appointments.c.requester_id == requester_id,
                appointments.c.status.in_(ACTIVE_VALUES),
            )
        )
        return [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def _announce(
        self,
        appointment: AppointmentResponse,
        notices: Iterable[Notice],
        also_visible_to: Iterable[UUID] = (),
    ) -> None:
        """Send notifications and change events for a committed change."""
        for notice in notices:
            await self.notifier.notify(*notice)

        if self.publisher is not None:
            self.publisher.publish(
                "appointments",
                appointment.id,
                [*self.parties(appointment), *also_visible_to],
            )

    @staticmethod
    def parties(appointment: AppointmentResponse) -> list[UUID]:
        """Users allowed to see an appointment."""
        visible = [appointment.requester_id, appointment.provider_id]
        if appointment.transfer_target_provider_id is not None:
            visible.append(appointment.transfer_target_provider_id)
        return visible

    @staticmethod
    def _require_provider(actor: Actor, appointment: AppointmentResponse) -> None:
        if not (actor.is_provider and actor.id == appointment.provider_id):
            raise ForbiddenException("Only the assigned counselor can do this")

    @staticmethod
    def _require_requester(actor: Actor, appointment: AppointmentResponse) -> None:
        if not (actor.is_requester and actor.id == appointment.requester_id):
            raise ForbiddenException("Only the student who booked can do this")

    @classmethod
    def _require_party(cls, actor: Actor, appointment: AppointmentResponse) -> None:
        if actor.id not in cls.parties(appointment):
            raise ForbiddenException("Access denied to this appointment")
