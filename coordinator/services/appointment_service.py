"""Appointment service: booking and the status lifecycle."""

from datetime import UTC, date, datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
)
from coordinator.models.appointments import appointments
from coordinator.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentSyncResponse,
)
from coordinator.schemas.auth import Actor
from coordinator.services.conflict_checker import (
    find_daily_conflict,
    find_exact_slot_conflict,
    find_interval_conflict,
    slot_start,
)
from coordinator.services.directory_service import DirectoryService
from coordinator.services.notification_service import (
    CANCELLED_BY_REQUESTER,
    NEW_REQUEST,
    TRANSFER_REVOKED,
    render,
    status_message,
)
from coordinator.services.state_machine import releases_slot, transition_values
from coordinator.services.workflow import AppointmentWorkflow, Clock, Notice

logger = structlog.get_logger(__name__)


class AppointmentService(AppointmentWorkflow):
    """Service for booking appointments and moving them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: ChangePublisher | None = None,
        clock: Clock | None = None,
        directory: DirectoryService | None = None,
    ):
        """Initialize service with database session and collaborators."""
        super().__init__(db, publisher, clock)
        self.directory = directory or DirectoryService(db)

    async def create_appointment(self, actor: Actor, data: AppointmentCreate) -> AppointmentResponse:
        """
        Book a pending appointment and mark its slot booked in one transaction.

        Args:
            actor: Requester booking the appointment
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            ForbiddenException: If the caller is not a requester
            NotFoundException: If the provider or requester is unknown
            BadRequestException: If the slot is in the past
            ConflictException: If the slot, day or interval is already taken
        """
        if not actor.is_requester:
            raise ForbiddenException("Only students can book appointments")

        provider = await self.directory.get_provider(data.provider_id)
        requester = await self.directory.get_requester(actor.id)

        if slot_start(data.date, data.time, self.tz) <= self.clock():
            raise BadRequestException("Cannot book a time slot in the past")

        async def _apply() -> AppointmentResponse:
            mine = await self._requester_active(actor.id)
            if find_exact_slot_conflict(mine, data.date, data.time):
                raise ConflictException("You already have an appointment scheduled for this exact time.")
            if find_daily_conflict(mine, data.date):
                raise ConflictException(
                    f"You already have an appointment on {data.date.isoformat()}. "
                    "Only one appointment per day is allowed."
                )

            day = await self._provider_day(provider.id, data.date)
            if find_exact_slot_conflict(day, data.date, data.time):
                raise ConflictException("This time slot is already booked.")
            crowded = find_interval_conflict(
                day, data.date, data.time, settings.min_interval_minutes
            )
            if crowded is not None:
                raise ConflictException(
                    f"Counselor {provider.name} has a confirmed appointment at {crowded.time}; "
                    f"sessions must be {settings.min_interval_minutes} minutes apart."
                )

            slot = await self.ledger.find_slot(provider.id, data.date, data.time)
            if slot is None:
                raise ConflictException("This time slot is not offered by the counselor.")
            if slot.booked:
                raise ConflictException("This time slot is already booked.")

            now = self.clock()
            stmt = (
                insert(appointments)
                .values(
                    requester_id=actor.id,
                    provider_id=provider.id,
                    requester_name=requester["name"],
                    requester_id_number=data.requester_id_number,
                    requester_section=data.section,
                    requester_contact=data.contact_phone,
                    has_consent=data.has_consent,
                    provider_name=provider.name,
                    date=data.date,
                    time=data.time,
                    reason=data.reason,
                    description=data.description,
                    status=AppointmentStatus.PENDING.value,
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            created = AppointmentResponse.model_validate(dict(result.fetchone()._mapping))

            await self.ledger.book(provider.id, data.date, data.time)
            return created

        appointment = await self._transact("book appointment", _apply)

        logger.info(
            "appointment_created",
            appointment_id=str(appointment.id),
            requester_id=str(actor.id),
            provider_id=str(provider.id),
            date=str(appointment.date),
            time=appointment.time,
        )
        await self._announce(appointment, [(provider.id, render(NEW_REQUEST, appointment))])
        return appointment

    async def get_appointment(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller is not a party to it
        """
        appointment = await self._load(appointment_id)
        self._require_party(actor, appointment)
        return appointment

    def _visible_to(self, actor: Actor):
        if actor.is_provider:
            return or_(
                appointments.c.provider_id == actor.id,
                appointments.c.transfer_target_provider_id == actor.id,
            )
        return appointments.c.requester_id == actor.id

    async def list_appointments(
        self,
        actor: Actor,
        status: AppointmentStatus | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the caller, newest first.

        Providers also see appointments being transferred to them.
        """
        stmt = select(appointments).where(self._visible_to(actor))
        if status is not None:
            stmt = stmt.where(appointments.c.status == status.value)
        if from_date is not None:
            stmt = stmt.where(appointments.c.date >= from_date)
        if to_date is not None:
            stmt = stmt.where(appointments.c.date <= to_date)

        result = await self.db.execute(
            stmt.order_by(appointments.c.date.desc(), appointments.c.time.desc())
        )
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]
        return AppointmentListResponse(total=len(items), items=items)

    async def provider_schedule(
        self,
        actor: Actor,
        provider_id: UUID,
        on_date: date,
    ) -> AppointmentListResponse:
        """A provider's appointments for one day in time order."""
        if not (actor.is_provider and actor.id == provider_id):
            raise ForbiddenException("Counselors can only view their own schedule")

        result = await self.db.execute(
            select(appointments)
            .where(
                appointments.c.provider_id == provider_id,
                appointments.c.date == on_date,
            )
            .order_by(appointments.c.time)
        )
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]
        return AppointmentListResponse(total=len(items), items=items)

    async def sync(self, actor: Actor, updated_since: datetime | None = None) -> AppointmentSyncResponse:
        """
        Return appointments changed after ``updated_since``.

        Polling fallback for missed change events: clients pass back the
        returned cursor on their next call. The cursor trails the query start
        by the sync skew, so a write stamped before the query but committed
        after it is still returned next time. Rows inside the overlap may be
        returned twice.
        """
        started = self.clock()
        stmt = select(appointments).where(self._visible_to(actor))
        if updated_since is not None:
            if updated_since.tzinfo is None:
                updated_since = updated_since.replace(tzinfo=UTC)
            updated_since = updated_since.astimezone(UTC)
            stmt = stmt.where(appointments.c.updated_at > updated_since)

        result = await self.db.execute(stmt.order_by(appointments.c.updated_at))
        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

        cursor = started - timedelta(seconds=settings.sync_cursor_skew_seconds)
        if updated_since is not None:
            cursor = max(cursor, updated_since)
        return AppointmentSyncResponse(items=items, cursor=cursor)

    async def change_status(
        self,
        actor: Actor,
        appointment_id: UUID,
        target: AppointmentStatus,
    ) -> AppointmentResponse:
        """
        Move an appointment to ``target`` through the transition table.

        Confirming and completing belong to the assigned provider; either party
        may cancel. Leaving the booked set frees the slot in the same
        transaction.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller may not make this change
            PreconditionFailedException: If the transition is not allowed
        """

        async def _apply() -> tuple[AppointmentResponse, AppointmentResponse]:
            current = await self._load(appointment_id)

            if target == AppointmentStatus.CANCELLED:
                if actor.id not in (current.requester_id, current.provider_id):
                    raise ForbiddenException("Access denied to this appointment")
            else:
                self._require_provider(actor, current)

            updated = await self._write(
                current, transition_values(current.status, target, self.clock())
            )

            if releases_slot(current.status, target):
                await self.ledger.free(current.provider_id, current.date, current.time)
            elif target == AppointmentStatus.CONFIRMED:
                await self.ledger.book(current.provider_id, current.date, current.time)

            return current, updated

        previous, appointment = await self._transact(f"mark appointment {target.value}", _apply)

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment.id),
            old_status=previous.status.value,
            new_status=appointment.status.value,
            actor_id=str(actor.id),
        )

        notices: list[Notice] = []
        message = status_message(appointment)
        if message:
            notices.append((appointment.requester_id, message))
        if target == AppointmentStatus.CANCELLED and actor.id == appointment.requester_id:
            notices.append((appointment.provider_id, render(CANCELLED_BY_REQUESTER, appointment)))
        if previous.transfer_target_provider_id is not None:
            # the status change closed the open transfer
            notices.append((previous.transfer_target_provider_id, render(TRANSFER_REVOKED, previous)))

        await self._announce(
            appointment,
            notices,
            also_visible_to=[previous.transfer_target_provider_id]
            if previous.transfer_target_provider_id
            else [],
        )
        return appointment

    async def confirm(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Confirm a pending appointment."""
        return await self.change_status(actor, appointment_id, AppointmentStatus.CONFIRMED)

    async def cancel(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Cancel a pending or confirmed appointment and free its slot."""
        return await self.change_status(actor, appointment_id, AppointmentStatus.CANCELLED)

    async def complete(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Mark a confirmed appointment completed once the session has concluded."""
        return await self.change_status(actor, appointment_id, AppointmentStatus.COMPLETED)
