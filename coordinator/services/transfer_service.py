"""Transfer protocol: hand an appointment to another provider with two-party consent."""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    PreconditionFailedException,
)
from coordinator.schemas.appointments import AppointmentResponse, AppointmentStatus
from coordinator.schemas.auth import Actor
from coordinator.services.conflict_checker import (
    find_exact_slot_conflict,
    find_interval_conflict,
)
from coordinator.services.directory_service import DirectoryService
from coordinator.services.notification_service import (
    TRANSFER_ASK_REQUESTER,
    TRANSFER_DECLINED,
    TRANSFER_DONE_ORIGIN,
    TRANSFER_DONE_REQUESTER,
    TRANSFER_DONE_TARGET,
    TRANSFER_INCOMING,
    TRANSFER_REQUESTER_READY,
    TRANSFER_REVOKED,
    TRANSFER_TARGET_READY,
    render,
)
from coordinator.services.state_machine import CLEAR_GATE, CLEAR_TRANSFER, is_active
from coordinator.services.workflow import AppointmentWorkflow, Clock, Notice

logger = structlog.get_logger(__name__)

# Outcomes of a consent response
DECLINED = "declined"
ACCEPTED = "accepted"
FINALIZED = "finalized"
UNCHANGED = "unchanged"


class TransferService(AppointmentWorkflow):
    """
    Service for moving an appointment to a different provider.

    The original provider initiates; the receiving provider and the requester
    must both accept, in either order. Whichever acceptance completes the pair
    finalizes the move in the same transaction.
    """

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

    async def _check_target_schedule(self, appointment: AppointmentResponse, target_id: UUID, target_name: str) -> None:
        """Reject a move that would double-book or crowd the receiving provider."""
        day = await self._provider_day(target_id, appointment.date)

        taken = find_exact_slot_conflict(day, appointment.date, appointment.time, exclude_id=appointment.id)
        if taken is not None:
            raise ConflictException(
                f"{target_name} already has an appointment on {appointment.date.isoformat()} "
                f"at {appointment.time}."
            )

        crowded = find_interval_conflict(
            day,
            appointment.date,
            appointment.time,
            settings.min_interval_minutes,
            exclude_id=appointment.id,
        )
        if crowded is not None:
            raise ConflictException(
                f"Interval conflict: {target_name} has a confirmed appointment at {crowded.time} "
                f"on {appointment.date.isoformat()}, less than {settings.min_interval_minutes} "
                f"minutes from {appointment.time}."
            )

    async def initiate(self, actor: Actor, appointment_id: UUID, target_provider_id: UUID) -> AppointmentResponse:
        """
        Ask another provider to take over an appointment.

        Args:
            actor: The appointment's current provider
            appointment_id: Appointment to transfer
            target_provider_id: Receiving provider

        Returns:
            Appointment with the transfer request recorded

        Raises:
            NotFoundException: If the appointment or target provider is unknown
            ForbiddenException: If the caller is not the current provider
            PreconditionFailedException: If the appointment is finished or has an open request
            BadRequestException: If the target is the current provider
            ConflictException: If the target's schedule cannot take the slot
        """
        target = await self.directory.get_provider(target_provider_id)

        async def _apply() -> AppointmentResponse:
            current = await self._load(appointment_id)
            self._require_provider(actor, current)

            if not is_active(current.status):
                raise PreconditionFailedException(
                    "Only pending or confirmed appointments can be transferred"
                )
            if current.has_active_transfer or current.has_active_proposal:
                raise PreconditionFailedException(
                    "Another transfer or reschedule request is already open"
                )
            if target.id == current.provider_id:
                raise BadRequestException("Cannot transfer an appointment to the same counselor")

            await self._check_target_schedule(current, target.id, target.name)

            return await self._write(
                current,
                {
                    "transfer_target_provider_id": target.id,
                    "transfer_target_provider_name": target.name,
                    "transfer_target_accepted": False,
                    "transfer_requester_accepted": False,
                },
            )

        appointment = await self._transact("request transfer", _apply)

        logger.info(
            "transfer_requested",
            appointment_id=str(appointment.id),
            from_provider_id=str(appointment.provider_id),
            to_provider_id=str(target.id),
        )
        await self._announce(
            appointment,
            [
                (target.id, render(TRANSFER_INCOMING, appointment)),
                (appointment.requester_id, render(TRANSFER_ASK_REQUESTER, appointment)),
            ],
        )
        return appointment

    async def _finalize(self, current: AppointmentResponse) -> AppointmentResponse:
        """
        Move the appointment to the target provider inside the open transaction.

        Both ledger calls are idempotent, so a retried finalize after a lost
        race is safe.
        """
        target_id = current.transfer_target_provider_id
        target_name = current.transfer_target_provider_name or ""

        await self._check_target_schedule(current, target_id, target_name)

        updated = await self._write(
            current,
            {
                **CLEAR_TRANSFER,
                **CLEAR_GATE,
                "provider_id": target_id,
                "provider_name": target_name,
                "status": AppointmentStatus.CONFIRMED.value,
            },
        )
        await self.ledger.free(current.provider_id, current.date, current.time)
        await self.ledger.book(target_id, current.date, current.time)
        return updated

    async def _respond(
        self,
        actor: Actor,
        appointment_id: UUID,
        accept: bool,
        side: str,
    ) -> AppointmentResponse:
        own_flag = f"transfer_{side}_accepted"
        other_flag = "transfer_requester_accepted" if side == "target" else "transfer_target_accepted"

        async def _apply() -> tuple[str, AppointmentResponse, AppointmentResponse]:
            current = await self._load(appointment_id)
            if not current.has_active_transfer:
                raise PreconditionFailedException("No transfer request is pending")

            if side == "target":
                if not (actor.is_provider and actor.id == current.transfer_target_provider_id):
                    raise ForbiddenException("Only the receiving counselor can answer this transfer")
            else:
                self._require_requester(actor, current)

            if not accept:
                return DECLINED, current, await self._write(current, dict(CLEAR_TRANSFER))

            if getattr(current, own_flag):
                return UNCHANGED, current, current

            if getattr(current, other_flag):
                return FINALIZED, current, await self._finalize(current)

            return ACCEPTED, current, await self._write(current, {own_flag: True})

        outcome, previous, appointment = await self._transact("answer transfer", _apply)

        logger.info(
            "transfer_response",
            appointment_id=str(appointment.id),
            side=side,
            outcome=outcome,
        )

        notices: list[Notice] = []
        also_visible: list[UUID] = []
        if outcome == DECLINED:
            notices.append((previous.provider_id, render(TRANSFER_DECLINED, previous)))
            also_visible.append(previous.transfer_target_provider_id)
        elif outcome == ACCEPTED and side == "target":
            notices.append((previous.requester_id, render(TRANSFER_TARGET_READY, previous)))
        elif outcome == ACCEPTED:
            notices.append(
                (previous.transfer_target_provider_id, render(TRANSFER_REQUESTER_READY, previous))
            )
        elif outcome == FINALIZED:
            logger.info(
                "transfer_finalized",
                appointment_id=str(appointment.id),
                from_provider_id=str(previous.provider_id),
                to_provider_id=str(appointment.provider_id),
            )
            notices.extend(
                [
                    (previous.requester_id, render(TRANSFER_DONE_REQUESTER, previous)),
                    (appointment.provider_id, render(TRANSFER_DONE_TARGET, previous)),
                    (previous.provider_id, render(TRANSFER_DONE_ORIGIN, previous)),
                ]
            )
            also_visible.append(previous.provider_id)

        if outcome != UNCHANGED:
            await self._announce(appointment, notices, also_visible_to=also_visible)
        return appointment

    async def target_respond(self, actor: Actor, appointment_id: UUID, accept: bool) -> AppointmentResponse:
        """Receiving provider accepts or declines; finalizes if the requester already agreed."""
        return await self._respond(actor, appointment_id, accept, "target")

    async def requester_respond(self, actor: Actor, appointment_id: UUID, accept: bool) -> AppointmentResponse:
        """Requester accepts or declines; finalizes if the receiving provider already agreed."""
        return await self._respond(actor, appointment_id, accept, "requester")

    async def revoke(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Withdraw an outstanding transfer request before it is finalized.

        Raises:
            ForbiddenException: If the caller is not the current provider
            PreconditionFailedException: If no transfer is pending
        """

        async def _apply() -> tuple[AppointmentResponse, AppointmentResponse]:
            current = await self._load(appointment_id)
            self._require_provider(actor, current)
            if not current.has_active_transfer:
                raise PreconditionFailedException("No transfer request is pending")
            return current, await self._write(current, dict(CLEAR_TRANSFER))

        previous, appointment = await self._transact("withdraw transfer", _apply)

        logger.info("transfer_revoked", appointment_id=str(appointment.id))
        await self._announce(
            appointment,
            [
                (previous.transfer_target_provider_id, render(TRANSFER_REVOKED, previous)),
                (previous.requester_id, render(TRANSFER_REVOKED, previous)),
            ],
            also_visible_to=[previous.transfer_target_provider_id],
        )
        return appointment
