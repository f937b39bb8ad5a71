"""Reschedule protocol: provider proposes a new slot, requester accepts or the appointment is cancelled."""

from datetime import date
from uuid import UUID

import structlog

from coordinator.config import settings
from coordinator.core.exceptions import (
    BadRequestException,
    ConflictException,
    PreconditionFailedException,
)
from coordinator.schemas.appointments import AppointmentResponse, AppointmentStatus
from coordinator.schemas.auth import Actor
from coordinator.services.conflict_checker import (
    find_daily_conflict,
    find_exact_slot_conflict,
    find_interval_conflict,
    slot_start,
)
from coordinator.services.notification_service import (
    RESCHEDULE_ACCEPTED,
    RESCHEDULE_DECLINED,
    RESCHEDULE_PROPOSED,
    RESCHEDULE_RETRACTED,
    render,
)
from coordinator.services.state_machine import (
    CLEAR_GATE,
    CLEAR_PROPOSAL,
    is_active,
    transition_values,
)
from coordinator.services.workflow import AppointmentWorkflow

logger = structlog.get_logger(__name__)


class RescheduleService(AppointmentWorkflow):
    """
    Service for provider-initiated reschedules.

    The original slot stays booked while a proposal is open. Declining a
    proposal cancels the appointment rather than reverting to the old time,
    since the provider has already said that time no longer works.
    """

    async def _check_new_slot(self, appointment: AppointmentResponse, new_date: date, new_time: str) -> None:
        day = await self._provider_day(appointment.provider_id, new_date)

        if find_exact_slot_conflict(day, new_date, new_time, exclude_id=appointment.id):
            raise ConflictException(
                f"The counselor already has an appointment on {new_date.isoformat()} at {new_time}."
            )

        crowded = find_interval_conflict(
            day,
            new_date,
            new_time,
            settings.min_interval_minutes,
            exclude_id=appointment.id,
        )
        if crowded is not None:
            raise ConflictException(
                f"Interval conflict: a confirmed appointment at {crowded.time} is less than "
                f"{settings.min_interval_minutes} minutes from {new_time}."
            )

        requester_day = await self._requester_active(appointment.requester_id)
        if find_daily_conflict(requester_day, new_date, exclude_id=appointment.id):
            raise ConflictException(
                f"{appointment.requester_name} already has an appointment on {new_date.isoformat()}."
            )

    async def propose(
        self,
        actor: Actor,
        appointment_id: UUID,
        new_date: date,
        new_time: str,
    ) -> AppointmentResponse:
        """
        Propose moving an appointment to a new date and time.

        Args:
            actor: The appointment's provider
            appointment_id: Appointment to move
            new_date: Proposed date
            new_time: Proposed HH:MM slot

        Returns:
            Appointment with the proposal recorded

        Raises:
            ForbiddenException: If the caller is not the provider
            PreconditionFailedException: If finished, or a transfer/proposal is open
            BadRequestException: If the new slot is the current one or in the past
            ConflictException: If the new slot is taken or crowded
        """

        async def _apply() -> AppointmentResponse:
            current = await self._load(appointment_id)
            self._require_provider(actor, current)

            if not is_active(current.status):
                raise PreconditionFailedException(
                    "Only pending or confirmed appointments can be rescheduled"
                )
            if current.has_active_transfer:
                raise PreconditionFailedException("A transfer request is open for this appointment")
            if current.has_active_proposal:
                raise PreconditionFailedException("A reschedule proposal is already pending")
            if (new_date, new_time) == (current.date, current.time):
                raise BadRequestException("The proposed time is the current time")
            if slot_start(new_date, new_time, self.tz) <= self.clock():
                raise BadRequestException("Cannot reschedule to a time in the past")

            await self._check_new_slot(current, new_date, new_time)

            return await self._write(current, {"proposed_date": new_date, "proposed_time": new_time})

        appointment = await self._transact("propose reschedule", _apply)

        logger.info(
            "reschedule_proposed",
            appointment_id=str(appointment.id),
            proposed_date=str(new_date),
            proposed_time=new_time,
        )
        await self._announce(
            appointment,
            [(appointment.requester_id, render(RESCHEDULE_PROPOSED, appointment))],
        )
        return appointment

    async def respond(self, actor: Actor, appointment_id: UUID, accept: bool) -> AppointmentResponse:
        """
        Requester accepts or declines the open proposal.

        Accepting moves the booking to the proposed slot and confirms it.
        Declining frees the original slot and cancels the appointment.

        Raises:
            ForbiddenException: If the caller is not the requester
            PreconditionFailedException: If no proposal is pending
            ConflictException: If the proposed slot was taken meanwhile
        """

        async def _apply() -> tuple[AppointmentResponse, AppointmentResponse]:
            current = await self._load(appointment_id)
            self._require_requester(actor, current)

            if not current.has_active_proposal or not is_active(current.status):
                raise PreconditionFailedException("No reschedule proposal is pending")

            if not accept:
                updated = await self._write(
                    current,
                    transition_values(current.status, AppointmentStatus.CANCELLED, self.clock()),
                )
                await self.ledger.free(current.provider_id, current.date, current.time)
                return current, updated

            new_date, new_time = current.proposed_date, current.proposed_time
            await self._check_new_slot(current, new_date, new_time)

            if current.status == AppointmentStatus.PENDING:
                values = transition_values(current.status, AppointmentStatus.CONFIRMED, self.clock())
            else:
                values = {"status": AppointmentStatus.CONFIRMED.value, **CLEAR_GATE}
            values.update(CLEAR_PROPOSAL)
            values.update({"date": new_date, "time": new_time})

            updated = await self._write(current, values)
            await self.ledger.free(current.provider_id, current.date, current.time)
            await self.ledger.book(current.provider_id, new_date, new_time)
            return current, updated

        previous, appointment = await self._transact("answer reschedule", _apply)

        if accept:
            logger.info(
                "reschedule_accepted",
                appointment_id=str(appointment.id),
                old_date=str(previous.date),
                old_time=previous.time,
                new_date=str(appointment.date),
                new_time=appointment.time,
            )
            message = render(RESCHEDULE_ACCEPTED, appointment)
        else:
            logger.info("reschedule_declined", appointment_id=str(appointment.id))
            message = render(RESCHEDULE_DECLINED, appointment)

        await self._announce(appointment, [(appointment.provider_id, message)])
        return appointment

    async def retract(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Provider withdraws a pending proposal; status and slot are untouched.

        Raises:
            ForbiddenException: If the caller is not the provider
            PreconditionFailedException: If no proposal is pending
        """

        async def _apply() -> AppointmentResponse:
            current = await self._load(appointment_id)
            self._require_provider(actor, current)
            if not current.has_active_proposal:
                raise PreconditionFailedException("No reschedule proposal is pending")
            return await self._write(current, dict(CLEAR_PROPOSAL))

        appointment = await self._transact("withdraw reschedule", _apply)

        logger.info("reschedule_retracted", appointment_id=str(appointment.id))
        await self._announce(
            appointment,
            [(appointment.requester_id, render(RESCHEDULE_RETRACTED, appointment))],
        )
        return appointment
