"""Gate verification protocol: presence scan at the entrance, provider allows or denies."""

import math
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.events import ChangePublisher
from coordinator.core.exceptions import (
    ConflictException,
    NotFoundException,
    PreconditionFailedException,
    TooEarlyException,
)
from coordinator.models.appointments import appointments
from coordinator.schemas.appointments import AppointmentResponse, AppointmentStatus, EntryDecision
from coordinator.schemas.auth import Actor
from coordinator.services.conflict_checker import minutes_until
from coordinator.services.directory_service import DirectoryService
from coordinator.services.notification_service import (
    ENTRY_ALLOWED,
    ENTRY_DENIED,
    ENTRY_REQUESTED,
    render,
)
from coordinator.services.workflow import AppointmentWorkflow, Clock

logger = structlog.get_logger(__name__)


class GateService(AppointmentWorkflow):
    """
    Service for the entry-gate handshake.

    Gate state sits beside the scheduling status: allowing entry leaves the
    appointment confirmed, and completion is a separate provider action.
    Open requests never expire on their own.
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

    def minutes_until(self, appointment: AppointmentResponse) -> float:
        """Minutes from now until the appointment starts."""
        return minutes_until(appointment.date, appointment.time, self.tz, self.clock())

    async def request_entry(self, appointment_id: UUID, verifier_name: str) -> AppointmentResponse:
        """
        Record that the requester is at the gate and ask the provider to decide.

        Args:
            appointment_id: Confirmed appointment the requester is arriving for
            verifier_name: Staff member who checked the requester's presence

        Returns:
            Appointment awaiting an entry decision

        Raises:
            NotFoundException: If appointment not found
            PreconditionFailedException: If not confirmed or a request is already open
        """

        async def _apply() -> AppointmentResponse:
            current = await self._load(appointment_id)
            if current.status != AppointmentStatus.CONFIRMED:
                raise PreconditionFailedException(
                    "Entry can only be requested for a confirmed appointment"
                )
            if current.awaiting_entry_decision:
                raise PreconditionFailedException("An entry request is already awaiting a decision")

            return await self._write(
                current,
                {
                    "awaiting_entry_decision": True,
                    "entry_verified_by": verifier_name,
                    "entry_requested_at": self.clock(),
                    "entry_decision": None,
                    "entry_decided_at": None,
                },
            )

        appointment = await self._transact("request entry", _apply)

        logger.info(
            "gate_entry_requested",
            appointment_id=str(appointment.id),
            provider_id=str(appointment.provider_id),
            verifier=verifier_name,
        )
        await self._announce(
            appointment,
            [
                (
                    appointment.provider_id,
                    render(ENTRY_REQUESTED, appointment, verifier=verifier_name),
                    "high",
                )
            ],
        )
        return appointment

    async def scan(self, identity_token: str, verifier_name: str) -> AppointmentResponse:
        """
        Resolve a badge scan to today's confirmed appointment and request entry.

        Raises:
            NotFoundException: If the token or a confirmed appointment today is unknown
        """
        requester = await self.directory.resolve_identity_token(identity_token)
        if requester is None:
            raise NotFoundException("Unknown identity token")

        today = self.clock().astimezone(self.tz).date()
        result = await self.db.execute(
            select(appointments.c.id)
            .where(
                appointments.c.requester_id == requester["id"],
                appointments.c.date == today,
                appointments.c.status == AppointmentStatus.CONFIRMED.value,
            )
            .order_by(appointments.c.time)
        )
        row = result.first()
        if row is None:
            raise NotFoundException("No confirmed appointment today for this student")

        return await self.request_entry(row.id, verifier_name)

    async def decide(self, actor: Actor, appointment_id: UUID, allowed: bool) -> AppointmentResponse:
        """
        Provider allows or denies entry for an open request.

        Raises:
            ForbiddenException: If the caller is not the provider
            ConflictException: If the request was already resolved
            TooEarlyException: If the session starts beyond the entry window
        """
        window = settings.gate_entry_window_minutes

        async def _apply() -> AppointmentResponse:
            current = await self._load(appointment_id)
            self._require_provider(actor, current)

            if not current.awaiting_entry_decision:
                raise ConflictException("Entry request already resolved")

            remaining = self.minutes_until(current)
            if remaining > window:
                raise TooEarlyException(
                    f"Entry can only be decided within {window} minutes of the "
                    f"{current.time} session ({math.ceil(remaining)} minutes remaining)"
                )

            decision = EntryDecision.ALLOWED if allowed else EntryDecision.DENIED
            return await self._write(
                current,
                {
                    "awaiting_entry_decision": False,
                    "entry_decision": decision.value,
                    "entry_decided_at": self.clock(),
                },
            )

        appointment = await self._transact("decide entry", _apply)

        logger.info(
            "gate_entry_decided",
            appointment_id=str(appointment.id),
            decision=appointment.entry_decision.value if appointment.entry_decision else None,
        )
        template = ENTRY_ALLOWED if allowed else ENTRY_DENIED
        await self._announce(appointment, [(appointment.requester_id, render(template, appointment))])
        return appointment
