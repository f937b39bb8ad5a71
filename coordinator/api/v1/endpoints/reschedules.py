"""Reschedule endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from coordinator.dependencies import CurrentActor, DatabaseSession, Publisher
from coordinator.schemas.appointments import (
    AppointmentResponse,
    ConsentResponse,
    RescheduleRequest,
)
from coordinator.services.reschedule_service import RescheduleService

router = APIRouter()


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Propose a new date and time",
)
async def propose_reschedule(
    appointment_id: UUID,
    data: RescheduleRequest,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Counselor proposes moving an appointment.

    The current slot stays booked until the student answers.
    """
    service = RescheduleService(db, publisher)
    return await service.propose(actor, appointment_id, data.date, data.time)


@router.post(
    "/{appointment_id}/reschedule/response",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Student answers a reschedule proposal",
)
async def answer_reschedule(
    appointment_id: UUID,
    data: ConsentResponse,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Accept to move the appointment, or decline to cancel it.

    Declining does not restore the old time: the appointment is cancelled
    and its slot freed.
    """
    service = RescheduleService(db, publisher)
    return await service.respond(actor, appointment_id, data.accept)


@router.delete(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Withdraw reschedule proposal",
)
async def withdraw_reschedule(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    service = RescheduleService(db, publisher)
    return await service.retract(actor, appointment_id)
