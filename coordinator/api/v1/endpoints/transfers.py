"""Transfer endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from coordinator.dependencies import CurrentActor, DatabaseSession, Publisher
from coordinator.schemas.appointments import (
    AppointmentResponse,
    ConsentResponse,
    TransferRequest,
)
from coordinator.services.transfer_service import TransferService

router = APIRouter()


@router.post(
    "/{appointment_id}/transfer",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Request transfer to another counselor",
)
async def request_transfer(
    appointment_id: UUID,
    data: TransferRequest,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Ask another counselor to take over an appointment.

    Both the receiving counselor and the student must accept before the
    appointment moves.
    """
    service = TransferService(db, publisher)
    return await service.initiate(actor, appointment_id, data.target_provider_id)


@router.post(
    "/{appointment_id}/transfer/target-response",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Receiving counselor answers a transfer",
)
async def answer_transfer_as_target(
    appointment_id: UUID,
    data: ConsentResponse,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """Accept or decline an incoming transfer."""
    service = TransferService(db, publisher)
    return await service.target_respond(actor, appointment_id, data.accept)


@router.post(
    "/{appointment_id}/transfer/requester-response",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Student answers a transfer",
)
async def answer_transfer_as_requester(
    appointment_id: UUID,
    data: ConsentResponse,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """Approve or decline moving the session to another counselor."""
    service = TransferService(db, publisher)
    return await service.requester_respond(actor, appointment_id, data.accept)


@router.delete(
    "/{appointment_id}/transfer",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Withdraw transfer request",
)
async def withdraw_transfer(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    service = TransferService(db, publisher)
    return await service.revoke(actor, appointment_id)
