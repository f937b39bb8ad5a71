"""Entry gate endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from coordinator.dependencies import (
    CurrentActor,
    DatabaseSession,
    GateDevice,
    Publisher,
    ThrottledScan,
)
from coordinator.schemas.appointments import (
    AppointmentResponse,
    EntryDecisionRequest,
    EntryRequest,
)
from coordinator.services.gate_service import GateService

router = APIRouter(prefix="/gate", tags=["Gate"])


@router.post(
    "/scan",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[GateDevice],
    summary="Submit a badge scan",
)
async def scan_badge(
    data: ThrottledScan,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Resolve a student's badge to today's confirmed appointment and ask the
    counselor to decide on entry.

    Args:
        data: Scanned token, verifier and device
        db: Database session
        publisher: Change event publisher

    Returns:
        Appointment awaiting an entry decision
    """
    service = GateService(db, publisher)
    return await service.scan(data.identity_token, data.verifier_name)


@router.post(
    "/appointments/{appointment_id}/entry-request",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[GateDevice],
    summary="Request entry for a known appointment",
)
async def request_entry(
    appointment_id: UUID,
    data: EntryRequest,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    service = GateService(db, publisher)
    return await service.request_entry(appointment_id, data.verifier_name)


@router.post(
    "/appointments/{appointment_id}/decision",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Allow or deny entry",
)
async def decide_entry(
    appointment_id: UUID,
    data: EntryDecisionRequest,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Counselor answers an open entry request.

    Only accepted within the entry window before the session starts. A
    second decision on the same request is rejected.
    """
    service = GateService(db, publisher)
    return await service.decide(actor, appointment_id, data.allowed)
