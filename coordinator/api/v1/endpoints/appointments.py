"""Appointment endpoints."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from coordinator.dependencies import CurrentActor, DatabaseSession, Publisher
from coordinator.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentSyncResponse,
)
from coordinator.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Book a pending appointment in a published, free slot.

    Args:
        data: Appointment creation data
        actor: Authenticated requester
        db: Database session
        publisher: Change event publisher

    Returns:
        Created appointment
    """
    service = AppointmentService(db, publisher)
    return await service.create_appointment(actor, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller.

    Args:
        actor: Authenticated user
        db: Database session
        status_filter: Filter by status
        from_date: Earliest appointment date
        to_date: Latest appointment date

    Returns:
        Appointments, newest first
    """
    service = AppointmentService(db)
    return await service.list_appointments(actor, status_filter, from_date, to_date)


@router.get(
    "/sync",
    response_model=AppointmentSyncResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Poll for changed appointments",
)
async def sync_appointments(
    actor: CurrentActor,
    db: DatabaseSession,
    updated_since: datetime | None = Query(None),
) -> AppointmentSyncResponse:
    """
    Return appointments changed after a cursor.

    Clients that miss change events call this with the cursor from their
    previous response.
    """
    service = AppointmentService(db)
    return await service.sync(actor, updated_since)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        HTTPException: If appointment not found or access denied
    """
    service = AppointmentService(db)
    return await service.get_appointment(actor, appointment_id)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
    publisher: Publisher,
) -> AppointmentResponse:
    """
    Confirm, cancel or complete an appointment.

    Args:
        appointment_id: Appointment ID
        data: Target status
        actor: Authenticated user
        db: Database session
        publisher: Change event publisher

    Returns:
        Updated appointment

    Raises:
        HTTPException: If not found, access denied or the transition is not allowed
    """
    service = AppointmentService(db, publisher)
    return await service.change_status(actor, appointment_id, data.status)
