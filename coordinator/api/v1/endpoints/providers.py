"""Provider directory and availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from coordinator.core.exceptions import ForbiddenException
from coordinator.dependencies import Cache, CurrentActor, DatabaseSession
from coordinator.schemas.appointments import AppointmentListResponse
from coordinator.schemas.auth import Actor
from coordinator.schemas.availability import (
    AvailabilityUpdate,
    DayAvailability,
    ProviderResponse,
    ReconcileResponse,
)
from coordinator.services.appointment_service import AppointmentService
from coordinator.services.directory_service import DirectoryService
from coordinator.services.slot_ledger_service import SlotLedgerService

router = APIRouter(prefix="/providers", tags=["Providers"])


def _require_self(actor: Actor, provider_id: UUID) -> None:
    if not (actor.is_provider and actor.id == provider_id):
        raise ForbiddenException("Counselors can only manage their own availability")


@router.get(
    "",
    response_model=list[ProviderResponse],
    status_code=status.HTTP_200_OK,
    summary="List counselors",
)
async def list_providers(
    actor: CurrentActor,
    db: DatabaseSession,
    cache: Cache,
) -> list[ProviderResponse]:
    """List every counselor students can book with."""
    service = DirectoryService(db, cache)
    return await service.list_providers()


@router.get(
    "/{provider_id}/availability",
    response_model=list[DayAvailability],
    status_code=status.HTTP_200_OK,
    summary="List published days",
)
async def list_availability(
    provider_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    from_date: date | None = Query(None),
) -> list[DayAvailability]:
    """
    List a counselor's published days with each slot's booked flag.

    Args:
        provider_id: Counselor ID
        actor: Authenticated user
        db: Database session
        from_date: Only days on or after this date

    Returns:
        Ledger entries in date order
    """
    await DirectoryService(db).get_provider(provider_id)
    service = SlotLedgerService(db)
    return await service.list_days(provider_id, from_date)


@router.put(
    "/{provider_id}/availability/{on_date}",
    response_model=DayAvailability,
    status_code=status.HTTP_200_OK,
    summary="Publish availability for a day",
)
async def publish_availability(
    provider_id: UUID,
    on_date: date,
    data: AvailabilityUpdate,
    actor: CurrentActor,
    db: DatabaseSession,
) -> DayAvailability:
    """
    Replace the published times for a day.

    Booked times keep their flag and cannot be withdrawn.
    """
    _require_self(actor, provider_id)
    service = SlotLedgerService(db)
    return await service.publish(provider_id, on_date, data.times)


@router.post(
    "/{provider_id}/availability/reconcile",
    response_model=ReconcileResponse,
    status_code=status.HTTP_200_OK,
    summary="Rebuild booked flags from appointments",
)
async def reconcile_availability(
    provider_id: UUID,
    actor: CurrentActor,
    db: DatabaseSession,
    on_date: date | None = Query(None, alias="date"),
) -> ReconcileResponse:
    _require_self(actor, provider_id)
    service = SlotLedgerService(db)
    return await service.reconcile(provider_id, on_date)


@router.get(
    "/{provider_id}/schedule/{on_date}",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="Counselor's appointments for a day",
)
async def provider_schedule(
    provider_id: UUID,
    on_date: date,
    actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentListResponse:
    service = AppointmentService(db)
    return await service.provider_schedule(actor, provider_id, on_date)
