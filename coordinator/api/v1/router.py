"""API v1 router configuration."""

from fastapi import APIRouter

from coordinator.api.v1.endpoints import (
    appointments,
    gate,
    health,
    notifications,
    providers,
    reschedules,
    transfers,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(transfers.router, prefix="/appointments", tags=["Transfers"])
api_router.include_router(reschedules.router, prefix="/appointments", tags=["Reschedules"])
api_router.include_router(gate.router)
api_router.include_router(providers.router)
api_router.include_router(notifications.router)
