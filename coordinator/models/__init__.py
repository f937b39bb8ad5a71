"""Database models."""

from coordinator.models.appointments import appointments
from coordinator.models.directory import providers, requesters
from coordinator.models.metadata import metadata
from coordinator.models.notifications import notifications
from coordinator.models.slot_ledger import slot_ledger

__all__ = [
    "appointments",
    "metadata",
    "notifications",
    "providers",
    "requesters",
    "slot_ledger",
]
