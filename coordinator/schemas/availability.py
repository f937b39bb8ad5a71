"""Availability and directory schemas."""

import re
from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator

from coordinator.schemas.appointments import TIME_LABEL_PATTERN


class Slot(BaseModel):
    """One bookable time on a provider's day."""

    time: str = Field(..., pattern=TIME_LABEL_PATTERN)
    booked: bool = False


class DayAvailability(BaseModel):
    """Slot ledger entry for a provider and date."""

    provider_id: UUID
    date: date
    slots: list[Slot]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_open_slot(self) -> bool:
        """Check if any slot on the day can still be booked."""
        return any(not slot.booked for slot in self.slots)


class AvailabilityUpdate(BaseModel):
    """Replace the published times for a day."""

    times: list[str] = Field(default_factory=list)

    @field_validator("times")
    @classmethod
    def validate_times(cls, v: list[str]) -> list[str]:
        """Check every label is HH:MM and appears once."""
        for label in v:
            if not re.match(TIME_LABEL_PATTERN, label):
                raise ValueError(f"Invalid time label: {label}")
        if len(set(v)) != len(v):
            raise ValueError("Duplicate time slot")
        return sorted(v)


class ReconcileResponse(BaseModel):
    """Result of rebuilding booked flags from live appointments."""

    provider_id: UUID
    days_checked: int
    flags_changed: int


class ProviderResponse(BaseModel):
    """Directory entry for a provider."""

    id: UUID
    name: str
    email: str

    model_config = {"from_attributes": True}
