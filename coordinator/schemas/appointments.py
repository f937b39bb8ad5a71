"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

TIME_LABEL_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentStatus(str, Enum):
    """Scheduling status. Gate, transfer and reschedule state live beside it."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EntryDecision(str, Enum):
    """Provider's answer to a gate entry request."""

    ALLOWED = "allowed"
    DENIED = "denied"


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    provider_id: UUID
    date: date
    time: str = Field(..., pattern=TIME_LABEL_PATTERN)
    reason: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    requester_id_number: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=100)
    contact_phone: str = Field(..., min_length=7, max_length=20)
    has_consent: bool

    @field_validator("contact_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Validate phone number format."""
        # Remove common separators
        cleaned = (
            v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
        )
        if not cleaned.isdigit():
            raise ValueError("Phone number must contain only digits and separators")
        if len(cleaned) < 7:
            raise ValueError("Phone number must have at least 7 digits")
        return v

    @field_validator("has_consent")
    @classmethod
    def validate_consent(cls, v: bool) -> bool:
        """Booking requires guardian consent."""
        if not v:
            raise ValueError("Consent is required to book an appointment")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()


class AppointmentStatusUpdate(BaseModel):
    """Schema for moving an appointment through its lifecycle."""

    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    requester_id: UUID
    provider_id: UUID
    requester_name: str
    requester_id_number: str | None = None
    requester_section: str | None = None
    requester_contact: str | None = None
    has_consent: bool = False
    provider_name: str
    date: date
    time: str
    reason: str
    description: str = ""
    status: AppointmentStatus

    awaiting_entry_decision: bool = False
    entry_verified_by: str | None = None
    entry_decision: EntryDecision | None = None
    entry_requested_at: datetime | None = None
    entry_decided_at: datetime | None = None

    transfer_target_provider_id: UUID | None = None
    transfer_target_provider_name: str | None = None
    transfer_target_accepted: bool | None = None
    transfer_requester_accepted: bool | None = None

    proposed_date: date | None = None
    proposed_time: str | None = None

    version: int
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def has_active_transfer(self) -> bool:
        """Check if a transfer request is outstanding."""
        return self.transfer_target_provider_id is not None

    @property
    def has_active_proposal(self) -> bool:
        """Check if a reschedule proposal is outstanding."""
        return self.proposed_date is not None


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class AppointmentSyncResponse(BaseModel):
    """Appointments changed since a cursor, for polling clients."""

    items: list[AppointmentResponse]
    cursor: datetime | None


class TransferRequest(BaseModel):
    """Schema for proposing a transfer to another provider."""

    target_provider_id: UUID


class RescheduleRequest(BaseModel):
    """Schema for proposing a new date and time."""

    date: date
    time: str = Field(..., pattern=TIME_LABEL_PATTERN)


class ConsentResponse(BaseModel):
    """Accept or decline an outstanding transfer or reschedule proposal."""

    accept: bool


class EntryRequest(BaseModel):
    """Schema for a gate entry request raised for a known appointment."""

    verifier_name: str = Field(..., min_length=1, max_length=200)


class GateScanRequest(BaseModel):
    """Schema for a raw badge scan submitted by a gate device."""

    identity_token: str = Field(..., min_length=1, max_length=128)
    verifier_name: str = Field(..., min_length=1, max_length=200)
    device_id: str = Field(..., min_length=1, max_length=100)


class EntryDecisionRequest(BaseModel):
    """Schema for the provider's allow/deny decision."""

    allowed: bool
