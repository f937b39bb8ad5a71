"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    false,
    func,
    text,
)

from coordinator.models.metadata import ACTIVE_STATUSES_SQL, metadata

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("requester_id", Uuid, nullable=False, index=True),
    Column("provider_id", Uuid, nullable=False, index=True),
    # Snapshot fields (denormalized, rewritten on transfer)
    Column("requester_name", Text, nullable=False),
    Column("requester_id_number", String(50), nullable=True),
    Column("requester_section", String(100), nullable=True),
    Column("requester_contact", String(20), nullable=True),
    Column("has_consent", Boolean, nullable=False, server_default=false()),
    Column("provider_name", Text, nullable=False),
    # Scheduling
    Column("date", Date, nullable=False),
    Column("time", String(5), nullable=False),
    Column("reason", Text, nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default="pending"),
    # Gate sub-state
    Column("awaiting_entry_decision", Boolean, nullable=False, server_default=false()),
    Column("entry_verified_by", Text, nullable=True),
    Column("entry_decision", String(20), nullable=True),
    Column("entry_requested_at", DateTime(timezone=True), nullable=True),
    Column("entry_decided_at", DateTime(timezone=True), nullable=True),
    # Transfer sub-state
    Column("transfer_target_provider_id", Uuid, nullable=True, index=True),
    Column("transfer_target_provider_name", Text, nullable=True),
    Column("transfer_target_accepted", Boolean, nullable=True),
    Column("transfer_requester_accepted", Boolean, nullable=True),
    # Reschedule sub-state
    Column("proposed_date", Date, nullable=True),
    Column("proposed_time", String(5), nullable=True),
    # Optimistic concurrency
    Column("version", Integer, nullable=False, server_default=text("1")),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "entry_decision IS NULL OR entry_decision IN ('allowed', 'denied')",
        name="appointments_entry_decision_check",
    ),
    CheckConstraint(
        "transfer_target_provider_id IS NULL OR proposed_date IS NULL",
        name="appointments_single_proposal_check",
    ),
    Index(
        "uq_appointments_provider_slot_active",
        "provider_id",
        "date",
        "time",
        unique=True,
        postgresql_where=text(ACTIVE_STATUSES_SQL),
        sqlite_where=text(ACTIVE_STATUSES_SQL),
    ),
    Index(
        "uq_appointments_requester_day_active",
        "requester_id",
        "date",
        unique=True,
        postgresql_where=text(ACTIVE_STATUSES_SQL),
        sqlite_where=text(ACTIVE_STATUSES_SQL),
    ),
)
