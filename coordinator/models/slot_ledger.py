"""Slot ledger table: published availability per provider and day."""

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, Integer, Table, UniqueConstraint, Uuid, func, text

from coordinator.models.metadata import JSONType, metadata

slot_ledger = Table(
    "slot_ledger",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("provider_id", Uuid, nullable=False),
    Column("date", Date, nullable=False),
    # Ordered list of {"time": "HH:MM", "booked": bool}
    Column("slots", JSONType, nullable=False),
    Column("version", Integer, nullable=False, server_default=text("1")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("provider_id", "date", name="uq_slot_ledger_provider_date"),
)
