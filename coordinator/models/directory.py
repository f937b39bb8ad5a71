"""Provider and requester directory tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Table, Text, Uuid, func

from coordinator.models.metadata import metadata

providers = Table(
    "providers",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

requesters = Table(
    "requesters",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    # School-issued ID number, distinct from the system id
    Column("id_number", String(50), nullable=False, unique=True),
    Column("section", String(100), nullable=True),
    Column("contact_phone", String(20), nullable=True),
    # Badge / NFC uid read by entry-gate devices
    Column("identity_token", String(128), nullable=True, unique=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
