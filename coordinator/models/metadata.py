"""Shared table metadata."""

from sqlalchemy import JSON, MetaData
from sqlalchemy.dialects.postgresql import JSONB

# Metadata for all tables
metadata = MetaData()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Statuses that hold a slot
ACTIVE_STATUSES_SQL = "status IN ('pending', 'confirmed')"
