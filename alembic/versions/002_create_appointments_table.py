"""create appointments table

Revision ID: 002
Revises: 001
Create Date: 2026-10-05 09:30:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE = "status IN ('pending', 'confirmed')"


def upgrade() -> None:
    """Create appointments table with gate, transfer and reschedule sub-state."""
    op.create_table(
        "appointments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("requester_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("requester_name", sa.Text(), nullable=False),
        sa.Column("requester_id_number", sa.String(50), nullable=True),
        sa.Column("requester_section", sa.String(100), nullable=True),
        sa.Column("requester_contact", sa.String(20), nullable=True),
        sa.Column("has_consent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("provider_name", sa.Text(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(5), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        # Gate
        sa.Column(
            "awaiting_entry_decision",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("entry_verified_by", sa.Text(), nullable=True),
        sa.Column("entry_decision", sa.String(20), nullable=True),
        sa.Column("entry_requested_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("entry_decided_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        # Transfer
        sa.Column("transfer_target_provider_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("transfer_target_provider_name", sa.Text(), nullable=True),
        sa.Column("transfer_target_accepted", sa.Boolean(), nullable=True),
        sa.Column("transfer_requester_accepted", sa.Boolean(), nullable=True),
        # Reschedule
        sa.Column("proposed_date", sa.Date(), nullable=True),
        sa.Column("proposed_time", sa.String(5), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["requester_id"], ["requesters.id"]),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"]),
        sa.ForeignKeyConstraint(["transfer_target_provider_id"], ["providers.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "entry_decision IS NULL OR entry_decision IN ('allowed', 'denied')",
            name="appointments_entry_decision_check",
        ),
        sa.CheckConstraint(
            "transfer_target_provider_id IS NULL OR proposed_date IS NULL",
            name="appointments_single_proposal_check",
        ),
    )

    op.create_index("ix_appointments_requester_id", "appointments", ["requester_id"])
    op.create_index("ix_appointments_provider_id", "appointments", ["provider_id"])
    op.create_index(
        "ix_appointments_transfer_target_provider_id",
        "appointments",
        ["transfer_target_provider_id"],
    )
    op.create_index("idx_appointments_updated_at", "appointments", ["updated_at"])

    # One live appointment per provider slot, one per requester per day
    op.create_index(
        "uq_appointments_provider_slot_active",
        "appointments",
        ["provider_id", "date", "time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE),
    )
    op.create_index(
        "uq_appointments_requester_day_active",
        "appointments",
        ["requester_id", "date"],
        unique=True,
        postgresql_where=sa.text(ACTIVE),
    )


def downgrade() -> None:
    """Drop appointments table."""
    op.drop_index("uq_appointments_requester_day_active", table_name="appointments")
    op.drop_index("uq_appointments_provider_slot_active", table_name="appointments")
    op.drop_index("idx_appointments_updated_at", table_name="appointments")
    op.drop_index("ix_appointments_transfer_target_provider_id", table_name="appointments")
    op.drop_index("ix_appointments_provider_id", table_name="appointments")
    op.drop_index("ix_appointments_requester_id", table_name="appointments")
    op.drop_table("appointments")
