"""Tests for appointment status transitions."""

from datetime import UTC, datetime

import pytest

from coordinator.core.exceptions import PreconditionFailedException
from coordinator.schemas.appointments import AppointmentStatus
from coordinator.services.state_machine import (
    CLEAR_GATE,
    CLEAR_PROPOSAL,
    CLEAR_TRANSFER,
    can_transition,
    is_active,
    is_terminal,
    releases_slot,
    transition_values,
)

NOW = datetime(2025, 12, 8, 9, 0, tzinfo=UTC)

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
CANCELLED = AppointmentStatus.CANCELLED
COMPLETED = AppointmentStatus.COMPLETED


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (PENDING, CONFIRMED, True),
        (PENDING, CANCELLED, True),
        (PENDING, COMPLETED, False),
        (CONFIRMED, COMPLETED, True),
        (CONFIRMED, CANCELLED, True),
        (CONFIRMED, PENDING, False),
        (CANCELLED, CONFIRMED, False),
        (COMPLETED, CANCELLED, False),
    ],
)
def test_transition_table(current, target, allowed) -> None:
    assert can_transition(current, target) is allowed


def test_terminal_and_active_sets() -> None:
    assert is_terminal(CANCELLED) and is_terminal(COMPLETED)
    assert not is_terminal(PENDING)
    assert is_active(PENDING) and is_active(CONFIRMED)
    assert not is_active(COMPLETED)


def test_disallowed_transition_raises() -> None:
    with pytest.raises(PreconditionFailedException, match="from cancelled to confirmed"):
        transition_values(CANCELLED, CONFIRMED, NOW)


def test_confirm_clears_gate_and_transfer() -> None:
    values = transition_values(PENDING, CONFIRMED, NOW)

    assert values["status"] == "confirmed"
    for column in {**CLEAR_GATE, **CLEAR_TRANSFER}:
        assert column in values
    assert "proposed_date" not in values


def test_cancel_clears_every_sub_state() -> None:
    values = transition_values(CONFIRMED, CANCELLED, NOW)

    assert values["cancelled_at"] == NOW
    for column, cleared in {**CLEAR_GATE, **CLEAR_TRANSFER, **CLEAR_PROPOSAL}.items():
        assert values[column] == cleared


def test_complete_keeps_entry_decision() -> None:
    values = transition_values(CONFIRMED, COMPLETED, NOW)

    assert values["completed_at"] == NOW
    assert values["awaiting_entry_decision"] is False
    assert "entry_decision" not in values


def test_releases_slot() -> None:
    assert releases_slot(PENDING, CANCELLED)
    assert releases_slot(CONFIRMED, COMPLETED)
    assert not releases_slot(PENDING, CONFIRMED)
