"""Appointment status transitions."""

from datetime import datetime
from typing import Any

from coordinator.core.exceptions import PreconditionFailedException
from coordinator.schemas.appointments import AppointmentStatus

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

# Sub-state column resets, grouped by axis
CLEAR_GATE: dict[str, Any] = {
    "awaiting_entry_decision": False,
    "entry_verified_by": None,
    "entry_decision": None,
    "entry_requested_at": None,
    "entry_decided_at": None,
}
CLEAR_TRANSFER: dict[str, Any] = {
    "transfer_target_provider_id": None,
    "transfer_target_provider_name": None,
    "transfer_target_accepted": None,
    "transfer_requester_accepted": None,
}
CLEAR_PROPOSAL: dict[str, Any] = {
    "proposed_date": None,
    "proposed_time": None,
}


def is_active(status: AppointmentStatus) -> bool:
    """Check if the status holds a slot."""
    return status in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


def is_terminal(status: AppointmentStatus) -> bool:
    """Check if no further transition is possible."""
    return not TRANSITIONS[status]


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check if ``current -> target`` is in the transition table."""
    return target in TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    """
    Reject a transition that is not in the table.

    Raises:
        PreconditionFailedException: If the move is not allowed
    """
    if not can_transition(current, target):
        raise PreconditionFailedException(
            f"Cannot move appointment from {current.value} to {target.value}"
        )


def transition_values(
    current: AppointmentStatus,
    target: AppointmentStatus,
    now: datetime,
) -> dict[str, Any]:
    """
    Column updates for a validated status change.

    Confirming clears stale gate and transfer state. Leaving the active set
    clears every sub-state so a finished appointment carries no open requests.

    Raises:
        PreconditionFailedException: If the move is not allowed
    """
    ensure_transition(current, target)

    values: dict[str, Any] = {"status": target.value}

    if target == AppointmentStatus.CONFIRMED:
        values.update(CLEAR_GATE)
        values.update(CLEAR_TRANSFER)
    elif target == AppointmentStatus.CANCELLED:
        values.update(CLEAR_GATE)
        values.update(CLEAR_TRANSFER)
        values.update(CLEAR_PROPOSAL)
        values["cancelled_at"] = now
    elif target == AppointmentStatus.COMPLETED:
        values.update(CLEAR_TRANSFER)
        values.update(CLEAR_PROPOSAL)
        values["awaiting_entry_decision"] = False
        values["completed_at"] = now

    return values


def releases_slot(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check if the transition leaves the booked set."""
    return is_active(current) and not is_active(target)
