"""Tests for the entry gate verification handshake."""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest
import pytest_asyncio

from coordinator.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PreconditionFailedException,
    TooEarlyException,
)
from coordinator.schemas.appointments import AppointmentStatus, EntryDecision
from coordinator.services.appointment_service import AppointmentService
from coordinator.services.gate_service import GateService
from coordinator.services.notification_service import NotificationService
from coordinator.services.slot_ledger_service import SlotLedgerService

MONDAY = date(2025, 12, 8)


def at(hour: int, minute: int) -> datetime:
    return datetime(2025, 12, 8, hour, minute, tzinfo=UTC)


@pytest.fixture
def gate(db_session, publisher, clock) -> GateService:
    return GateService(db_session, publisher, clock)


@pytest_asyncio.fixture
async def confirmed_with_x(db_session, publisher, clock, counselors, students, make_booking):
    """Student a confirmed with counselor x on Monday 09:00."""
    x = counselors["x"]
    service = AppointmentService(db_session, publisher, clock)
    await SlotLedgerService(db_session).publish(x.id, MONDAY, ["09:00"])
    created = await service.create_appointment(students["a"], make_booking(x, MONDAY, "09:00"))
    return await service.confirm(x, created.id)


@pytest.mark.asyncio
async def test_scan_raises_high_priority_request(
    db_session, gate, clock, counselors, confirmed_with_x
) -> None:
    clock.set(at(8, 40))

    waiting = await gate.scan("badge-a", "Guard Ramos")

    assert waiting.id == confirmed_with_x.id
    assert waiting.awaiting_entry_decision is True
    assert waiting.entry_verified_by == "Guard Ramos"
    assert waiting.entry_requested_at is not None
    assert waiting.status == AppointmentStatus.CONFIRMED

    inbox = await NotificationService(db_session).list_for_user(counselors["x"].id)
    latest = inbox.items[0]
    assert latest.priority == "high"
    assert latest.message == (
        "Verification request: Lea Cruz is at the gate for 09:00, verified by Guard Ramos."
    )


@pytest.mark.asyncio
async def test_scan_unknown_or_no_session_today(gate, clock, confirmed_with_x) -> None:
    clock.set(at(8, 40))
    with pytest.raises(NotFoundException, match="Unknown identity token"):
        await gate.scan("badge-unknown", "Guard Ramos")

    # student b has nothing today
    with pytest.raises(NotFoundException):
        await gate.scan("badge-b", "Guard Ramos")

    # the day before, student a has nothing either
    clock.set(datetime(2025, 12, 7, 9, 0, tzinfo=UTC))
    with pytest.raises(NotFoundException):
        await gate.scan("badge-a", "Guard Ramos")


@pytest.mark.asyncio
async def test_decision_too_early(gate, clock, counselors, confirmed_with_x) -> None:
    """30 minutes before a 09:00 session is outside the 15 minute window."""
    clock.set(at(8, 30))
    await gate.request_entry(confirmed_with_x.id, "Guard Ramos")

    with pytest.raises(TooEarlyException, match="15 minutes"):
        await gate.decide(counselors["x"], confirmed_with_x.id, True)
    with pytest.raises(TooEarlyException):
        await gate.decide(counselors["x"], confirmed_with_x.id, False)

    clock.set(at(8, 45))
    allowed = await gate.decide(counselors["x"], confirmed_with_x.id, True)
    assert allowed.entry_decision == EntryDecision.ALLOWED


@pytest.mark.asyncio
async def test_decide_is_idempotent(db_session, gate, clock, counselors, students, confirmed_with_x) -> None:
    x, a = counselors["x"], students["a"]
    clock.set(at(8, 50))
    await gate.request_entry(confirmed_with_x.id, "Guard Ramos")

    denied = await gate.decide(x, confirmed_with_x.id, False)
    assert denied.entry_decision == EntryDecision.DENIED
    assert denied.awaiting_entry_decision is False
    assert denied.entry_decided_at is not None
    assert denied.status == AppointmentStatus.CONFIRMED

    with pytest.raises(ConflictException, match="already resolved"):
        await gate.decide(x, confirmed_with_x.id, True)

    inbox = await NotificationService(db_session).list_for_user(a.id)
    entry_messages = [m.message for m in inbox.items if "entry" in m.message]
    assert entry_messages == [
        "Your entry for the 09:00 session was DENIED by Counselor Ms. Dana Reyes."
    ]


@pytest.mark.asyncio
async def test_new_request_resets_previous_decision(gate, clock, counselors, confirmed_with_x) -> None:
    clock.set(at(8, 50))
    await gate.request_entry(confirmed_with_x.id, "Guard Ramos")
    await gate.decide(counselors["x"], confirmed_with_x.id, False)

    again = await gate.request_entry(confirmed_with_x.id, "Guard Lim")

    assert again.awaiting_entry_decision is True
    assert again.entry_decision is None
    assert again.entry_verified_by == "Guard Lim"


@pytest.mark.asyncio
async def test_request_preconditions(
    db_session, gate, clock, counselors, students, make_booking, confirmed_with_x
) -> None:
    clock.set(at(8, 50))
    await gate.request_entry(confirmed_with_x.id, "Guard Ramos")

    with pytest.raises(PreconditionFailedException, match="already awaiting"):
        await gate.request_entry(confirmed_with_x.id, "Guard Ramos")
    with pytest.raises(ForbiddenException):
        await gate.decide(counselors["y"], confirmed_with_x.id, True)
    with pytest.raises(NotFoundException):
        await gate.request_entry(uuid4(), "Guard Ramos")

    clock.set(datetime(2025, 12, 1, 8, 0, tzinfo=UTC))
    y = counselors["y"]
    await SlotLedgerService(db_session).publish(y.id, date(2025, 12, 9), ["09:00"])
    pending = await AppointmentService(db_session, clock=clock).create_appointment(
        students["b"], make_booking(y, date(2025, 12, 9), "09:00")
    )
    with pytest.raises(PreconditionFailedException, match="confirmed"):
        await gate.request_entry(pending.id, "Guard Ramos")


@pytest.mark.asyncio
async def test_completion_after_entry_keeps_decision(
    db_session, gate, clock, counselors, confirmed_with_x
) -> None:
    x = counselors["x"]
    clock.set(at(8, 50))
    await gate.request_entry(confirmed_with_x.id, "Guard Ramos")
    await gate.decide(x, confirmed_with_x.id, True)

    clock.set(at(10, 0))
    completed = await AppointmentService(db_session, clock=clock).complete(x, confirmed_with_x.id)

    assert completed.status == AppointmentStatus.COMPLETED
    assert completed.entry_decision == EntryDecision.ALLOWED
