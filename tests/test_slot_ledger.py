"""Tests for the slot ledger."""

from datetime import date
from uuid import uuid4

import pytest

from coordinator.core.exceptions import BadRequestException, ConflictException, NotFoundException
from coordinator.services.appointment_service import AppointmentService
from coordinator.services.slot_ledger_service import SlotLedgerService

MONDAY = date(2025, 12, 8)
SATURDAY = date(2025, 12, 6)


@pytest.mark.asyncio
async def test_publish_and_read_day(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)
    x = counselors["x"]

    day = await ledger.publish(x.id, MONDAY, ["13:00", "09:00", "10:20"])

    assert [slot.time for slot in day.slots] == ["09:00", "10:20", "13:00"]
    assert not any(slot.booked for slot in day.slots)
    assert day.has_open_slot

    stored = await ledger.get_day(x.id, MONDAY)
    assert stored == day
    assert await ledger.list_days(x.id) == [day]


@pytest.mark.asyncio
async def test_publish_rejects_weekend(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)

    with pytest.raises(BadRequestException, match="Weekends"):
        await ledger.publish(counselors["x"].id, SATURDAY, ["09:00"])


@pytest.mark.asyncio
async def test_publish_rejects_crowded_times(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)

    with pytest.raises(ConflictException, match="Interval conflict"):
        await ledger.publish(counselors["x"].id, MONDAY, ["09:00", "10:00"])


@pytest.mark.asyncio
async def test_publish_unknown_provider(db_session) -> None:
    ledger = SlotLedgerService(db_session)

    with pytest.raises(NotFoundException):
        await ledger.publish(uuid4(), MONDAY, ["09:00"])


@pytest.mark.asyncio
async def test_get_day_not_published(db_session, counselors) -> None:
    with pytest.raises(NotFoundException):
        await SlotLedgerService(db_session).get_day(counselors["x"].id, MONDAY)


@pytest.mark.asyncio
async def test_book_and_free_are_idempotent(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)
    x = counselors["x"]
    await ledger.publish(x.id, MONDAY, ["09:00", "10:20"])

    assert await ledger.book(x.id, MONDAY, "09:00") is True
    assert await ledger.book(x.id, MONDAY, "09:00") is False
    await db_session.commit()
    assert await ledger.is_booked(x.id, MONDAY, "09:00")

    assert await ledger.free(x.id, MONDAY, "09:00") is True
    assert await ledger.free(x.id, MONDAY, "09:00") is False
    await db_session.commit()
    assert not await ledger.is_booked(x.id, MONDAY, "09:00")

    # nothing published that day: freeing is a no-op
    assert await ledger.free(x.id, date(2025, 12, 9), "09:00") is False


@pytest.mark.asyncio
async def test_book_unpublished_time_adds_it(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)
    x = counselors["x"]
    await ledger.publish(x.id, MONDAY, ["09:00"])

    await ledger.book(x.id, MONDAY, "14:00")
    await db_session.commit()

    day = await ledger.get_day(x.id, MONDAY)
    assert [(s.time, s.booked) for s in day.slots] == [("09:00", False), ("14:00", True)]


@pytest.mark.asyncio
async def test_republish_keeps_booked_and_blocks_removal(db_session, counselors) -> None:
    ledger = SlotLedgerService(db_session)
    x = counselors["x"]
    await ledger.publish(x.id, MONDAY, ["09:00", "10:20"])
    await ledger.book(x.id, MONDAY, "09:00")
    await db_session.commit()

    day = await ledger.publish(x.id, MONDAY, ["09:00", "13:00"])
    assert [(s.time, s.booked) for s in day.slots] == [("09:00", True), ("13:00", False)]

    with pytest.raises(ConflictException, match="Cannot remove booked slot 09:00"):
        await ledger.publish(x.id, MONDAY, ["13:00"])


@pytest.mark.asyncio
async def test_reconcile_repairs_drift(db_session, counselors, students, clock, make_booking) -> None:
    ledger = SlotLedgerService(db_session)
    x = counselors["x"]
    await ledger.publish(x.id, MONDAY, ["09:00", "10:20"])

    service = AppointmentService(db_session, clock=clock)
    await service.create_appointment(students["a"], make_booking(x, MONDAY, "09:00"))

    # simulate a lost ledger write
    await ledger.free(x.id, MONDAY, "09:00")
    await ledger.book(x.id, MONDAY, "10:20")
    await db_session.commit()

    report = await ledger.reconcile(x.id)

    assert report.days_checked == 1
    assert report.flags_changed == 2
    day = await ledger.get_day(x.id, MONDAY)
    assert [(s.time, s.booked) for s in day.slots] == [("09:00", True), ("10:20", False)]

    again = await ledger.reconcile(x.id, MONDAY)
    assert again.flags_changed == 0
