"""Tests for the pure scheduling conflict checks."""

from datetime import UTC, date, datetime
from types import SimpleNamespace
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from coordinator.schemas.appointments import AppointmentStatus
from coordinator.services.conflict_checker import (
    find_daily_conflict,
    find_exact_slot_conflict,
    find_interval_conflict,
    find_slot_spacing_conflict,
    minutes_until,
    slot_start,
    time_to_minutes,
)

DAY = date(2025, 12, 8)


def item(time: str, status: AppointmentStatus = AppointmentStatus.CONFIRMED, on_date: date = DAY):
    return SimpleNamespace(id=uuid4(), date=on_date, time=time, status=status)


def test_time_to_minutes() -> None:
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("09:30") == 570
    assert time_to_minutes("23:59") == 1439


@pytest.mark.parametrize("label", ["24:00", "9:3x", "0930", "", "12:60"])
def test_time_to_minutes_rejects_bad_labels(label: str) -> None:
    with pytest.raises(ValueError):
        time_to_minutes(label)


def test_exact_slot_conflict_ignores_inactive_and_excluded() -> None:
    cancelled = item("09:00", AppointmentStatus.CANCELLED)
    live = item("09:00", AppointmentStatus.PENDING)

    assert find_exact_slot_conflict([cancelled], DAY, "09:00") is None
    assert find_exact_slot_conflict([cancelled, live], DAY, "09:00") is live
    assert find_exact_slot_conflict([live], DAY, "09:00", exclude_id=live.id) is None
    assert find_exact_slot_conflict([live], DAY, "10:00") is None


def test_daily_conflict_counts_any_active_time() -> None:
    morning = item("09:00", AppointmentStatus.PENDING)

    assert find_daily_conflict([morning], DAY) is morning
    assert find_daily_conflict([morning], date(2025, 12, 9)) is None
    assert find_daily_conflict([item("09:00", AppointmentStatus.COMPLETED)], DAY) is None


def test_interval_conflict_only_counts_confirmed() -> None:
    confirmed = item("09:30")
    pending = item("09:30", AppointmentStatus.PENDING)

    assert find_interval_conflict([confirmed], DAY, "09:00", 80) is confirmed
    assert find_interval_conflict([pending], DAY, "09:00", 80) is None


def test_interval_conflict_boundary_is_allowed() -> None:
    existing = [item("09:00")]

    # exactly 80 minutes apart is fine, 79 is not
    assert find_interval_conflict(existing, DAY, "10:20", 80) is None
    assert find_interval_conflict(existing, DAY, "10:19", 80) is existing[0]
    assert find_interval_conflict(existing, DAY, "07:40", 80) is None
    assert find_interval_conflict(existing, DAY, "07:41", 80) is existing[0]


def test_interval_conflict_other_day_and_excluded() -> None:
    other_day = item("09:30", on_date=date(2025, 12, 9))
    same = item("09:30")

    assert find_interval_conflict([other_day], DAY, "09:00", 80) is None
    assert find_interval_conflict([same], DAY, "09:00", 80, exclude_id=same.id) is None


def test_slot_spacing_conflict() -> None:
    assert find_slot_spacing_conflict(["09:00", "10:20", "13:00"], 80) is None
    assert find_slot_spacing_conflict(["13:00", "09:00", "10:00"], 80) == ("09:00", "10:00")
    assert find_slot_spacing_conflict([], 80) is None


def test_minutes_until_uses_schedule_timezone() -> None:
    manila = ZoneInfo("Asia/Manila")
    start = slot_start(DAY, "10:00", manila)
    assert start == datetime(2025, 12, 8, 2, 0, tzinfo=UTC)

    now = datetime(2025, 12, 8, 1, 45, tzinfo=UTC)
    assert minutes_until(DAY, "10:00", manila, now) == pytest.approx(15)
    assert minutes_until(DAY, "09:00", manila, now) < 0
