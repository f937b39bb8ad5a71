"""Pure scheduling conflict checks.

Nothing here touches the database: callers load the relevant appointments
and pass them in, so the same rules serve booking, transfer and reschedule.
"""

from collections.abc import Iterable
from datetime import date, datetime, tzinfo
from datetime import time as dt_time
from typing import Protocol
from uuid import UUID

from coordinator.schemas.appointments import AppointmentStatus

ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

DEFAULT_INTERVAL_MINUTES = 80


class ScheduledItem(Protocol):
    """Anything carrying an appointment's scheduling fields."""

    id: UUID
    date: date
    time: str
    status: AppointmentStatus


def time_to_minutes(label: str) -> int:
    """
    Convert an ``HH:MM`` slot label to minutes since midnight.

    Raises:
        ValueError: If the label is not a valid 24-hour time
    """
    try:
        hours_str, minutes_str = label.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time label: {label!r}") from None

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time label: {label!r}")

    return hours * 60 + minutes


def find_exact_slot_conflict(
    existing: Iterable[ScheduledItem],
    on_date: date,
    time: str,
    exclude_id: UUID | None = None,
) -> ScheduledItem | None:
    """Return an active appointment already held at exactly this date and time."""
    for item in existing:
        if item.id == exclude_id:
            continue
        if item.status in ACTIVE_STATUSES and item.date == on_date and item.time == time:
            return item
    return None


def find_daily_conflict(
    existing: Iterable[ScheduledItem],
    on_date: date,
    exclude_id: UUID | None = None,
) -> ScheduledItem | None:
    """Return an active appointment on the same calendar day, if any."""
    for item in existing:
        if item.id == exclude_id:
            continue
        if item.status in ACTIVE_STATUSES and item.date == on_date:
            return item
    return None


def find_interval_conflict(
    existing: Iterable[ScheduledItem],
    on_date: date,
    time: str,
    buffer_minutes: int = DEFAULT_INTERVAL_MINUTES,
    exclude_id: UUID | None = None,
) -> ScheduledItem | None:
    """
    Return a confirmed appointment that day lying within the buffer of ``time``.

    Only confirmed appointments count; pending ones are tentative and are
    guarded by the exact-slot check instead.
    """
    target = time_to_minutes(time)
    for item in existing:
        if item.id == exclude_id:
            continue
        if item.status != AppointmentStatus.CONFIRMED or item.date != on_date:
            continue
        if abs(time_to_minutes(item.time) - target) < buffer_minutes:
            return item
    return None


def find_slot_spacing_conflict(
    times: Iterable[str],
    buffer_minutes: int = DEFAULT_INTERVAL_MINUTES,
) -> tuple[str, str] | None:
    """Return the first pair of published times closer than the buffer."""
    ordered = sorted(times, key=time_to_minutes)
    for earlier, later in zip(ordered, ordered[1:]):
        if time_to_minutes(later) - time_to_minutes(earlier) < buffer_minutes:
            return earlier, later
    return None


def slot_start(on_date: date, time: str, tz: tzinfo) -> datetime:
    """Aware datetime at which a slot on ``on_date`` begins."""
    minutes = time_to_minutes(time)
    return datetime.combine(on_date, dt_time(minutes // 60, minutes % 60), tzinfo=tz)


def minutes_until(on_date: date, time: str, tz: tzinfo, now: datetime) -> float:
    """Minutes from ``now`` until the slot begins; negative once it has started."""
    return (slot_start(on_date, time, tz) - now).total_seconds() / 60
