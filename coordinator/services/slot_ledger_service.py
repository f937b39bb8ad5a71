"""Slot ledger service: per-provider, per-day bookable times."""

from collections import defaultdict
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from coordinator.config import settings
from coordinator.core.concurrency import run_optimistic
from coordinator.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    StaleRecordError,
)
from coordinator.models.appointments import appointments
from coordinator.models.directory import providers
from coordinator.models.slot_ledger import slot_ledger
from coordinator.schemas.appointments import AppointmentStatus
from coordinator.schemas.availability import DayAvailability, ReconcileResponse, Slot
from coordinator.services.conflict_checker import find_slot_spacing_conflict, time_to_minutes

logger = structlog.get_logger(__name__)

ACTIVE_VALUES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


def _sorted_slots(slots: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(slots, key=lambda slot: time_to_minutes(slot["time"]))


class SlotLedgerService:
    """
    Service for the slot ledger.

    ``book`` and ``free`` join the caller's transaction and never commit, so
    an appointment change and its ledger update land together. ``publish``
    and ``reconcile`` are standalone operations that commit themselves.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _load_row(self, provider_id: UUID, on_date: date) -> Row | None:
        result = await self.db.execute(
            select(slot_ledger).where(
                slot_ledger.c.provider_id == provider_id,
                slot_ledger.c.date == on_date,
            )
        )
        return result.fetchone()

    async def _save_slots(self, row: Row, slots: list[dict[str, Any]]) -> None:
        """Compare-and-swap the slot list against the row version."""
        result = await self.db.execute(
            update(slot_ledger)
            .where(
                slot_ledger.c.id == row.id,
                slot_ledger.c.version == row.version,
            )
            .values(
                slots=_sorted_slots(slots),
                version=row.version + 1,
                updated_at=datetime.now(UTC),
            )
        )
        if result.rowcount != 1:
            raise StaleRecordError("slot_ledger", row.id)

    async def _insert_day(self, provider_id: UUID, on_date: date, slots: list[dict[str, Any]]) -> None:
        await self.db.execute(
            insert(slot_ledger).values(
                provider_id=provider_id,
                date=on_date,
                slots=_sorted_slots(slots),
                version=1,
                updated_at=datetime.now(UTC),
            )
        )

    @staticmethod
    def _to_day(row: Row) -> DayAvailability:
        return DayAvailability(
            provider_id=row.provider_id,
            date=row.date,
            slots=[Slot(**slot) for slot in row.slots],
        )

    async def _set_flag(self, provider_id: UUID, on_date: date, time: str, booked: bool) -> bool:
        row = await self._load_row(provider_id, on_date)

        if row is None:
            if not booked:
                return False
            await self._insert_day(provider_id, on_date, [{"time": time, "booked": True}])
            return True

        slots = [dict(slot) for slot in row.slots]
        for slot in slots:
            if slot["time"] == time:
                if slot["booked"] == booked:
                    return False
                slot["booked"] = booked
                break
        else:
            if not booked:
                return False
            # Provider-driven moves may land on a time that was never published
            slots.append({"time": time, "booked": True})

        await self._save_slots(row, slots)
        return True

    async def book(self, provider_id: UUID, on_date: date, time: str) -> bool:
        """
        Mark a slot booked inside the current transaction.

        Booking an already-booked slot is a no-op so a retried operation is safe.

        Returns:
            True if the ledger changed
        """
        changed = await self._set_flag(provider_id, on_date, time, True)
        if changed:
            logger.debug("slot_booked", provider_id=str(provider_id), date=str(on_date), time=time)
        return changed

    async def free(self, provider_id: UUID, on_date: date, time: str) -> bool:
        """
        Mark a slot free inside the current transaction.

        Freeing a slot that is missing or already free is a no-op.

        Returns:
            True if the ledger changed
        """
        changed = await self._set_flag(provider_id, on_date, time, False)
        if changed:
            logger.debug("slot_freed", provider_id=str(provider_id), date=str(on_date), time=time)
        return changed

    async def find_slot(self, provider_id: UUID, on_date: date, time: str) -> Slot | None:
        """Return the published slot for this triple, if any."""
        row = await self._load_row(provider_id, on_date)
        if row is None:
            return None
        for slot in row.slots:
            if slot["time"] == time:
                return Slot(**slot)
        return None

    async def is_booked(self, provider_id: UUID, on_date: date, time: str) -> bool:
        """Check the ledger's booked flag for a slot."""
        slot = await self.find_slot(provider_id, on_date, time)
        return slot is not None and slot.booked

    async def get_day(self, provider_id: UUID, on_date: date) -> DayAvailability:
        """
        Get the ledger entry for one provider and day.

        Raises:
            NotFoundException: If the provider published nothing that day
        """
        row = await self._load_row(provider_id, on_date)
        if row is None:
            raise NotFoundException("No availability published for this date")
        return self._to_day(row)

    async def list_days(
        self,
        provider_id: UUID,
        from_date: date | None = None,
    ) -> list[DayAvailability]:
        """List a provider's ledger entries in date order, optionally from a date on."""
        stmt = select(slot_ledger).where(slot_ledger.c.provider_id == provider_id)
        if from_date is not None:
            stmt = stmt.where(slot_ledger.c.date >= from_date)

        result = await self.db.execute(stmt.order_by(slot_ledger.c.date))
        return [self._to_day(row) for row in result.fetchall()]

    async def _active_times(self, provider_id: UUID, dates: list[date] | None = None) -> dict[date, set[str]]:
        stmt = select(appointments.c.date, appointments.c.time).where(
            appointments.c.provider_id == provider_id,
            appointments.c.status.in_(ACTIVE_VALUES),
        )
        if dates is not None:
            stmt = stmt.where(appointments.c.date.in_(dates))

        result = await self.db.execute(stmt)
        held: dict[date, set[str]] = defaultdict(set)
        for row in result.fetchall():
            held[row.date].add(row.time)
        return held

    async def publish(self, provider_id: UUID, on_date: date, times: list[str]) -> DayAvailability:
        """
        Replace the published times for a provider's day.

        Times keep their booked flag when republished. A time held by a live
        appointment cannot be withdrawn.

        Args:
            provider_id: Provider publishing availability
            on_date: Day being published
            times: HH:MM labels

        Returns:
            The stored ledger entry

        Raises:
            NotFoundException: If the provider is unknown
            BadRequestException: If the day is a weekend and weekends are closed
            ConflictException: If times are too close or a booked time is removed
        """
        provider = await self.db.execute(select(providers.c.id).where(providers.c.id == provider_id))
        if provider.fetchone() is None:
            raise NotFoundException("Provider not found")

        if not settings.allow_weekend_slots and on_date.weekday() >= 5:
            raise BadRequestException("Weekends are not available for selection")

        too_close = find_slot_spacing_conflict(times, settings.min_interval_minutes)
        if too_close is not None:
            raise ConflictException(
                f"Interval conflict: {too_close[1]} must be at least "
                f"{settings.min_interval_minutes} minutes from {too_close[0]}"
            )

        async def _apply() -> DayAvailability:
            row = await self._load_row(provider_id, on_date)
            held = (await self._active_times(provider_id, [on_date])).get(on_date, set())

            previous = {slot["time"]: slot["booked"] for slot in row.slots} if row else {}
            removed_booked = sorted(
                (t for t, booked in previous.items() if booked and t not in times),
                key=time_to_minutes,
            )
            withdrawn_held = sorted(held - set(times), key=time_to_minutes)
            if removed_booked or withdrawn_held:
                blocked = removed_booked[0] if removed_booked else withdrawn_held[0]
                raise ConflictException(f"Cannot remove booked slot {blocked}")

            slots = [
                {"time": t, "booked": previous.get(t, False) or t in held}
                for t in times
            ]
            if row is None:
                await self._insert_day(provider_id, on_date, slots)
            else:
                await self._save_slots(row, slots)

            return DayAvailability(
                provider_id=provider_id,
                date=on_date,
                slots=[Slot(**slot) for slot in _sorted_slots(slots)],
            )

        day = await run_optimistic(
            self.db,
            _apply,
            action="publish availability",
            attempts=settings.optimistic_retry_attempts,
        )
        logger.info(
            "availability_published",
            provider_id=str(provider_id),
            date=str(on_date),
            slot_count=len(day.slots),
        )
        return day

    async def reconcile(self, provider_id: UUID, on_date: date | None = None) -> ReconcileResponse:
        """
        Recompute booked flags from live appointment rows.

        Corrects drift in the incrementally maintained ledger: a slot is booked
        exactly when a pending or confirmed appointment holds it. Times held by
        live appointments but missing from the ledger are added.

        Args:
            provider_id: Provider whose ledger to rebuild
            on_date: Restrict to one day; all days when omitted

        Returns:
            Number of days checked and flags changed
        """

        async def _apply() -> ReconcileResponse:
            stmt = select(slot_ledger).where(slot_ledger.c.provider_id == provider_id)
            if on_date is not None:
                stmt = stmt.where(slot_ledger.c.date == on_date)
            rows = {row.date: row for row in (await self.db.execute(stmt)).fetchall()}

            held = await self._active_times(
                provider_id, [on_date] if on_date is not None else None
            )

            changed = 0
            for day in sorted(set(rows) | set(held)):
                times_held = held.get(day, set())
                row = rows.get(day)

                if row is None:
                    await self._insert_day(
                        provider_id, day, [{"time": t, "booked": True} for t in times_held]
                    )
                    changed += len(times_held)
                    continue

                slots = []
                day_changed = 0
                for slot in row.slots:
                    booked = slot["time"] in times_held
                    if booked != slot["booked"]:
                        day_changed += 1
                    slots.append({"time": slot["time"], "booked": booked})

                listed = {slot["time"] for slot in row.slots}
                for missing in times_held - listed:
                    slots.append({"time": missing, "booked": True})
                    day_changed += 1

                if day_changed:
                    await self._save_slots(row, slots)
                    changed += day_changed

            return ReconcileResponse(
                provider_id=provider_id,
                days_checked=len(set(rows) | set(held)),
                flags_changed=changed,
            )

        report = await run_optimistic(
            self.db,
            _apply,
            action="reconcile availability",
            attempts=settings.optimistic_retry_attempts,
        )
        logger.info(
            "ledger_reconciled",
            provider_id=str(provider_id),
            days_checked=report.days_checked,
            flags_changed=report.flags_changed,
        )
        return report
