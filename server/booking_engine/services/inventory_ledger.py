"""Inventory ledger: room-night counts per rate plan and date."""

import logging
from datetime import date, timedelta
from typing import Optional
from uuid import UUID, uuid4

from ..core.clock import Clock, utcnow
from ..core.exceptions import (
    CapacityConflict,
    ConflictError,
    InsufficientInventory,
    NotFoundError,
    ValidationError,
)
from ..core.observability import MetricsCollector
from ..models import AllocationStatus, BookingStatus, InventoryAllocation, InventoryRecord, RatePlan
from ..repositories.base import AbstractUnitOfWork
from ..schemas.inventory import InventorySnapshot, InventoryTotalUpdate, LowInventoryAlert, OccupancyStats
from .audit_trail import AuditTrail
from .rate_table import stay_nights

logger = logging.getLogger(__name__)

INVENTORY_SUBJECT = "inventory_record"


def inventory_subject_id(rate_plan_id: UUID, night: date) -> str:
    return f"{rate_plan_id}:{night.isoformat()}"


def _calendar_days(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


class InventoryLedger:
    """
    Tracks total, available, reserved and booked rooms for every night.

    Bookings move rooms available -> reserved (``reserve``), reserved -> booked
    (``confirm_reservation``) and back to available (``release`` and
    ``release_booked``). Each move is recorded as an allocation of the booking,
    so repeating a move for the same booking changes nothing.
    """

    def __init__(self, uow: AbstractUnitOfWork, clock: Clock = utcnow):
        self.uow = uow
        self.clock = clock
        self.audit = AuditTrail(uow, clock)

    async def _get_rate_plan(self, rate_plan_id: UUID) -> RatePlan:
        rate_plan = await self.uow.rate_plans.get(rate_plan_id)
        if rate_plan is None:
            raise NotFoundError("rate plan", str(rate_plan_id))
        return rate_plan

    async def _lock_record(self, rate_plan: RatePlan, night: date) -> InventoryRecord:
        """Lock the record of a night, opening it with the plan's room count if missing."""
        record = await self.uow.inventory.get_for_update(rate_plan.id, night)
        if record is None:
            now = self.clock()
            record = InventoryRecord(
                id=uuid4(),
                rate_plan_id=rate_plan.id,
                date=night,
                total_rooms=rate_plan.total_rooms,
                available_rooms=rate_plan.total_rooms,
                reserved_rooms=0,
                booked_rooms=0,
                version=1,
                created_at=now,
                updated_at=now,
            )
            await self.uow.inventory.add(record)
        return record

    async def available_rooms(self, rate_plan_id: UUID, check_in: date, check_out: date) -> int:
        """Fewest available rooms on any night of the stay."""
        async with self.uow:
            rate_plan = await self._get_rate_plan(rate_plan_id)
            records = {
                record.date: record
                for record in await self.uow.inventory.list_range(rate_plan_id, check_in, check_out)
            }
        return min(
            records[night].available_rooms if night in records else rate_plan.total_rooms
            for night in stay_nights(check_in, check_out)
        )

    async def check_availability(
        self,
        rate_plan_id: UUID,
        check_in: date,
        check_out: date,
        rooms_requested: int = 1,
    ) -> bool:
        """
        Whether every night of the stay has the requested rooms free.

        Nights without a record count as the rate plan's full room count.
        """
        return await self.available_rooms(rate_plan_id, check_in, check_out) >= rooms_requested

    async def reserve(self, booking_id: UUID, actor: Optional[str] = None) -> list[InventoryRecord]:
        """
        Hold the booking's rooms on every night of its stay.

        Records are locked in date order. If any night is short the error
        propagates and the enclosing unit of work rolls back every night.

        Args:
            booking_id: Pending booking to reserve for
            actor: Audit actor

        Returns:
            The updated inventory records, one per night

        Raises:
            NotFoundError: If the booking or its rate plan does not exist
            ConflictError: If the booking is not pending
            InsufficientInventory: If a night cannot cover the booking's rooms
        """
        async with self.uow:
            booking = await self.uow.bookings.get(booking_id)
            if booking is None:
                raise NotFoundError("booking", str(booking_id))
            if booking.current_status != BookingStatus.PENDING:
                raise ConflictError(detail="Only pending bookings can reserve inventory")

            existing = await self.uow.allocations.list_for_booking(booking.id)
            if existing:
                logger.info("Booking already holds inventory", extra={"booking_id": str(booking.id)})
                return [
                    await self.uow.inventory.get(allocation.rate_plan_id, allocation.date)
                    for allocation in existing
                ]

            rate_plan = await self._get_rate_plan(booking.rate_plan_id)
            now = self.clock()
            records = []
            for night in stay_nights(booking.check_in, booking.check_out):
                record = await self._lock_record(rate_plan, night)
                if record.available_rooms < booking.rooms:
                    MetricsCollector.record_inventory_rejection(str(rate_plan.id))
                    logger.warning(
                        "Insufficient inventory for night",
                        extra={
                            "booking_id": str(booking.id),
                            "rate_plan_id": str(rate_plan.id),
                            "date": night.isoformat(),
                            "requested": booking.rooms,
                            "available": record.available_rooms,
                        },
                    )
                    raise InsufficientInventory(rate_plan.id, night, booking.rooms, record.available_rooms)

                before = record.counts()
                record.available_rooms -= booking.rooms
                record.reserved_rooms += booking.rooms
                record.updated_at = now
                await self.uow.allocations.add(InventoryAllocation(
                    id=uuid4(),
                    booking_id=booking.id,
                    rate_plan_id=rate_plan.id,
                    date=night,
                    rooms=booking.rooms,
                    status=AllocationStatus.RESERVED.value,
                    created_at=now,
                    updated_at=now,
                ))
                await self._audit_move("inventory_reserved", record, booking.id, booking.rooms, before, actor)
                records.append(record)

        logger.info(
            "Inventory reserved",
            extra={"booking_id": str(booking_id), "nights": len(records)},
        )
        return records

    async def confirm_reservation(self, booking_id: UUID, actor: Optional[str] = None) -> list[InventoryRecord]:
        """Turn the booking's reserved rooms into booked rooms; already booked nights are skipped."""
        return await self._move(
            booking_id,
            AllocationStatus.RESERVED,
            AllocationStatus.BOOKED,
            "inventory_confirmed",
            actor,
        )

    async def release(self, booking_id: UUID, actor: Optional[str] = None) -> list[InventoryRecord]:
        """Return the booking's reserved rooms to available."""
        return await self._move(
            booking_id,
            AllocationStatus.RESERVED,
            AllocationStatus.RELEASED,
            "inventory_released",
            actor,
        )

    async def release_booked(self, booking_id: UUID, actor: Optional[str] = None) -> list[InventoryRecord]:
        """Return the booking's booked rooms to available."""
        return await self._move(
            booking_id,
            AllocationStatus.BOOKED,
            AllocationStatus.RELEASED,
            "inventory_booked_released",
            actor,
        )

    async def _move(
        self,
        booking_id: UUID,
        source: AllocationStatus,
        target: AllocationStatus,
        action: str,
        actor: Optional[str],
    ) -> list[InventoryRecord]:
        counters = {
            AllocationStatus.RESERVED: "reserved_rooms",
            AllocationStatus.BOOKED: "booked_rooms",
            AllocationStatus.RELEASED: "available_rooms",
        }
        source_field, target_field = counters[source], counters[target]

        async with self.uow:
            # Locked so a concurrent move of the same booking sees the settled status
            allocations = await self.uow.allocations.list_for_booking(booking_id, status=source, for_update=True)
            now = self.clock()
            records = []
            for allocation in allocations:
                record = await self.uow.inventory.get_for_update(allocation.rate_plan_id, allocation.date)
                if record is None or getattr(record, source_field) < allocation.rooms:
                    logger.error(
                        "Inventory record does not hold the booking's rooms",
                        extra={
                            "booking_id": str(booking_id),
                            "date": allocation.date.isoformat(),
                            "expected_field": source_field,
                        },
                    )
                    raise ConflictError(detail="Inventory is inconsistent with the booking's allocation")

                before = record.counts()
                setattr(record, source_field, getattr(record, source_field) - allocation.rooms)
                setattr(record, target_field, getattr(record, target_field) + allocation.rooms)
                record.updated_at = now
                allocation.status = target.value
                allocation.updated_at = now
                await self._audit_move(action, record, booking_id, allocation.rooms, before, actor)
                records.append(record)

        if records:
            logger.info(action.replace("_", " ").capitalize(), extra={"booking_id": str(booking_id), "nights": len(records)})
        return records

    async def _audit_move(
        self,
        action: str,
        record: InventoryRecord,
        booking_id: Optional[UUID],
        rooms: int,
        before: dict[str, int],
        actor: Optional[str],
        reason: Optional[str] = None,
    ) -> None:
        details = {
            "booking_id": booking_id,
            "rate_plan_id": record.rate_plan_id,
            "date": record.date,
            "delta": rooms,
            "before": before,
            "after": record.counts(),
        }
        if reason:
            details["reason"] = reason
        await self.audit.record(
            action,
            INVENTORY_SUBJECT,
            inventory_subject_id(record.rate_plan_id, record.date),
            actor=actor,
            details=details,
        )

    async def adjust_inventory(
        self,
        rate_plan_id: UUID,
        night: date,
        delta: int,
        reason: str,
        actor: str,
    ) -> InventoryRecord:
        """
        Change the total rooms of one night, e.g. when rooms go out of service.

        Raises:
            NotFoundError: If the rate plan does not exist
            CapacityConflict: If the new total would drop below reserved plus booked rooms
        """
        async with self.uow:
            rate_plan = await self._get_rate_plan(rate_plan_id)
            record = await self._lock_record(rate_plan, night)
            committed = record.reserved_rooms + record.booked_rooms
            new_total = record.total_rooms + delta
            if new_total < committed:
                logger.warning(
                    "Inventory adjustment below committed rooms refused",
                    extra={
                        "rate_plan_id": str(rate_plan_id),
                        "date": night.isoformat(),
                        "delta": delta,
                        "committed": committed,
                    },
                )
                raise CapacityConflict(night, new_total, committed)

            before = record.counts()
            record.total_rooms = new_total
            record.available_rooms = new_total - committed
            record.updated_at = self.clock()
            await self._audit_move("inventory_adjusted", record, None, delta, before, actor, reason=reason)

        logger.info(
            "Inventory adjusted",
            extra={"rate_plan_id": str(rate_plan_id), "date": night.isoformat(), "delta": delta, "actor": actor},
        )
        return record

    async def bulk_update_inventory(
        self,
        rate_plan_id: UUID,
        updates: list[InventoryTotalUpdate],
        reason: str,
        actor: str,
    ) -> list[InventoryRecord]:
        """
        Set the total rooms of several nights in one transaction.

        Nights are locked in date order. A night whose new total is below its
        reserved plus booked rooms fails the whole update.

        Raises:
            NotFoundError: If the rate plan does not exist
            ValidationError: If a date appears more than once
            CapacityConflict: If a new total would drop below committed rooms
        """
        nights = [update.date for update in updates]
        duplicates = sorted({night for night in nights if nights.count(night) > 1})
        if duplicates:
            raise ValidationError(
                detail="Each date may appear only once",
                errors={"dates": [night.isoformat() for night in duplicates]},
            )

        async with self.uow:
            rate_plan = await self._get_rate_plan(rate_plan_id)
            now = self.clock()
            records = []
            for update in sorted(updates, key=lambda update: update.date):
                record = await self._lock_record(rate_plan, update.date)
                committed = record.reserved_rooms + record.booked_rooms
                if update.total_rooms < committed:
                    logger.warning(
                        "Bulk inventory update below committed rooms refused",
                        extra={
                            "rate_plan_id": str(rate_plan_id),
                            "date": update.date.isoformat(),
                            "total_rooms": update.total_rooms,
                            "committed": committed,
                        },
                    )
                    raise CapacityConflict(update.date, update.total_rooms, committed)

                delta = update.total_rooms - record.total_rooms
                if delta:
                    before = record.counts()
                    record.total_rooms = update.total_rooms
                    record.available_rooms = update.total_rooms - committed
                    record.updated_at = now
                    await self._audit_move(
                        "inventory_bulk_updated", record, None, delta, before, actor, reason=reason
                    )
                records.append(record)

        logger.info(
            "Inventory bulk updated",
            extra={"rate_plan_id": str(rate_plan_id), "nights": len(records), "actor": actor},
        )
        return records

    async def low_inventory_alerts(self, threshold: int = 3, days_ahead: int = 30) -> list[LowInventoryAlert]:
        """
        Nights from today to ``days_ahead`` days out, across every rate plan,
        that still sell but have at most ``threshold`` rooms left.
        """
        today = self.clock().date()
        async with self.uow:
            records = await self.uow.inventory.list_low_availability(
                today, today + timedelta(days=days_ahead), threshold
            )
            rate_plans: dict[UUID, Optional[RatePlan]] = {}
            for record in records:
                if record.rate_plan_id not in rate_plans:
                    rate_plans[record.rate_plan_id] = await self.uow.rate_plans.get(record.rate_plan_id)

        alerts = []
        for record in records:
            rate_plan = rate_plans[record.rate_plan_id]
            if rate_plan is None:
                continue
            alerts.append(LowInventoryAlert(
                rate_plan_id=rate_plan.id,
                rate_plan_name=rate_plan.name,
                resort_id=rate_plan.resort_id,
                room_type_id=rate_plan.room_type_id,
                date=record.date,
                available_rooms=record.available_rooms,
                total_rooms=record.total_rooms,
            ))
        return alerts

    async def calendar(self, rate_plan_id: UUID, start: date, end: date) -> list[InventorySnapshot]:
        """Snapshot of every date from ``start`` to ``end`` inclusive."""
        async with self.uow:
            rate_plan = await self._get_rate_plan(rate_plan_id)
            records = {
                record.date: record
                for record in await self.uow.inventory.list_range(rate_plan_id, start, end + timedelta(days=1))
            }

        snapshots = []
        for day in _calendar_days(start, end):
            record = records.get(day)
            if record is None:
                total = available = rate_plan.total_rooms
                reserved = booked = 0
                occupancy = 0.0
            else:
                total, available = record.total_rooms, record.available_rooms
                reserved, booked = record.reserved_rooms, record.booked_rooms
                occupancy = record.occupancy_rate
            snapshots.append(InventorySnapshot(
                date=day,
                day_of_week=day.strftime("%A"),
                total_rooms=total,
                available_rooms=available,
                reserved_rooms=reserved,
                booked_rooms=booked,
                is_available=available > 0,
                occupancy_rate=round(occupancy, 4),
            ))
        return snapshots

    async def occupancy_rate(self, rate_plan_id: UUID, night: date) -> float:
        """Reserved plus booked share of the night's rooms, 0.0 for an untouched night."""
        async with self.uow:
            record = await self.uow.inventory.get(rate_plan_id, night)
        return record.occupancy_rate if record is not None else 0.0

    async def occupancy_stats(self, rate_plan_id: UUID, start: date, end: date) -> OccupancyStats:
        """Room-night totals and occupancy percentage from ``start`` to ``end`` inclusive."""
        calendar = await self.calendar(rate_plan_id, start, end)
        total = sum(day.total_rooms for day in calendar)
        reserved = sum(day.reserved_rooms for day in calendar)
        booked = sum(day.booked_rooms for day in calendar)
        occupancy = round((reserved + booked) / total * 100, 2) if total else 0.0

        MetricsCollector.set_occupancy(str(rate_plan_id), occupancy / 100)
        return OccupancyStats(
            rate_plan_id=rate_plan_id,
            start_date=start,
            end_date=end,
            total_room_nights=total,
            available_room_nights=sum(day.available_rooms for day in calendar),
            reserved_room_nights=reserved,
            booked_room_nights=booked,
            occupancy_percentage=occupancy,
        )
