"""In-memory repositories and unit of work.

Committed rows live in an ``InMemoryStore`` shared by every unit of work
created from it. A unit of work reads private copies of the rows, writes them
back on commit and discards them on rollback. ``get_for_update`` takes a
per-row ``asyncio.Lock`` held until the unit of work ends, and versioned rows
changed underneath an unlocked reader fail the commit with
``PersistenceConflict``, mirroring the SQLAlchemy implementation.
"""

import asyncio
import copy
import itertools
from collections import defaultdict
from collections.abc import Callable, Hashable
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import inspect as sa_inspect

from ..core.exceptions import PersistenceConflict
from ..models import (
    AllocationStatus,
    AuditEntry,
    Booking,
    BookingStatus,
    InventoryAllocation,
    InventoryRecord,
    Promotion,
    PromotionRedemption,
    RatePlan,
    SeasonalRate,
)
from .base import (
    AbstractUnitOfWork,
    AllocationRepository,
    AuditRepository,
    BookingRepository,
    InventoryRepository,
    PromotionRepository,
    RatePlanRepository,
    SeasonalRateRepository,
)

RowKey = tuple[str, Hashable]


def _column_values(instance: Any) -> dict[str, Any]:
    mapper = sa_inspect(type(instance))
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


def _clone(instance: Any) -> Any:
    values = {key: copy.deepcopy(value) for key, value in _column_values(instance).items()}
    return type(instance)(**values)


def _is_versioned(instance: Any) -> bool:
    return sa_inspect(type(instance)).version_id_col is not None


class InMemoryStore:
    """Committed state shared between units of work."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[Hashable, Any]] = defaultdict(dict)
        self.audit: list[AuditEntry] = []
        self._locks: dict[RowKey, asyncio.Lock] = {}
        self._audit_ids = itertools.count(1)

    def lock_for(self, row: RowKey) -> asyncio.Lock:
        lock = self._locks.get(row)
        if lock is None:
            lock = self._locks[row] = asyncio.Lock()
        return lock

    def next_audit_id(self) -> int:
        return next(self._audit_ids)

    def rows(self, table: str) -> list[Any]:
        """Committed rows of a table, for assertions in tests."""
        return list(self.tables[table].values())


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Unit of work over an ``InMemoryStore``."""

    def __init__(self, store: InMemoryStore):
        super().__init__()
        self.store = store

    async def _begin(self) -> None:
        self._working: dict[RowKey, Any] = {}
        self._new: set[RowKey] = set()
        self._snapshots: dict[RowKey, dict[str, Any]] = {}
        self._pending_audit: list[AuditEntry] = []
        self._held: dict[RowKey, asyncio.Lock] = {}

        self.rate_plans = InMemoryRatePlanRepository(self)
        self.inventory = InMemoryInventoryRepository(self)
        self.allocations = InMemoryAllocationRepository(self)
        self.rates = InMemorySeasonalRateRepository(self)
        self.promotions = InMemoryPromotionRepository(self)
        self.bookings = InMemoryBookingRepository(self)
        self.audit = InMemoryAuditRepository(self)

    # Row access used by the repositories

    def _track(self, row: RowKey, stored: Any) -> Any:
        working = _clone(stored)
        self._working[row] = working
        self._snapshots[row] = copy.deepcopy(_column_values(stored))
        return working

    async def load(self, table: str, key: Hashable) -> Optional[Any]:
        await asyncio.sleep(0)
        row = (table, key)
        if row in self._working:
            return self._working[row]
        stored = self.store.tables[table].get(key)
        if stored is None:
            return None
        return self._track(row, stored)

    async def load_for_update(self, table: str, key: Hashable) -> Optional[Any]:
        row = (table, key)
        if row in self._held:
            await asyncio.sleep(0)
            return self._working.get(row)
        lock = self.store.lock_for(row)
        await lock.acquire()
        self._held[row] = lock
        await asyncio.sleep(0)
        if row in self._new:
            return self._working[row]
        stored = self.store.tables[table].get(key)
        if stored is None:
            self._working.pop(row, None)
            self._snapshots.pop(row, None)
            return None
        return self._track(row, stored)

    async def scan(self, table: str, predicate: Callable[[Any], bool]) -> list[Any]:
        await asyncio.sleep(0)
        keys = list(self.store.tables[table].keys())
        keys.extend(key for (name, key) in self._working if name == table and key not in self.store.tables[table])
        matches = []
        for key in keys:
            row = (table, key)
            instance = self._working.get(row)
            if instance is None:
                instance = self._track(row, self.store.tables[table][key])
            if predicate(instance):
                matches.append(instance)
        return matches

    def add(self, table: str, key: Hashable, instance: Any) -> None:
        row = (table, key)
        if row in self._working or key in self.store.tables[table]:
            raise PersistenceConflict()
        self._working[row] = instance
        self._new.add(row)

    def add_audit(self, entry: AuditEntry) -> None:
        self._pending_audit.append(entry)

    # Transaction hooks

    async def _commit(self) -> None:
        writes: list[tuple[RowKey, Any]] = []
        for row, instance in self._working.items():
            table, key = row
            stored = self.store.tables[table].get(key)
            if row in self._new:
                if stored is not None:
                    raise PersistenceConflict()
                if _is_versioned(instance):
                    instance.version = 1
                writes.append((row, instance))
                continue
            if _column_values(instance) == self._snapshots[row]:
                continue
            if _is_versioned(instance):
                if stored is None or stored.version != instance.version:
                    raise PersistenceConflict()
                instance.version = instance.version + 1
            writes.append((row, instance))

        for (table, key), instance in writes:
            self.store.tables[table][key] = _clone(instance)
        for entry in self._pending_audit:
            entry.id = self.store.next_audit_id()
            self.store.audit.append(_clone(entry))

    async def _rollback(self) -> None:
        self._working.clear()
        self._new.clear()
        self._pending_audit.clear()

    async def _close(self) -> None:
        held, self._held = self._held, {}
        for lock in held.values():
            lock.release()


class InMemoryRatePlanRepository(RatePlanRepository):
    table = RatePlan.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def get(self, rate_plan_id: UUID) -> Optional[RatePlan]:
        return await self.uow.load(self.table, rate_plan_id)

    async def list_active(
        self,
        resort_id: Optional[UUID] = None,
        rate_plan_ids: Optional[list[UUID]] = None,
    ) -> list[RatePlan]:
        def matches(plan: RatePlan) -> bool:
            if not plan.active:
                return False
            if resort_id is not None and plan.resort_id != resort_id:
                return False
            return not rate_plan_ids or plan.id in rate_plan_ids

        plans = await self.uow.scan(self.table, matches)
        return sorted(plans, key=lambda plan: plan.name)

    async def add(self, rate_plan: RatePlan) -> None:
        self.uow.add(self.table, rate_plan.id, rate_plan)


class InMemoryInventoryRepository(InventoryRepository):
    table = InventoryRecord.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def get(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        return await self.uow.load(self.table, (rate_plan_id, night))

    async def get_for_update(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        return await self.uow.load_for_update(self.table, (rate_plan_id, night))

    async def list_range(self, rate_plan_id: UUID, start: date, end: date) -> list[InventoryRecord]:
        records = await self.uow.scan(
            self.table,
            lambda record: record.rate_plan_id == rate_plan_id and start <= record.date < end,
        )
        return sorted(records, key=lambda record: record.date)

    async def list_low_availability(self, start: date, end: date, threshold: int) -> list[InventoryRecord]:
        records = await self.uow.scan(
            self.table,
            lambda record: start <= record.date <= end and 0 < record.available_rooms <= threshold,
        )
        return sorted(records, key=lambda record: (record.date, record.available_rooms))

    async def add(self, record: InventoryRecord) -> None:
        self.uow.add(self.table, (record.rate_plan_id, record.date), record)


class InMemoryAllocationRepository(AllocationRepository):
    table = InventoryAllocation.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def list_for_booking(
        self,
        booking_id: UUID,
        status: Optional[AllocationStatus] = None,
        for_update: bool = False,
    ) -> list[InventoryAllocation]:
        def matches(allocation: InventoryAllocation) -> bool:
            if allocation.booking_id != booking_id:
                return False
            return status is None or allocation.status == status

        if not for_update:
            allocations = await self.uow.scan(self.table, matches)
            return sorted(allocations, key=lambda allocation: allocation.date)

        candidates = await self.uow.scan(self.table, lambda allocation: allocation.booking_id == booking_id)
        locked = []
        for candidate in sorted(candidates, key=lambda allocation: allocation.date):
            allocation = await self.uow.load_for_update(self.table, (candidate.booking_id, candidate.date))
            if allocation is not None and matches(allocation):
                locked.append(allocation)
        return locked

    async def add(self, allocation: InventoryAllocation) -> None:
        self.uow.add(self.table, (allocation.booking_id, allocation.date), allocation)


class InMemorySeasonalRateRepository(SeasonalRateRepository):
    table = SeasonalRate.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def get(self, rate_id: UUID) -> Optional[SeasonalRate]:
        return await self.uow.load(self.table, rate_id)

    async def list_for_plan(self, rate_plan_id: UUID) -> list[SeasonalRate]:
        rates = await self.uow.scan(self.table, lambda rate: rate.rate_plan_id == rate_plan_id)
        return sorted(rates, key=lambda rate: rate.start_date)

    async def add(self, rate: SeasonalRate) -> None:
        self.uow.add(self.table, rate.id, rate)


class InMemoryPromotionRepository(PromotionRepository):
    table = Promotion.__tablename__
    redemptions = PromotionRedemption.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def get(self, promotion_id: UUID) -> Optional[Promotion]:
        return await self.uow.load(self.table, promotion_id)

    async def get_by_code(self, code: str) -> Optional[Promotion]:
        found = await self.uow.scan(self.table, lambda promotion: promotion.code == code)
        return found[0] if found else None

    async def get_for_update(self, promotion_id: UUID) -> Optional[Promotion]:
        return await self.uow.load_for_update(self.table, promotion_id)

    async def add(self, promotion: Promotion) -> None:
        if await self.get_by_code(promotion.code) is not None:
            raise PersistenceConflict()
        self.uow.add(self.table, promotion.id, promotion)

    async def count_redemptions(self, promotion_id: UUID, guest_ref: str) -> int:
        found = await self.uow.scan(
            self.redemptions,
            lambda redemption: redemption.promotion_id == promotion_id and redemption.guest_ref == guest_ref,
        )
        return len(found)

    async def add_redemption(self, redemption: PromotionRedemption) -> None:
        self.uow.add(self.redemptions, redemption.booking_id, redemption)


class InMemoryBookingRepository(BookingRepository):
    table = Booking.__tablename__

    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def get(self, booking_id: UUID) -> Optional[Booking]:
        return await self.uow.load(self.table, booking_id)

    async def get_by_reference(self, reference: str) -> Optional[Booking]:
        found = await self.uow.scan(self.table, lambda booking: booking.reference == reference)
        return found[0] if found else None

    async def get_for_update(self, booking_id: UUID) -> Optional[Booking]:
        return await self.uow.load_for_update(self.table, booking_id)

    async def add(self, booking: Booking) -> None:
        self.uow.add(self.table, booking.id, booking)

    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[UUID]:
        stale = await self.uow.scan(
            self.table,
            lambda booking: booking.status == BookingStatus.PENDING and booking.created_at < created_before,
        )
        stale.sort(key=lambda booking: booking.created_at)
        return [booking.id for booking in stale[:limit]]


class InMemoryAuditRepository(AuditRepository):
    def __init__(self, uow: InMemoryUnitOfWork):
        self.uow = uow

    async def append(self, entry: AuditEntry) -> None:
        self.uow.add_audit(entry)

    async def list_for_subject(self, subject_type: str, subject_id: str) -> list[AuditEntry]:
        await asyncio.sleep(0)
        entries = list(self.uow.store.audit) + list(self.uow._pending_audit)
        return [
            entry for entry in entries
            if entry.subject_type == subject_type and entry.subject_id == subject_id
        ]
