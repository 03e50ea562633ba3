"""SQLAlchemy implementations of the repositories and unit of work."""

import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

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

logger = logging.getLogger(__name__)


async def _flush_new(session: AsyncSession, instance: object) -> None:
    """Insert immediately so unique-key races surface at the call site."""
    session.add(instance)
    try:
        await session.flush()
    except (IntegrityError, StaleDataError) as exc:
        logger.info(
            "Insert lost a unique-key race",
            extra={"table": getattr(instance, "__tablename__", None)},
        )
        raise PersistenceConflict() from exc


class SqlAlchemyRatePlanRepository(RatePlanRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, rate_plan_id: UUID) -> Optional[RatePlan]:
        return await self.session.get(RatePlan, rate_plan_id)

    async def list_active(
        self,
        resort_id: Optional[UUID] = None,
        rate_plan_ids: Optional[list[UUID]] = None,
    ) -> list[RatePlan]:
        stmt = select(RatePlan).where(RatePlan.active.is_(True))
        if resort_id is not None:
            stmt = stmt.where(RatePlan.resort_id == resort_id)
        if rate_plan_ids:
            stmt = stmt.where(RatePlan.id.in_(rate_plan_ids))
        result = await self.session.execute(stmt.order_by(RatePlan.name))
        return list(result.scalars().all())

    async def add(self, rate_plan: RatePlan) -> None:
        await _flush_new(self.session, rate_plan)


class SqlAlchemyInventoryRepository(InventoryRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    def _by_key(self, rate_plan_id: UUID, night: date):
        return select(InventoryRecord).where(
            InventoryRecord.rate_plan_id == rate_plan_id,
            InventoryRecord.date == night,
        )

    async def get(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        result = await self.session.execute(self._by_key(rate_plan_id, night))
        return result.scalar_one_or_none()

    async def get_for_update(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        # populate_existing so a previously loaded copy is refreshed with the locked row
        stmt = (
            self._by_key(rate_plan_id, night)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_range(self, rate_plan_id: UUID, start: date, end: date) -> list[InventoryRecord]:
        stmt = (
            select(InventoryRecord)
            .where(
                InventoryRecord.rate_plan_id == rate_plan_id,
                InventoryRecord.date >= start,
                InventoryRecord.date < end,
            )
            .order_by(InventoryRecord.date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_low_availability(self, start: date, end: date, threshold: int) -> list[InventoryRecord]:
        stmt = (
            select(InventoryRecord)
            .where(
                InventoryRecord.date.between(start, end),
                InventoryRecord.available_rooms > 0,
                InventoryRecord.available_rooms <= threshold,
            )
            .order_by(InventoryRecord.date, InventoryRecord.available_rooms)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, record: InventoryRecord) -> None:
        await _flush_new(self.session, record)


class SqlAlchemyAllocationRepository(AllocationRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_booking(
        self,
        booking_id: UUID,
        status: Optional[AllocationStatus] = None,
        for_update: bool = False,
    ) -> list[InventoryAllocation]:
        stmt = select(InventoryAllocation).where(InventoryAllocation.booking_id == booking_id)
        if status is not None:
            stmt = stmt.where(InventoryAllocation.status == status.value)
        stmt = stmt.order_by(InventoryAllocation.date)
        if for_update:
            # A waiting locker re-checks the status filter once the holder commits
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, allocation: InventoryAllocation) -> None:
        await _flush_new(self.session, allocation)


class SqlAlchemySeasonalRateRepository(SeasonalRateRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, rate_id: UUID) -> Optional[SeasonalRate]:
        return await self.session.get(SeasonalRate, rate_id)

    async def list_for_plan(self, rate_plan_id: UUID) -> list[SeasonalRate]:
        stmt = (
            select(SeasonalRate)
            .where(SeasonalRate.rate_plan_id == rate_plan_id)
            .order_by(SeasonalRate.start_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, rate: SeasonalRate) -> None:
        await _flush_new(self.session, rate)


class SqlAlchemyPromotionRepository(PromotionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, promotion_id: UUID) -> Optional[Promotion]:
        return await self.session.get(Promotion, promotion_id)

    async def get_by_code(self, code: str) -> Optional[Promotion]:
        result = await self.session.execute(select(Promotion).where(Promotion.code == code))
        return result.scalar_one_or_none()

    async def get_for_update(self, promotion_id: UUID) -> Optional[Promotion]:
        stmt = (
            select(Promotion)
            .where(Promotion.id == promotion_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, promotion: Promotion) -> None:
        await _flush_new(self.session, promotion)

    async def count_redemptions(self, promotion_id: UUID, guest_ref: str) -> int:
        stmt = select(func.count(PromotionRedemption.id)).where(
            PromotionRedemption.promotion_id == promotion_id,
            PromotionRedemption.guest_ref == guest_ref,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def add_redemption(self, redemption: PromotionRedemption) -> None:
        await _flush_new(self.session, redemption)


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, booking_id: UUID) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id)

    async def get_by_reference(self, reference: str) -> Optional[Booking]:
        result = await self.session.execute(select(Booking).where(Booking.reference == reference))
        return result.scalar_one_or_none()

    async def get_for_update(self, booking_id: UUID) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, booking: Booking) -> None:
        await _flush_new(self.session, booking)

    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[UUID]:
        stmt = (
            select(Booking.id)
            .where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.created_at < created_before,
            )
            .order_by(Booking.created_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SqlAlchemyAuditRepository(AuditRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: AuditEntry) -> None:
        self.session.add(entry)

    async def list_for_subject(self, subject_type: str, subject_id: str) -> list[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(AuditEntry.subject_type == subject_type, AuditEntry.subject_id == subject_id)
            .order_by(AuditEntry.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """Unit of work opening a fresh session per outermost transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self.session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def _begin(self) -> None:
        self.session = self.session_factory()
        self.rate_plans = SqlAlchemyRatePlanRepository(self.session)
        self.inventory = SqlAlchemyInventoryRepository(self.session)
        self.allocations = SqlAlchemyAllocationRepository(self.session)
        self.rates = SqlAlchemySeasonalRateRepository(self.session)
        self.promotions = SqlAlchemyPromotionRepository(self.session)
        self.bookings = SqlAlchemyBookingRepository(self.session)
        self.audit = SqlAlchemyAuditRepository(self.session)

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except StaleDataError as exc:
            logger.info("Commit lost an optimistic version check")
            raise PersistenceConflict() from exc
        except IntegrityError as exc:
            logger.info("Commit violated a unique or check constraint", extra={"error": str(exc.orig)})
            raise PersistenceConflict() from exc

    async def _rollback(self) -> None:
        await self.session.rollback()

    async def _close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
