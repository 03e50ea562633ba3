"""Repository interfaces and the unit of work the services depend on."""

import abc
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from ..models import (
    AllocationStatus,
    AuditEntry,
    Booking,
    InventoryAllocation,
    InventoryRecord,
    Promotion,
    PromotionRedemption,
    RatePlan,
    SeasonalRate,
)


class RatePlanRepository(abc.ABC):
    """Read access to the rate plan catalog."""

    @abc.abstractmethod
    async def get(self, rate_plan_id: UUID) -> Optional[RatePlan]:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_active(
        self,
        resort_id: Optional[UUID] = None,
        rate_plan_ids: Optional[list[UUID]] = None,
    ) -> list[RatePlan]:
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, rate_plan: RatePlan) -> None:
        raise NotImplementedError


class InventoryRepository(abc.ABC):
    """Per (rate plan, date) inventory records."""

    @abc.abstractmethod
    async def get(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_for_update(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        """Load the record holding a row lock until the unit of work ends."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_range(self, rate_plan_id: UUID, start: date, end: date) -> list[InventoryRecord]:
        """Records with ``start <= date < end`` ordered by date."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_low_availability(self, start: date, end: date, threshold: int) -> list[InventoryRecord]:
        """Records of every rate plan with ``start <= date <= end`` and ``0 < available_rooms <= threshold``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, record: InventoryRecord) -> None:
        raise NotImplementedError


class AllocationRepository(abc.ABC):
    """Rooms held by bookings per night."""

    @abc.abstractmethod
    async def list_for_booking(
        self,
        booking_id: UUID,
        status: Optional[AllocationStatus] = None,
        for_update: bool = False,
    ) -> list[InventoryAllocation]:
        """
        Allocations of the booking ordered by date.

        With ``for_update`` the rows are locked until the unit of work ends and
        the status filter is applied to the locked rows.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, allocation: InventoryAllocation) -> None:
        raise NotImplementedError


class SeasonalRateRepository(abc.ABC):
    @abc.abstractmethod
    async def get(self, rate_id: UUID) -> Optional[SeasonalRate]:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_for_plan(self, rate_plan_id: UUID) -> list[SeasonalRate]:
        """Rates of the plan ordered by start date."""
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, rate: SeasonalRate) -> None:
        raise NotImplementedError


class PromotionRepository(abc.ABC):
    @abc.abstractmethod
    async def get(self, promotion_id: UUID) -> Optional[Promotion]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_by_code(self, code: str) -> Optional[Promotion]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_for_update(self, promotion_id: UUID) -> Optional[Promotion]:
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, promotion: Promotion) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def count_redemptions(self, promotion_id: UUID, guest_ref: str) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def add_redemption(self, redemption: PromotionRedemption) -> None:
        raise NotImplementedError


class BookingRepository(abc.ABC):
    @abc.abstractmethod
    async def get(self, booking_id: UUID) -> Optional[Booking]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_by_reference(self, reference: str) -> Optional[Booking]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_for_update(self, booking_id: UUID) -> Optional[Booking]:
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, booking: Booking) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[UUID]:
        """Ids of pending bookings created before the cutoff, oldest first."""
        raise NotImplementedError


class AuditRepository(abc.ABC):
    """Append-only audit log."""

    @abc.abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_for_subject(self, subject_type: str, subject_id: str) -> list[AuditEntry]:
        """Entries for one subject in the order they were written."""
        raise NotImplementedError


class AbstractUnitOfWork(abc.ABC):
    """
    Transaction boundary shared by the services of one request.

    ``async with uow:`` is re-entrant: the outermost block begins the
    transaction and commits on success or rolls back on error, nested
    blocks join it. Repositories are only usable inside a block.
    """

    rate_plans: RatePlanRepository
    inventory: InventoryRepository
    allocations: AllocationRepository
    rates: SeasonalRateRepository
    promotions: PromotionRepository
    bookings: BookingRepository
    audit: AuditRepository

    def __init__(self) -> None:
        self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    async def __aenter__(self) -> "AbstractUnitOfWork":
        if self._depth == 0:
            await self._begin()
        self._depth += 1
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self._depth -= 1
        if self._depth > 0:
            return
        try:
            if exc_type is None:
                await self._commit()
            else:
                await self._rollback()
        except BaseException:
            if exc_type is None:
                await self._rollback()
            raise
        finally:
            await self._close()

    @abc.abstractmethod
    async def _begin(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def _rollback(self) -> None:
        raise NotImplementedError

    async def _close(self) -> None:
        return None
