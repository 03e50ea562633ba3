"""Availability resolver: bookable, priced rate plans for a stay."""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from ..core.clock import Clock, utcnow
from ..core.config import PricingConfig
from ..core.exceptions import (
    InsufficientInventory,
    NotFoundError,
    RateNotDefined,
    StayRestrictionViolated,
    ValidationError,
)
from ..models import RatePlan
from ..repositories.base import AbstractUnitOfWork
from ..schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityOption,
    AvailabilitySearchRequest,
    AvailabilitySearchResponse,
)
from .inventory_ledger import InventoryLedger
from .pricing_engine import PricingEngine
from .rate_table import SeasonalRateTable

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """Walks candidate rate plans and returns the ones that can take the party."""

    def __init__(self, uow: AbstractUnitOfWork, config: PricingConfig, clock: Clock = utcnow):
        self.uow = uow
        self.rate_table = SeasonalRateTable(uow, clock)
        self.ledger = InventoryLedger(uow, clock)
        self.pricing = PricingEngine(uow, config, clock)

    async def _option(
        self,
        rate_plan: RatePlan,
        check_in: date,
        check_out: date,
        guests: int,
        rooms: int,
        promotion_code: Optional[str],
        guest_ref: Optional[str],
    ) -> AvailabilityOption:
        """
        Price one rate plan for the stay.

        Raises:
            ValidationError: If the party does not fit the rooms
            StayRestrictionViolated: If the arrival night's stay limits are broken
            RateNotDefined: If a night has no rate
            InsufficientInventory: If a night is short of rooms
        """
        if guests > rate_plan.max_occupancy * rooms:
            raise ValidationError(
                detail=f"{guests} guests exceed the capacity of {rooms} room(s)",
                errors={"max_occupancy": rate_plan.max_occupancy},
            )

        await self.rate_table.check_stay_length(rate_plan.id, check_in, check_out)

        available = await self.ledger.available_rooms(rate_plan.id, check_in, check_out)
        if available < rooms:
            # Identify the first short night for the caller
            for snapshot in await self.ledger.calendar(rate_plan.id, check_in, check_out):
                if snapshot.date < check_out and snapshot.available_rooms < rooms:
                    raise InsufficientInventory(rate_plan.id, snapshot.date, rooms, snapshot.available_rooms)

        quote = await self.pricing.calculate_total_price(
            rate_plan.id,
            check_in,
            check_out,
            promotion_code=promotion_code,
            guest_ref=guest_ref,
            rooms=rooms,
        )
        return AvailabilityOption(
            rate_plan_id=rate_plan.id,
            rate_plan_name=rate_plan.name,
            resort_id=rate_plan.resort_id,
            room_type_id=rate_plan.room_type_id,
            max_occupancy=rate_plan.max_occupancy,
            refundable=rate_plan.refundable,
            breakfast_included=rate_plan.breakfast_included,
            deposit_required=rate_plan.deposit_required,
            available_rooms=available,
            quote=quote,
        )

    async def search(self, query: AvailabilitySearchRequest) -> AvailabilitySearchResponse:
        """
        Bookable rate plans for the stay, cheapest first.

        Plans that cannot take the party are left out; plans missing a rate
        for some night are left out and logged as a configuration gap.
        """
        async with self.uow:
            candidates = await self.uow.rate_plans.list_active(
                resort_id=query.resort_id,
                rate_plan_ids=query.rate_plan_ids,
            )

        guests = query.adults + query.children
        options = []
        for rate_plan in candidates:
            try:
                options.append(await self._option(
                    rate_plan,
                    query.check_in,
                    query.check_out,
                    guests,
                    query.rooms,
                    query.promotion_code,
                    query.guest_ref,
                ))
            except RateNotDefined as exc:
                logger.warning(
                    "Rate plan skipped: no rate for night",
                    extra={"rate_plan_id": str(rate_plan.id), "date": exc.night.isoformat()},
                )
            except (InsufficientInventory, StayRestrictionViolated, ValidationError) as exc:
                logger.debug(
                    "Rate plan not bookable for stay",
                    extra={"rate_plan_id": str(rate_plan.id), "reason": exc.code or exc.title},
                )

        options.sort(key=lambda option: option.quote.total)
        return AvailabilitySearchResponse(
            check_in=query.check_in,
            check_out=query.check_out,
            nights=query.nights,
            options=options,
        )

    async def check(self, request: AvailabilityCheckRequest) -> AvailabilityOption:
        """
        Price one rate plan for the stay or raise why it cannot be booked.

        Raises:
            NotFoundError: If the rate plan does not exist or is inactive
        """
        return await self.check_rate_plan(
            request.rate_plan_id,
            request.check_in,
            request.check_out,
            adults=request.adults,
            children=request.children,
            rooms=request.rooms,
            promotion_code=request.promotion_code,
            guest_ref=request.guest_ref,
        )

    async def check_rate_plan(
        self,
        rate_plan_id: UUID,
        check_in: date,
        check_out: date,
        adults: int,
        children: int = 0,
        rooms: int = 1,
        promotion_code: Optional[str] = None,
        guest_ref: Optional[str] = None,
    ) -> AvailabilityOption:
        async with self.uow:
            rate_plan = await self.uow.rate_plans.get(rate_plan_id)
        if rate_plan is None or not rate_plan.active:
            raise NotFoundError("rate plan", str(rate_plan_id))
        return await self._option(
            rate_plan, check_in, check_out, adults + children, rooms, promotion_code, guest_ref
        )
