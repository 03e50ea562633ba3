"""Seasonal rate table: nightly prices and stay restrictions per rate plan."""

import logging
from datetime import date, timedelta
from typing import Optional
from uuid import UUID, uuid4

from ..core.clock import Clock, utcnow
from ..core.exceptions import (
    NotFoundError,
    RateNotDefined,
    SeasonalRateOverlap,
    StayRestrictionViolated,
    ValidationError,
)
from ..models import SeasonalRate
from ..repositories.base import AbstractUnitOfWork
from ..schemas.rates import CreateSeasonalRateRequest, UpdateSeasonalRateRequest
from .audit_trail import AuditTrail

logger = logging.getLogger(__name__)


def stay_nights(check_in: date, check_out: date) -> list[date]:
    """Nights of a stay, ``check_in`` inclusive and ``check_out`` exclusive."""
    return [check_in + timedelta(days=offset) for offset in range((check_out - check_in).days)]


class SeasonalRateTable:
    """Calendar of nightly prices for each rate plan."""

    def __init__(self, uow: AbstractUnitOfWork, clock: Clock = utcnow):
        self.uow = uow
        self.clock = clock
        self.audit = AuditTrail(uow, clock)

    @staticmethod
    def _covering(rates: list[SeasonalRate], night: date) -> Optional[SeasonalRate]:
        for rate in rates:
            if rate.covers(night):
                return rate
        return None

    async def rate_for(self, rate_plan_id: UUID, night: date) -> SeasonalRate:
        """
        Seasonal rate covering one night.

        Raises:
            RateNotDefined: If no range covers the night
        """
        async with self.uow:
            rates = await self.uow.rates.list_for_plan(rate_plan_id)
        rate = self._covering(rates, night)
        if rate is None:
            raise RateNotDefined(rate_plan_id, night)
        return rate

    async def nightly_rates(self, rate_plan_id: UUID, check_in: date, check_out: date) -> list[tuple[date, SeasonalRate]]:
        """
        Covering rate for every night of a stay.

        Raises:
            RateNotDefined: For the first night without a covering range
        """
        async with self.uow:
            rates = await self.uow.rates.list_for_plan(rate_plan_id)

        nightly = []
        for night in stay_nights(check_in, check_out):
            rate = self._covering(rates, night)
            if rate is None:
                logger.info(
                    "No seasonal rate covers night",
                    extra={"rate_plan_id": str(rate_plan_id), "date": night.isoformat()},
                )
                raise RateNotDefined(rate_plan_id, night)
            nightly.append((night, rate))
        return nightly

    async def check_stay_length(self, rate_plan_id: UUID, check_in: date, check_out: date) -> None:
        """
        Enforce the arrival night's minimum and maximum stay.

        Raises:
            RateNotDefined: If the arrival night has no rate
            StayRestrictionViolated: If the stay is too short or too long
        """
        arrival_rate = await self.rate_for(rate_plan_id, check_in)
        nights = (check_out - check_in).days
        if nights < arrival_rate.min_stay or (
            arrival_rate.max_stay is not None and nights > arrival_rate.max_stay
        ):
            raise StayRestrictionViolated(nights, arrival_rate.min_stay, arrival_rate.max_stay)

    async def _ensure_no_overlap(
        self,
        rate_plan_id: UUID,
        start: date,
        end: date,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        for existing in await self.uow.rates.list_for_plan(rate_plan_id):
            if existing.id != exclude_id and existing.overlaps(start, end):
                raise SeasonalRateOverlap(existing.name, existing.start_date, existing.end_date)

    @staticmethod
    def _validate_bounds(start: date, end: date, min_stay: int, max_stay: Optional[int]) -> None:
        if end < start:
            raise ValidationError(detail="end_date must not be before start_date")
        if max_stay is not None and max_stay < min_stay:
            raise ValidationError(detail="max_stay must not be below min_stay")

    async def add_rate(self, request: CreateSeasonalRateRequest, actor: str) -> SeasonalRate:
        """
        Add a seasonal rate range to a rate plan.

        Raises:
            NotFoundError: If the rate plan does not exist
            ValidationError: If the range or stay bounds are inconsistent
            SeasonalRateOverlap: If the range overlaps an existing one
        """
        self._validate_bounds(request.start_date, request.end_date, request.min_stay, request.max_stay)
        now = self.clock()
        async with self.uow:
            if await self.uow.rate_plans.get(request.rate_plan_id) is None:
                raise NotFoundError("rate plan", str(request.rate_plan_id))
            await self._ensure_no_overlap(request.rate_plan_id, request.start_date, request.end_date)

            rate = SeasonalRate(
                id=uuid4(),
                rate_plan_id=request.rate_plan_id,
                name=request.name,
                start_date=request.start_date,
                end_date=request.end_date,
                nightly_price=request.nightly_price,
                min_stay=request.min_stay,
                max_stay=request.max_stay,
                created_at=now,
                updated_at=now,
            )
            await self.uow.rates.add(rate)
            await self.audit.record(
                "seasonal_rate_created",
                "seasonal_rate",
                rate.id,
                actor=actor,
                details={
                    "rate_plan_id": rate.rate_plan_id,
                    "start_date": rate.start_date,
                    "end_date": rate.end_date,
                    "nightly_price": rate.nightly_price,
                },
            )

        logger.info(
            "Seasonal rate created",
            extra={"rate_id": str(rate.id), "rate_plan_id": str(rate.rate_plan_id), "actor": actor},
        )
        return rate

    async def update_rate(self, request: UpdateSeasonalRateRequest, actor: str) -> SeasonalRate:
        """
        Change a seasonal rate's range, price or stay bounds.

        Raises:
            NotFoundError: If the rate does not exist
            ValidationError: If the range or stay bounds are inconsistent
            SeasonalRateOverlap: If the new range overlaps another one
        """
        async with self.uow:
            rate = await self.uow.rates.get(request.rate_id)
            if rate is None:
                raise NotFoundError("seasonal rate", str(request.rate_id))

            changes = request.model_dump(exclude_unset=True, exclude={"rate_id"})
            start = changes.get("start_date", rate.start_date)
            end = changes.get("end_date", rate.end_date)
            min_stay = changes.get("min_stay", rate.min_stay)
            max_stay = changes.get("max_stay", rate.max_stay)
            self._validate_bounds(start, end, min_stay, max_stay)
            await self._ensure_no_overlap(rate.rate_plan_id, start, end, exclude_id=rate.id)

            before = {key: getattr(rate, key) for key in changes}
            for key, value in changes.items():
                setattr(rate, key, value)
            rate.updated_at = self.clock()

            await self.audit.record(
                "seasonal_rate_updated",
                "seasonal_rate",
                rate.id,
                actor=actor,
                details={"before": before, "after": changes},
            )

        logger.info("Seasonal rate updated", extra={"rate_id": str(rate.id), "actor": actor})
        return rate
