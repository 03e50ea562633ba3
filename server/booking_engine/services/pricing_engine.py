"""Pricing engine: stay quotes, promotion discounts, demand-based recommendations."""

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from ..core.clock import Clock, utcnow
from ..core.config import PricingConfig
from ..core.exceptions import ExchangeRateNotDefined, InvalidPromotion, NotFoundError, RateNotDefined
from ..models import DiscountType, Promotion, PromotionTarget, RatePlan, SeasonalRate
from ..repositories.base import AbstractUnitOfWork
from ..schemas.pricing import ConvertedAmount, DynamicPrice, NightlyPrice, PriceQuote, PricingRecommendation
from .inventory_ledger import InventoryLedger
from .promotion_catalog import PromotionCatalog
from .rate_table import SeasonalRateTable

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Demand-based multipliers
HIGH_OCCUPANCY, HIGH_OCCUPANCY_MULTIPLIER = 0.8, Decimal("1.30")
MEDIUM_OCCUPANCY, MEDIUM_OCCUPANCY_MULTIPLIER = 0.6, Decimal("1.15")
LOW_OCCUPANCY, LOW_OCCUPANCY_MULTIPLIER = 0.3, Decimal("0.85")
WEEKEND_MULTIPLIER = Decimal("1.10")
LAST_MINUTE_DAYS, LAST_MINUTE_MULTIPLIER = 7, Decimal("1.05")
EARLY_BIRD_DAYS, EARLY_BIRD_MULTIPLIER = 60, Decimal("0.95")
MIN_MULTIPLIER, MAX_MULTIPLIER = Decimal("0.70"), Decimal("2.00")
WEEKEND_DAYS = (4, 5)  # Friday, Saturday


def money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_promotion(promotion: Promotion, amount: Decimal) -> Decimal:
    """
    Discount a promotion gives on ``amount``.

    Percentage promotions take ``amount * value / 100``, fixed promotions take
    ``value``. The result is capped at a positive ``max_discount_amount``; zero or
    unset means no cap. The discount never exceeds ``amount``.
    """
    if promotion.discount_type == DiscountType.PERCENTAGE:
        discount = amount * Decimal(promotion.discount_value) / Decimal(100)
    else:
        discount = Decimal(promotion.discount_value)

    if promotion.max_discount_amount:
        discount = min(discount, Decimal(promotion.max_discount_amount))
    return money(max(min(discount, amount), ZERO))


def pricing_action(percentage_change: Decimal) -> str:
    if percentage_change > 10:
        return "increase_significantly"
    if percentage_change > 5:
        return "increase_moderately"
    if percentage_change < -10:
        return "decrease_significantly"
    if percentage_change < -5:
        return "decrease_moderately"
    return "maintain_current"


class PricingEngine:
    """Computes deterministic prices for stays."""

    def __init__(self, uow: AbstractUnitOfWork, config: PricingConfig, clock: Clock = utcnow):
        self.uow = uow
        self.config = config
        self.clock = clock
        self.rate_table = SeasonalRateTable(uow, clock)
        self.promotions = PromotionCatalog(uow, clock)
        self.ledger = InventoryLedger(uow, clock)

    async def _get_rate_plan(self, rate_plan_id: UUID) -> RatePlan:
        async with self.uow:
            rate_plan = await self.uow.rate_plans.get(rate_plan_id)
        if rate_plan is None:
            raise NotFoundError("rate plan", str(rate_plan_id))
        return rate_plan

    async def base_price(self, rate_plan_id: UUID, check_in: date, check_out: date, rooms: int = 1) -> Decimal:
        """
        Sum of the covering nightly prices over the stay.

        Raises:
            RateNotDefined: If a night has no covering rate
        """
        nightly = await self.rate_table.nightly_rates(rate_plan_id, check_in, check_out)
        return money(sum((rate.nightly_price * rooms for _, rate in nightly), ZERO))

    @staticmethod
    def _breakdown(
        nightly: list[tuple[date, SeasonalRate]],
        rooms: int,
        promotion: Optional[Promotion] = None,
    ) -> list[NightlyPrice]:
        per_night = promotion is not None and promotion.applies_to == PromotionTarget.PER_NIGHT
        breakdown = []
        for night, rate in nightly:
            price = money(rate.nightly_price * rooms)
            discount = apply_promotion(promotion, price) if per_night else ZERO
            breakdown.append(NightlyPrice(
                date=night,
                day_of_week=night.strftime("%A"),
                base_price=price,
                promotion_discount=discount,
                final_price=price - discount,
                rate_name=rate.name,
            ))
        return breakdown

    async def nightly_breakdown(
        self,
        rate_plan_id: UUID,
        check_in: date,
        check_out: date,
        promotion: Optional[Promotion] = None,
        rooms: int = 1,
    ) -> list[NightlyPrice]:
        """Per-night prices; ``promotion_discount`` is filled for per-night promotions only."""
        nightly = await self.rate_table.nightly_rates(rate_plan_id, check_in, check_out)
        return self._breakdown(nightly, rooms, promotion)

    async def calculate_total_price(
        self,
        rate_plan_id: UUID,
        check_in: date,
        check_out: date,
        promotion_code: Optional[str] = None,
        guest_ref: Optional[str] = None,
        rooms: int = 1,
        reject_invalid_promotion: bool = False,
    ) -> PriceQuote:
        """
        Price a stay including promotion, taxes and fees.

        subtotal = base - discount, taxes = subtotal * tax_rate,
        fees = subtotal * service_fee_rate + booking_fee, total = subtotal + taxes + fees.
        Every component is rounded to cents.

        Args:
            rate_plan_id: Rate plan to price
            check_in: Arrival date
            check_out: Departure date
            promotion_code: Optional promotion code
            guest_ref: Guest reference for per-customer promotion limits
            rooms: Rooms priced on every night
            reject_invalid_promotion: Raise instead of quoting without the discount

        Returns:
            PriceQuote with the nightly breakdown

        Raises:
            NotFoundError: If the rate plan does not exist
            RateNotDefined: If a night has no covering rate
            InvalidPromotion: If the code is not valid and the caller asked to reject
        """
        rate_plan = await self._get_rate_plan(rate_plan_id)
        nightly = await self.rate_table.nightly_rates(rate_plan_id, check_in, check_out)
        base = money(sum((rate.nightly_price * rooms for _, rate in nightly), ZERO))

        promotion = None
        rejection_reason = None
        if promotion_code:
            try:
                promotion = await self.promotions.get_valid_promotion(
                    promotion_code, rate_plan, check_in, check_out, base, guest_ref
                )
            except InvalidPromotion as exc:
                if reject_invalid_promotion:
                    raise
                rejection_reason = exc.reason

        breakdown = self._breakdown(nightly, rooms, promotion)
        if promotion is None:
            discount = ZERO
        elif promotion.applies_to == PromotionTarget.PER_NIGHT:
            discount = sum((night.promotion_discount for night in breakdown), ZERO)
        else:
            discount = apply_promotion(promotion, base)

        subtotal = base - discount
        taxes = money(subtotal * self.config.tax_rate)
        fees = money(subtotal * self.config.service_fee_rate + self.config.booking_fee)
        total = subtotal + taxes + fees

        logger.debug(
            "Stay priced",
            extra={
                "rate_plan_id": str(rate_plan_id),
                "nights": len(nightly),
                "promotion_code": promotion.code if promotion else None,
                "total": str(total),
            },
        )
        return PriceQuote(
            rate_plan_id=rate_plan_id,
            check_in=check_in,
            check_out=check_out,
            nights=len(nightly),
            rooms=rooms,
            base_price=base,
            discount_amount=discount,
            subtotal=subtotal,
            taxes=taxes,
            fees=fees,
            total=total,
            currency=self.config.currency,
            promotion_id=promotion.id if promotion else None,
            promotion_code=promotion.code if promotion else None,
            promotion_rejection_reason=rejection_reason,
            nightly_breakdown=breakdown,
        )

    def demand_multiplier(self, night: date, occupancy_rate: float) -> Decimal:
        """Combined occupancy, weekend and lead-time multiplier, clamped to [0.70, 2.00]."""
        if occupancy_rate > HIGH_OCCUPANCY:
            multiplier = HIGH_OCCUPANCY_MULTIPLIER
        elif occupancy_rate > MEDIUM_OCCUPANCY:
            multiplier = MEDIUM_OCCUPANCY_MULTIPLIER
        elif occupancy_rate < LOW_OCCUPANCY:
            multiplier = LOW_OCCUPANCY_MULTIPLIER
        else:
            multiplier = Decimal("1.00")

        if night.weekday() in WEEKEND_DAYS:
            multiplier *= WEEKEND_MULTIPLIER

        lead_days = abs((night - self.clock().date()).days)
        if lead_days < LAST_MINUTE_DAYS:
            multiplier *= LAST_MINUTE_MULTIPLIER
        elif lead_days > EARLY_BIRD_DAYS:
            multiplier *= EARLY_BIRD_MULTIPLIER

        return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, multiplier))

    async def dynamic_price(
        self,
        rate_plan_id: UUID,
        night: date,
        base_price: Optional[Decimal] = None,
        occupancy_rate: Optional[float] = None,
    ) -> DynamicPrice:
        """
        Demand-based price recommendation for one night.

        The result is never written back to the rate table.
        """
        if base_price is None:
            base_price = (await self.rate_table.rate_for(rate_plan_id, night)).nightly_price
        if occupancy_rate is None:
            occupancy_rate = await self.ledger.occupancy_rate(rate_plan_id, night)

        multiplier = self.demand_multiplier(night, occupancy_rate)
        return DynamicPrice(
            rate_plan_id=rate_plan_id,
            date=night,
            base_price=money(base_price),
            occupancy_rate=occupancy_rate,
            multiplier=multiplier.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP),
            recommended_price=money(base_price * multiplier),
        )

    async def pricing_recommendations(self, rate_plan_id: UUID, start: date, end: date) -> list[PricingRecommendation]:
        """Current versus recommended price for every priced night from ``start`` to ``end`` inclusive."""
        recommendations = []
        night = start
        while night <= end:
            try:
                rate = await self.rate_table.rate_for(rate_plan_id, night)
            except RateNotDefined:
                night += timedelta(days=1)
                continue

            dynamic = await self.dynamic_price(rate_plan_id, night, rate.nightly_price)
            current = money(rate.nightly_price)
            difference = dynamic.recommended_price - current
            change = money(difference / current * 100) if current else ZERO
            recommendations.append(PricingRecommendation(
                date=night,
                current_price=current,
                recommended_price=dynamic.recommended_price,
                difference=difference,
                percentage_change=change,
                occupancy_rate=dynamic.occupancy_rate,
                recommendation=pricing_action(change),
            ))
            night += timedelta(days=1)
        return recommendations

    def convert_currency(self, amount: Decimal, from_currency: str, to_currency: str) -> ConvertedAmount:
        """
        Convert an amount using the configured exchange rates.

        A direct ``FROM_TO_TO`` pair is used when configured; otherwise the
        amount goes source -> base currency -> target as two explicit hops.

        Raises:
            ExchangeRateNotDefined: If a needed pair is not configured
        """
        rate = self._exchange_rate(from_currency.upper(), to_currency.upper())
        return ConvertedAmount(
            amount=amount,
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            rate=rate,
            converted_amount=money(amount * rate),
        )

    def _exchange_rate(self, source: str, target: str) -> Decimal:
        if source == target:
            return Decimal(1)

        rates = self.config.exchange_rates
        direct = rates.get(f"{source}_TO_{target}")
        if direct is not None:
            return Decimal(direct)

        base = self.config.base_currency
        if base in (source, target):
            raise ExchangeRateNotDefined(source, target)

        to_base = rates.get(f"{source}_TO_{base}")
        if to_base is None:
            raise ExchangeRateNotDefined(source, base)
        from_base = rates.get(f"{base}_TO_{target}")
        if from_base is None:
            raise ExchangeRateNotDefined(base, target)
        return Decimal(to_base) * Decimal(from_base)
