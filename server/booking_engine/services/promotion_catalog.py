"""Promotion validity rules and redemption tracking."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from ..core.clock import Clock, utcnow
from ..core.exceptions import InvalidPromotion
from ..models import Booking, Promotion, PromotionRedemption, RatePlan
from ..repositories.base import AbstractUnitOfWork
from .rate_table import stay_nights

logger = logging.getLogger(__name__)


class PromotionCatalog:
    """Decides whether a promotion applies to a stay and records its use."""

    def __init__(self, uow: AbstractUnitOfWork, clock: Clock = utcnow):
        self.uow = uow
        self.clock = clock

    async def rejection_reason(
        self,
        promotion: Promotion,
        rate_plan: RatePlan,
        check_in: date,
        check_out: date,
        subtotal: Decimal,
        guest_ref: Optional[str] = None,
    ) -> Optional[str]:
        """
        First rule the stay breaks, or None when the promotion applies.

        Args:
            promotion: Candidate promotion
            rate_plan: Rate plan being priced
            check_in: Arrival date
            check_out: Departure date
            subtotal: Stay price before the promotion
            guest_ref: Guest reference for per-customer limits

        Returns:
            Human-readable reason, or None
        """
        now = self.clock()
        nights = stay_nights(check_in, check_out)

        if not promotion.active:
            return "promotion is not active"
        if now < promotion.valid_from or now > promotion.valid_until:
            return "promotion is outside its validity window"
        if promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
            return "promotion usage limit reached"
        if promotion.valid_days and not any(night.weekday() in promotion.valid_days for night in nights):
            return "promotion does not apply on the stay's days of the week"
        blackout = set(promotion.blackout_dates or [])
        if any(night.isoformat() in blackout for night in nights):
            return "stay includes a blackout date"
        if len(nights) < promotion.min_nights:
            return f"a minimum of {promotion.min_nights} nights is required"
        if promotion.min_booking_amount is not None and subtotal < promotion.min_booking_amount:
            return f"a minimum booking amount of {promotion.min_booking_amount} is required"
        if promotion.applicable_resorts and str(rate_plan.resort_id) not in promotion.applicable_resorts:
            return "promotion does not apply to this resort"
        if promotion.applicable_room_types and str(rate_plan.room_type_id) not in promotion.applicable_room_types:
            return "promotion does not apply to this room type"
        if promotion.applicable_rate_plans and str(rate_plan.id) not in promotion.applicable_rate_plans:
            return "promotion does not apply to this rate plan"
        if promotion.max_uses_per_customer is not None and guest_ref:
            async with self.uow:
                used = await self.uow.promotions.count_redemptions(promotion.id, guest_ref)
            if used >= promotion.max_uses_per_customer:
                return "guest has already used this promotion"
        return None

    async def get_valid_promotion(
        self,
        code: str,
        rate_plan: RatePlan,
        check_in: date,
        check_out: date,
        subtotal: Decimal,
        guest_ref: Optional[str] = None,
    ) -> Promotion:
        """
        Look up a promotion code and validate it against the stay.

        Raises:
            InvalidPromotion: If the code is unknown or a rule is broken
        """
        async with self.uow:
            promotion = await self.uow.promotions.get_by_code(code)
        if promotion is None:
            raise InvalidPromotion(code, "unknown promotion code")

        reason = await self.rejection_reason(promotion, rate_plan, check_in, check_out, subtotal, guest_ref)
        if reason is not None:
            logger.info(
                "Promotion rejected",
                extra={"code": code, "rate_plan_id": str(rate_plan.id), "reason": reason},
            )
            raise InvalidPromotion(code, reason)
        return promotion

    async def redeem(self, booking: Booking) -> Optional[PromotionRedemption]:
        """
        Count one use of the booking's promotion.

        Called when the booking is confirmed. The promotion row is locked so
        concurrent confirmations cannot both take the last use.

        Returns:
            The redemption, or None when the booking carries no promotion
        """
        if booking.promotion_id is None:
            return None

        async with self.uow:
            promotion = await self.uow.promotions.get_for_update(booking.promotion_id)
            if promotion is None:
                return None
            if promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
                # The guest keeps the quoted price; the overrun is only reported.
                logger.warning(
                    "Promotion usage limit exceeded at confirmation",
                    extra={"code": promotion.code, "booking_id": str(booking.id)},
                )
            promotion.current_uses += 1
            promotion.updated_at = self.clock()
            redemption = PromotionRedemption(
                id=uuid4(),
                promotion_id=promotion.id,
                booking_id=booking.id,
                guest_ref=booking.guest_ref,
                discount_amount=booking.discount_amount,
                redeemed_at=self.clock(),
            )
            await self.uow.promotions.add_redemption(redemption)

        logger.info(
            "Promotion redeemed",
            extra={"code": promotion.code, "booking_id": str(booking.id), "uses": promotion.current_uses},
        )
        return redemption
