"""Unit tests for promotion validity rules."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_engine.core.exceptions import InvalidPromotion
from booking_engine.services.promotion_catalog import PromotionCatalog

BASE = Decimal("330.00")


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"active": False}, "promotion is not active"),
        ({"valid_until": timedelta(days=-1)}, "promotion is outside its validity window"),
        ({"valid_from": timedelta(days=1)}, "promotion is outside its validity window"),
        ({"max_uses": 5, "current_uses": 5}, "promotion usage limit reached"),
        ({"valid_days": [6]}, "promotion does not apply on the stay's days of the week"),
        ({"blackout_dates": ["2025-07-11"]}, "stay includes a blackout date"),
        ({"min_nights": 4}, "a minimum of 4 nights is required"),
        ({"min_booking_amount": Decimal("400.00")}, "a minimum booking amount of 400.00 is required"),
        ({"applicable_resorts": [str(uuid4())]}, "promotion does not apply to this resort"),
        ({"applicable_room_types": [str(uuid4())]}, "promotion does not apply to this room type"),
        ({"applicable_rate_plans": [str(uuid4())]}, "promotion does not apply to this rate plan"),
    ],
)
@pytest.mark.asyncio
async def test_rejection_reasons(seed, uow_factory, clock, overrides, reason, check_in, check_out):
    plan = await seed.rate_plan()
    # Validity bounds are offsets from the frozen clock
    overrides = {
        key: clock() + value if isinstance(value, timedelta) else value
        for key, value in overrides.items()
    }
    await seed.promotion(code="RULES", **overrides)
    catalog = PromotionCatalog(uow_factory(), clock)

    with pytest.raises(InvalidPromotion) as exc_info:
        await catalog.get_valid_promotion("RULES", plan, check_in, check_out, BASE, guest_ref="guest-1")

    assert exc_info.value.reason == reason
    assert exc_info.value.code == "INVALID_PROMOTION"


@pytest.mark.asyncio
async def test_valid_promotion_with_matching_scope(seed, uow_factory, clock, check_in, check_out):
    plan = await seed.rate_plan()
    await seed.promotion(
        code="SCOPED",
        valid_days=[4],  # the Friday night qualifies the stay
        min_nights=3,
        min_booking_amount=Decimal("300.00"),
        applicable_resorts=[str(plan.resort_id)],
        applicable_rate_plans=[str(plan.id)],
    )
    catalog = PromotionCatalog(uow_factory(), clock)

    promotion = await catalog.get_valid_promotion("SCOPED", plan, check_in, check_out, BASE)

    assert promotion.code == "SCOPED"


@pytest.mark.asyncio
async def test_unknown_code(seed, uow_factory, clock, check_in, check_out):
    plan = await seed.rate_plan()
    catalog = PromotionCatalog(uow_factory(), clock)

    with pytest.raises(InvalidPromotion) as exc_info:
        await catalog.get_valid_promotion("NOPE", plan, check_in, check_out, BASE)

    assert exc_info.value.reason == "unknown promotion code"
