"""Pricing router for quotes, demand pricing and currency conversion."""

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.config import PricingConfig
from ..core.dependencies import get_clock, get_pricing_config, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.pricing import (
    ConvertCurrencyRequest,
    ConvertedAmount,
    DynamicPrice,
    DynamicPriceRequest,
    PriceQuote,
    PricingRecommendation,
    QuoteRequest,
    RecommendationsRequest,
)
from ..services.pricing_engine import PricingEngine

router = APIRouter(prefix="/v1/pricing", tags=["pricing"])

UOW_DEPENDENCY = Depends(get_unit_of_work)
PRICING_DEPENDENCY = Depends(get_pricing_config)
CLOCK_DEPENDENCY = Depends(get_clock)


def get_pricing_engine(
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    config: PricingConfig = PRICING_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> PricingEngine:
    return PricingEngine(uow, config, clock)


ENGINE_DEPENDENCY = Depends(get_pricing_engine)


@router.post("/quote", response_model=PriceQuote)
async def quote(request: QuoteRequest, engine: PricingEngine = ENGINE_DEPENDENCY) -> PriceQuote:
    """
    Full price of a stay with its nightly breakdown.

    An inapplicable promotion code is reported in ``promotion_rejection_reason``
    unless ``reject_invalid_promotion`` asks for a 422 instead.
    """
    return await engine.calculate_total_price(
        request.rate_plan_id,
        request.check_in,
        request.check_out,
        promotion_code=request.promotion_code,
        guest_ref=request.guest_ref,
        rooms=request.rooms,
        reject_invalid_promotion=request.reject_invalid_promotion,
    )


@router.post("/dynamic", response_model=DynamicPrice)
async def dynamic_price(request: DynamicPriceRequest, engine: PricingEngine = ENGINE_DEPENDENCY) -> DynamicPrice:
    """Demand-based price recommendation for one night."""
    return await engine.dynamic_price(
        request.rate_plan_id,
        request.date,
        base_price=request.base_price,
        occupancy_rate=request.occupancy_rate,
    )


@router.post("/recommendations", response_model=list[PricingRecommendation])
async def recommendations(
    request: RecommendationsRequest,
    engine: PricingEngine = ENGINE_DEPENDENCY,
) -> list[PricingRecommendation]:
    return await engine.pricing_recommendations(request.rate_plan_id, request.start_date, request.end_date)


@router.post("/convert", response_model=ConvertedAmount)
async def convert(request: ConvertCurrencyRequest, engine: PricingEngine = ENGINE_DEPENDENCY) -> ConvertedAmount:
    """Convert an amount with the configured exchange rates."""
    return engine.convert_currency(request.amount, request.from_currency, request.to_currency)
