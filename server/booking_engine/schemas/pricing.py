"""Pricing Pydantic schemas."""

import datetime as dt
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import DateRange, StayDates


class NightlyPrice(BaseModel):
    """Price of one night of a stay."""

    date: dt.date
    day_of_week: str = Field(..., description="English weekday name")
    base_price: Decimal
    promotion_discount: Decimal = Field(Decimal("0.00"), description="Filled for per-night promotions only")
    final_price: Decimal
    rate_name: str


class PriceQuote(BaseModel):
    """Full price of a stay."""

    rate_plan_id: UUID
    check_in: dt.date
    check_out: dt.date
    nights: int
    rooms: int
    base_price: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    taxes: Decimal
    fees: Decimal
    total: Decimal
    currency: str
    promotion_id: Optional[UUID] = None
    promotion_code: Optional[str] = None
    promotion_rejection_reason: Optional[str] = Field(
        None, description="Why a requested promotion code was not applied"
    )
    nightly_breakdown: list[NightlyPrice] = Field(default_factory=list)


class QuoteRequest(StayDates):
    """Request schema for pricing a stay."""

    rate_plan_id: UUID
    rooms: int = Field(1, ge=1, le=10)
    promotion_code: Optional[str] = Field(None, max_length=64)
    guest_ref: Optional[str] = Field(None, max_length=128)
    reject_invalid_promotion: bool = Field(
        False, description="Fail instead of quoting without the discount when the code is not valid"
    )


class DynamicPriceRequest(BaseModel):
    """Request schema for a demand-based price recommendation."""

    rate_plan_id: UUID
    date: dt.date
    base_price: Optional[Decimal] = Field(None, ge=0, description="Defaults to the seasonal rate of the date")
    occupancy_rate: Optional[float] = Field(None, ge=0, le=1, description="Defaults to the ledger occupancy")


class DynamicPrice(BaseModel):
    """Demand-based price recommendation for one night."""

    rate_plan_id: UUID
    date: dt.date
    base_price: Decimal
    occupancy_rate: float
    multiplier: Decimal = Field(..., description="Combined multiplier after clamping")
    recommended_price: Decimal


class RecommendationsRequest(DateRange):
    rate_plan_id: UUID


class PricingRecommendation(BaseModel):
    """Current versus recommended price for one night."""

    date: dt.date
    current_price: Decimal
    recommended_price: Decimal
    difference: Decimal
    percentage_change: Decimal
    occupancy_rate: float
    recommendation: str


class ConvertCurrencyRequest(BaseModel):
    amount: Decimal = Field(..., ge=0)
    from_currency: str = Field(..., min_length=3, max_length=3, pattern=r"^[A-Z]{3}$")
    to_currency: str = Field(..., min_length=3, max_length=3, pattern=r"^[A-Z]{3}$")


class ConvertedAmount(BaseModel):
    amount: Decimal
    from_currency: str
    to_currency: str
    rate: Decimal
    converted_amount: Decimal
