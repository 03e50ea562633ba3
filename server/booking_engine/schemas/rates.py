"""Seasonal rate Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreateSeasonalRateRequest(BaseModel):
    """Request schema for adding a seasonal rate range."""

    rate_plan_id: UUID = Field(..., description="Rate plan the range prices")
    name: str = Field(..., min_length=1, max_length=255, description="Season name, e.g. 'High season'")
    start_date: date = Field(..., description="First night covered (inclusive)")
    end_date: date = Field(..., description="Last night covered (inclusive)")
    nightly_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Price per room per night")
    min_stay: int = Field(1, ge=1, description="Minimum nights for stays arriving in the range")
    max_stay: Optional[int] = Field(None, ge=1, description="Maximum nights for stays arriving in the range")


class UpdateSeasonalRateRequest(BaseModel):
    """Request schema for changing a seasonal rate; omitted fields are kept."""

    rate_id: UUID = Field(..., description="Seasonal rate to change")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    nightly_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    min_stay: Optional[int] = Field(None, ge=1)
    max_stay: Optional[int] = Field(None, ge=1)


class SeasonalRate(BaseModel):
    """Seasonal rate response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    rate_plan_id: UUID
    name: str
    start_date: date
    end_date: date
    nightly_price: Decimal
    min_stay: int
    max_stay: Optional[int] = None
    updated_at: datetime
