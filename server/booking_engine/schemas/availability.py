"""Availability search Pydantic schemas."""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import StayDates
from .pricing import PriceQuote


class AvailabilitySearchRequest(StayDates):
    """Request schema for searching bookable rate plans."""

    adults: int = Field(..., ge=1, le=20)
    children: int = Field(0, ge=0, le=20)
    rooms: int = Field(1, ge=1, le=10)
    resort_id: Optional[UUID] = None
    rate_plan_ids: Optional[list[UUID]] = None
    promotion_code: Optional[str] = Field(None, max_length=64)
    guest_ref: Optional[str] = Field(None, max_length=128)


class AvailabilityCheckRequest(StayDates):
    """Request schema for checking one rate plan."""

    rate_plan_id: UUID
    adults: int = Field(..., ge=1, le=20)
    children: int = Field(0, ge=0, le=20)
    rooms: int = Field(1, ge=1, le=10)
    promotion_code: Optional[str] = Field(None, max_length=64)
    guest_ref: Optional[str] = Field(None, max_length=128)


class AvailabilityOption(BaseModel):
    """Bookable rate plan with its price."""

    rate_plan_id: UUID
    rate_plan_name: str
    resort_id: UUID
    room_type_id: UUID
    max_occupancy: int
    refundable: bool
    breakfast_included: bool
    deposit_required: bool
    available_rooms: int = Field(..., description="Fewest rooms left on any night of the stay")
    quote: PriceQuote


class AvailabilitySearchResponse(BaseModel):
    check_in: date
    check_out: date
    nights: int
    options: list[AvailabilityOption]
