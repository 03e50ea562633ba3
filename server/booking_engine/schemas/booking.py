"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import StayDates


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class CreateBookingRequest(StayDates):
    """Request schema for creating a pending booking."""

    guest_ref: str = Field(..., min_length=1, max_length=128, description="Guest reference")
    rate_plan_id: UUID = Field(..., description="Rate plan to book")
    adults: int = Field(..., ge=1, le=20)
    children: int = Field(0, ge=0, le=20)
    rooms: int = Field(1, ge=1, le=10, description="Rooms reserved on every night")
    promotion_code: Optional[str] = Field(None, max_length=64)


class ConfirmBookingRequest(BaseModel):
    """Request schema for confirming a booking."""

    booking_id: UUID = Field(..., description="Booking to confirm")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: UUID = Field(..., description="Booking to cancel")
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking by id or reference."""

    booking_id: Optional[UUID] = None
    reference: Optional[str] = Field(None, min_length=10, max_length=10)

    @model_validator(mode="after")
    def one_identifier(self):
        if (self.booking_id is None) == (self.reference is None):
            raise ValueError("Provide exactly one of booking_id or reference")
        return self


class PaymentResultRequest(BaseModel):
    """Payment outcome reported by the payment collaborator."""

    booking_id: UUID
    succeeded: bool
    payment_ref: Optional[str] = Field(None, max_length=128)


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique booking ID")
    reference: str = Field(..., description="Booking reference, BK + 8 characters")
    guest_ref: str
    rate_plan_id: UUID
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    rooms: int
    base_price: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    taxes: Decimal
    fees: Decimal
    total: Decimal
    currency: str
    promotion_code: Optional[str] = None
    price_breakdown: list[dict[str, Any]] = Field(default_factory=list)
    status: BookingStatus
    refund_due: bool
    cancellation_reason: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
