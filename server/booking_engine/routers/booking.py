"""Booking router for the booking lifecycle."""

import logging

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.config import PricingConfig
from ..core.dependencies import get_clock, get_pricing_config, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.booking import (
    Booking,
    CancelBookingRequest,
    ConfirmBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
    PaymentResultRequest,
)
from ..services.booking_orchestrator import BookingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
UOW_DEPENDENCY = Depends(get_unit_of_work)
PRICING_DEPENDENCY = Depends(get_pricing_config)
CLOCK_DEPENDENCY = Depends(get_clock)


def get_orchestrator(
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    config: PricingConfig = PRICING_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> BookingOrchestrator:
    return BookingOrchestrator(uow, config, clock)


ORCHESTRATOR_DEPENDENCY = Depends(get_orchestrator)


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    orchestrator: BookingOrchestrator = ORCHESTRATOR_DEPENDENCY,
) -> Booking:
    """
    Create a pending booking and reserve its rooms.

    The booking stays pending until payment confirms it or the reservation
    sweeper expires it.
    """
    booking = await orchestrator.create_booking(request)
    return Booking.model_validate(booking)


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: ConfirmBookingRequest,
    orchestrator: BookingOrchestrator = ORCHESTRATOR_DEPENDENCY,
) -> Booking:
    """Confirm a pending booking, turning its reserved rooms into booked rooms."""
    booking = await orchestrator.confirm_booking(request.booking_id)
    return Booking.model_validate(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    orchestrator: BookingOrchestrator = ORCHESTRATOR_DEPENDENCY,
) -> Booking:
    """Cancel a booking. Cancelling an already cancelled booking is a no-op."""
    booking = await orchestrator.cancel_booking(request.booking_id, reason=request.reason)
    return Booking.model_validate(booking)


@router.post("/payment", response_model=Booking)
async def payment_result(
    request: PaymentResultRequest,
    orchestrator: BookingOrchestrator = ORCHESTRATOR_DEPENDENCY,
) -> Booking:
    """Apply a payment outcome: confirm on success, cancel on failure."""
    logger.info(
        "Payment result received",
        extra={
            "booking_id": str(request.booking_id),
            "succeeded": request.succeeded,
            "payment_ref": request.payment_ref,
        },
    )
    booking = await orchestrator.handle_payment_result(request.booking_id, request.succeeded)
    return Booking.model_validate(booking)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    orchestrator: BookingOrchestrator = ORCHESTRATOR_DEPENDENCY,
) -> Booking:
    """Fetch a booking by id or by reference."""
    if request.booking_id is not None:
        booking = await orchestrator.get_booking(request.booking_id)
    else:
        booking = await orchestrator.get_booking_by_reference(request.reference)
    return Booking.model_validate(booking)
