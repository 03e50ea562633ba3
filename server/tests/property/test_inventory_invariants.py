"""Property-based tests for ledger and pricing invariants."""

from datetime import timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from booking_engine.core.clock import FixedClock
from booking_engine.core.config import PricingConfig
from booking_engine.core.exceptions import InsufficientInventory, InvalidTransition
from booking_engine.models import BookingStatus, DiscountType, PromotionTarget
from booking_engine.repositories.memory import InMemoryStore, InMemoryUnitOfWork
from booking_engine.schemas.booking import CreateBookingRequest
from booking_engine.services.booking_orchestrator import BookingOrchestrator
from booking_engine.services.pricing_engine import PricingEngine
from booking_engine.services.rate_table import stay_nights

# Strategies for generating test data
room_counts = st.integers(min_value=1, max_value=3)
operations = st.lists(
    st.tuples(
        st.sampled_from(["create", "confirm", "cancel", "expire"]),
        room_counts,
        st.integers(min_value=0, max_value=50),
    ),
    min_size=1,
    max_size=25,
)


async def assert_ledger_matches_bookings(store, rate_plan_id, booking_ids, nights):
    async with InMemoryUnitOfWork(store) as uow:
        bookings = [await uow.bookings.get(booking_id) for booking_id in booking_ids]
        held = sum(b.rooms for b in bookings if b.status == BookingStatus.PENDING)
        sold = sum(b.rooms for b in bookings if b.status == BookingStatus.CONFIRMED)

        for night in nights:
            record = await uow.inventory.get(rate_plan_id, night)
            if record is None:
                assert not bookings
                continue
            assert record.available_rooms >= 0
            assert record.available_rooms + record.reserved_rooms + record.booked_rooms == record.total_rooms
            assert record.reserved_rooms == held
            assert record.booked_rooms == sold


@pytest.mark.asyncio
@settings(max_examples=40, deadline=None)
@given(total_rooms=st.integers(min_value=1, max_value=6), operations=operations)
async def test_room_counts_always_balance(total_rooms, operations, now, check_in, check_out, make_seeder):
    """Whatever happens to bookings, every night's counts add up to its total."""
    store = InMemoryStore()
    clock = FixedClock(now)
    seed = make_seeder(lambda: InMemoryUnitOfWork(store), clock)
    plan = await seed.rate_plan(total_rooms=total_rooms)
    await seed.stay_rates(plan.id)
    orchestrator = BookingOrchestrator(
        InMemoryUnitOfWork(store), PricingConfig(), clock, max_retries=0, backoff_seconds=0
    )

    booking_ids = []
    for action, rooms, pick in operations:
        if action == "create":
            try:
                booking = await orchestrator.create_booking(CreateBookingRequest(
                    guest_ref=f"guest-{len(booking_ids)}",
                    rate_plan_id=plan.id,
                    check_in=check_in,
                    check_out=check_out,
                    adults=1,
                    rooms=rooms,
                ))
            except InsufficientInventory:
                pass
            else:
                booking_ids.append(booking.id)
        elif booking_ids:
            booking_id = booking_ids[pick % len(booking_ids)]
            try:
                if action == "confirm":
                    await orchestrator.confirm_booking(booking_id)
                elif action == "cancel":
                    await orchestrator.cancel_booking(booking_id)
                else:
                    clock.advance(timedelta(hours=1))
                    await orchestrator.expire_booking(booking_id)
            except InvalidTransition:
                pass

        await assert_ledger_matches_bookings(store, plan.id, booking_ids, stay_nights(check_in, check_out))


@pytest.mark.asyncio
@settings(max_examples=60, deadline=None)
@given(
    percent=st.integers(min_value=0, max_value=100),
    cap=st.one_of(st.none(), st.integers(min_value=0, max_value=500)),
    per_night=st.booleans(),
    rooms=room_counts,
)
async def test_quote_components_add_up(percent, cap, per_night, rooms, now, check_in, check_out, make_seeder):
    store = InMemoryStore()
    clock = FixedClock(now)
    seed = make_seeder(lambda: InMemoryUnitOfWork(store), clock)
    plan = await seed.rate_plan(total_rooms=5)
    await seed.stay_rates(plan.id)
    await seed.promotion(
        code="PROP",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=str(percent),
        applies_to=PromotionTarget.PER_NIGHT if per_night else PromotionTarget.TOTAL,
        max_discount_amount=None if cap is None else Decimal(cap),
    )
    engine = PricingEngine(InMemoryUnitOfWork(store), PricingConfig(), clock)

    quote = await engine.calculate_total_price(plan.id, check_in, check_out, promotion_code="PROP", rooms=rooms)

    assert Decimal("0") <= quote.discount_amount <= quote.base_price
    assert quote.subtotal == quote.base_price - quote.discount_amount
    assert quote.total == quote.subtotal + quote.taxes + quote.fees
    assert quote.fees >= Decimal("25.00")
    for amount in (quote.base_price, quote.discount_amount, quote.subtotal, quote.taxes, quote.fees, quote.total):
        assert amount == amount.quantize(Decimal("0.01"))
