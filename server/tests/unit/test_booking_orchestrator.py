"""Unit tests for the booking orchestrator."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from booking_engine.core.exceptions import InsufficientInventory, InvalidTransition, NotFoundError
from booking_engine.models import BookingStatus
from booking_engine.schemas.booking import CreateBookingRequest
from booking_engine.services.booking_orchestrator import (
    BOOKING_SUBJECT,
    PAYMENT_FAILED_REASON,
    generate_booking_reference,
)


@pytest.fixture
def booking_request(check_in, check_out):
    def build(rate_plan_id, **overrides) -> CreateBookingRequest:
        values = dict(
            guest_ref="guest-1",
            rate_plan_id=rate_plan_id,
            check_in=check_in,
            check_out=check_out,
            adults=2,
        )
        values.update(overrides)
        return CreateBookingRequest(**values)

    return build


@pytest_asyncio.fixture
async def plan(seed):
    plan = await seed.rate_plan(total_rooms=5)
    await seed.stay_rates(plan.id)
    return plan


def test_booking_reference_format():
    reference = generate_booking_reference()

    assert len(reference) == 10
    assert reference.startswith("BK")
    assert reference[2:].isalnum()
    assert reference[2:].upper() == reference[2:]


@pytest.mark.asyncio
async def test_create_booking_reserves_rooms(seed, orchestrator, plan, check_in, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id, rooms=2))

    assert booking.status == BookingStatus.PENDING
    assert booking.reference.startswith("BK")
    assert booking.nights == 3
    assert booking.rooms == 2
    assert booking.total == Decimal("797.20")
    assert [night["date"] for night in booking.price_breakdown] == ["2025-07-10", "2025-07-11", "2025-07-12"]

    record = await seed.record(plan.id, check_in)
    assert record.reserved_rooms == 2
    assert record.available_rooms == 3

    stored = await orchestrator.get_booking_by_reference(booking.reference)
    assert stored.id == booking.id

    history = await orchestrator.audit.history(BOOKING_SUBJECT, booking.id)
    assert [entry.action for entry in history] == ["booking_created"]
    assert history[0].actor == "guest-1"
    assert history[0].after_state == "pending"


@pytest.mark.asyncio
async def test_create_booking_with_promotion(seed, orchestrator, plan, booking_request):
    await seed.promotion(code="SUMMER10")

    booking = await orchestrator.create_booking(booking_request(plan.id, promotion_code="SUMMER10"))

    assert booking.discount_amount == Decimal("33.00")
    assert booking.total == Decimal("372.49")
    assert booking.promotion_code == "SUMMER10"


@pytest.mark.asyncio
async def test_create_booking_without_inventory_persists_nothing(
    seed,
    orchestrator,
    uow_factory,
    now,
    check_in,
    booking_request,
):
    plan = await seed.rate_plan(total_rooms=1)
    await seed.stay_rates(plan.id)
    await seed.inventory(plan.id, check_in + timedelta(days=1), total_rooms=1, booked=1)

    with pytest.raises(InsufficientInventory) as exc_info:
        await orchestrator.create_booking(booking_request(plan.id))

    assert exc_info.value.night == date(2025, 7, 11)
    async with uow_factory() as uow:
        assert await uow.bookings.list_stale_pending(now + timedelta(days=365), 100) == []
    assert (await seed.record(plan.id, check_in)) is None


@pytest.mark.asyncio
async def test_confirm_books_rooms_and_redeems_promotion(
    seed,
    orchestrator,
    plan,
    uow_factory,
    now,
    check_in,
    booking_request,
):
    promotion = await seed.promotion(code="ONCE", max_uses_per_customer=1)
    booking = await orchestrator.create_booking(booking_request(plan.id, promotion_code="ONCE"))

    confirmed = await orchestrator.confirm_booking(booking.id, actor="payment")

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.confirmed_at == now
    record = await seed.record(plan.id, check_in)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (4, 0, 1)

    async with uow_factory() as uow:
        stored = await uow.promotions.get(promotion.id)
        assert stored.current_uses == 1

    # The same guest cannot use the code again; the booking goes ahead at full price
    second = await orchestrator.create_booking(booking_request(plan.id, promotion_code="ONCE"))
    assert second.promotion_code is None
    assert second.discount_amount == Decimal("0.00")
    history = await orchestrator.audit.history(BOOKING_SUBJECT, second.id)
    assert history[0].details["promotion_rejection_reason"] == "guest has already used this promotion"


@pytest.mark.asyncio
async def test_confirm_twice_is_rejected(orchestrator, plan, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))
    await orchestrator.confirm_booking(booking.id)

    with pytest.raises(InvalidTransition) as exc_info:
        await orchestrator.confirm_booking(booking.id)

    assert exc_info.value.current == "confirmed"
    assert exc_info.value.target == "confirmed"
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_cancel_pending_releases_reserved_rooms(seed, orchestrator, plan, check_in, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))

    cancelled = await orchestrator.cancel_booking(booking.id, reason="change of plans", actor="guest-1")

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "change of plans"
    assert cancelled.refund_due is False
    record = await seed.record(plan.id, check_in)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (5, 0, 0)


@pytest.mark.parametrize("refundable", [True, False])
@pytest.mark.asyncio
async def test_cancel_confirmed_releases_booked_rooms(
    seed,
    orchestrator,
    refundable,
    check_out,
    booking_request,
):
    plan = await seed.rate_plan(total_rooms=3, refundable=refundable)
    await seed.stay_rates(plan.id)
    booking = await orchestrator.create_booking(booking_request(plan.id))
    await orchestrator.confirm_booking(booking.id)

    cancelled = await orchestrator.cancel_booking(booking.id, reason="illness")

    assert cancelled.refund_due is refundable
    record = await seed.record(plan.id, check_out - timedelta(days=1))
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (3, 0, 0)


@pytest.mark.asyncio
async def test_cancel_twice_changes_nothing(seed, orchestrator, plan, check_in, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))
    await orchestrator.cancel_booking(booking.id, reason="first")

    again = await orchestrator.cancel_booking(booking.id, reason="second")

    assert again.status == BookingStatus.CANCELLED
    assert again.cancellation_reason == "first"
    history = await orchestrator.audit.history(BOOKING_SUBJECT, booking.id)
    assert [entry.action for entry in history] == ["booking_created", "booking_cancelled"]
    assert (await seed.record(plan.id, check_in)).available_rooms == 5


@pytest.mark.asyncio
async def test_expire_booking_after_grace_period(seed, orchestrator, plan, now, check_in, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))

    too_early = await orchestrator.expire_booking(booking.id, now=now + orchestrator.expiry_grace)
    assert too_early is None

    expired = await orchestrator.expire_booking(
        booking.id, now=now + orchestrator.expiry_grace + timedelta(seconds=1)
    )

    assert expired.status == BookingStatus.EXPIRED
    assert expired.expired_at is not None
    assert (await seed.record(plan.id, check_in)).available_rooms == 5

    history = await orchestrator.audit.history(BOOKING_SUBJECT, booking.id)
    assert history[-1].action == "booking_expired"
    assert history[-1].actor == "reservation_sweeper"

    # Expired bookings can be neither confirmed nor cancelled
    with pytest.raises(InvalidTransition):
        await orchestrator.confirm_booking(booking.id)
    with pytest.raises(InvalidTransition):
        await orchestrator.cancel_booking(booking.id)


@pytest.mark.asyncio
async def test_expire_leaves_confirmed_booking(seed, orchestrator, plan, now, check_in, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))
    await orchestrator.confirm_booking(booking.id)

    result = await orchestrator.expire_booking(booking.id, now=now + timedelta(days=1))

    assert result is None
    assert (await orchestrator.get_booking(booking.id)).status == BookingStatus.CONFIRMED
    assert (await seed.record(plan.id, check_in)).booked_rooms == 1


@pytest.mark.asyncio
async def test_expire_stale_bookings_batch(seed, orchestrator, plan, now):
    stale = await seed.booking(plan.id, guest_ref="old", created_at=now - timedelta(hours=2))
    fresh = await seed.booking(plan.id, guest_ref="new", created_at=now)

    result = await orchestrator.expire_stale_bookings(now, batch_size=10)

    assert (result.candidates, result.expired, result.skipped, result.failed) == (1, 1, 0, 0)
    assert (await orchestrator.get_booking(stale.id)).status == BookingStatus.EXPIRED
    assert (await orchestrator.get_booking(fresh.id)).status == BookingStatus.PENDING


@pytest.mark.parametrize("succeeded, status", [(True, "confirmed"), (False, "cancelled")])
@pytest.mark.asyncio
async def test_payment_result(orchestrator, plan, succeeded, status, booking_request):
    booking = await orchestrator.create_booking(booking_request(plan.id))

    updated = await orchestrator.handle_payment_result(booking.id, succeeded)

    assert updated.status == status
    if not succeeded:
        assert updated.cancellation_reason == PAYMENT_FAILED_REASON
    history = await orchestrator.audit.history(BOOKING_SUBJECT, booking.id)
    assert history[-1].actor == "payment"


@pytest.mark.asyncio
async def test_unknown_booking(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.get_booking(uuid4())
    with pytest.raises(NotFoundError):
        await orchestrator.get_booking_by_reference("BKNOTHERE1")
    with pytest.raises(NotFoundError):
        await orchestrator.cancel_booking(uuid4())


@pytest.mark.asyncio
async def test_booking_created_at_uses_clock(orchestrator, plan, clock, booking_request):
    clock.advance(timedelta(minutes=5))

    booking = await orchestrator.create_booking(booking_request(plan.id))

    assert booking.created_at == datetime(2025, 6, 1, 12, 5)
