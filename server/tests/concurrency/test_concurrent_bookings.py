"""Concurrency tests for booking operations."""

import asyncio
from datetime import timedelta

import pytest

from booking_engine.core.exceptions import InsufficientInventory, InvalidTransition
from booking_engine.models import BookingStatus
from booking_engine.repositories.memory import InMemoryUnitOfWork
from booking_engine.schemas.booking import CreateBookingRequest
from booking_engine.services.booking_orchestrator import BookingOrchestrator
from booking_engine.services.inventory_ledger import InventoryLedger


@pytest.fixture
def memory_seed(memory_uow_factory, clock, make_seeder):
    return make_seeder(memory_uow_factory, clock)


def new_orchestrator(store, pricing_config, clock) -> BookingOrchestrator:
    """One orchestrator per simulated request, each with its own unit of work."""
    return BookingOrchestrator(InMemoryUnitOfWork(store), pricing_config, clock, max_retries=5, backoff_seconds=0)


@pytest.mark.asyncio
async def test_concurrent_creates_never_overbook(
    store,
    memory_seed,
    pricing_config,
    clock,
    check_in,
    check_out,
):
    """Twenty guests race for three rooms; exactly three bookings succeed."""
    plan = await memory_seed.rate_plan(total_rooms=3)
    await memory_seed.stay_rates(plan.id)

    async def create(guest: int):
        orchestrator = new_orchestrator(store, pricing_config, clock)
        try:
            return await orchestrator.create_booking(CreateBookingRequest(
                guest_ref=f"guest-{guest}",
                rate_plan_id=plan.id,
                check_in=check_in,
                check_out=check_out,
                adults=1,
            ))
        except InsufficientInventory:
            return None

    results = await asyncio.gather(*(create(guest) for guest in range(20)))

    successes = [booking for booking in results if booking is not None]
    assert len(successes) == 3
    for night in (check_in, check_out - timedelta(days=1)):
        record = await memory_seed.record(plan.id, night)
        assert record.available_rooms == 0
        assert record.reserved_rooms == 3


@pytest.mark.asyncio
async def test_last_room_goes_to_one_guest(store, memory_seed, pricing_config, clock, check_in, check_out):
    plan = await memory_seed.rate_plan(total_rooms=5)
    await memory_seed.stay_rates(plan.id)
    await memory_seed.inventory(plan.id, check_in, total_rooms=5, booked=4)

    async def create(guest: int):
        orchestrator = new_orchestrator(store, pricing_config, clock)
        return await orchestrator.create_booking(CreateBookingRequest(
            guest_ref=f"guest-{guest}",
            rate_plan_id=plan.id,
            check_in=check_in,
            check_out=check_out,
            adults=1,
        ))

    results = await asyncio.gather(*(create(guest) for guest in range(10)), return_exceptions=True)

    assert sum(1 for result in results if not isinstance(result, Exception)) == 1
    assert all(isinstance(result, InsufficientInventory) for result in results if isinstance(result, Exception))
    record = await memory_seed.record(plan.id, check_in)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (0, 1, 4)


@pytest.mark.asyncio
async def test_confirm_races_expiry(store, memory_seed, pricing_config, clock, check_in, check_out):
    """Payment and the sweeper act on the same booking; exactly one wins."""
    plan = await memory_seed.rate_plan(total_rooms=2)
    await memory_seed.stay_rates(plan.id)
    booking = await new_orchestrator(store, pricing_config, clock).create_booking(CreateBookingRequest(
        guest_ref="guest-1",
        rate_plan_id=plan.id,
        check_in=check_in,
        check_out=check_out,
        adults=1,
    ))
    clock.advance(timedelta(hours=1))

    async def confirm():
        try:
            return await new_orchestrator(store, pricing_config, clock).confirm_booking(booking.id)
        except InvalidTransition:
            return None

    async def expire():
        return await new_orchestrator(store, pricing_config, clock).expire_booking(booking.id)

    confirmed, expired = await asyncio.gather(confirm(), expire())

    assert (confirmed is None) != (expired is None)
    final = await new_orchestrator(store, pricing_config, clock).get_booking(booking.id)
    record = await memory_seed.record(plan.id, check_in)
    if final.status == BookingStatus.CONFIRMED:
        assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (1, 0, 1)
    else:
        assert final.status == BookingStatus.EXPIRED
        assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (2, 0, 0)


@pytest.mark.asyncio
async def test_concurrent_cancellations_release_once(
    store,
    memory_seed,
    pricing_config,
    clock,
    check_in,
    check_out,
):
    plan = await memory_seed.rate_plan(total_rooms=2)
    await memory_seed.stay_rates(plan.id)
    booking = await new_orchestrator(store, pricing_config, clock).create_booking(CreateBookingRequest(
        guest_ref="guest-1",
        rate_plan_id=plan.id,
        check_in=check_in,
        check_out=check_out,
        adults=1,
        rooms=2,
    ))

    results = await asyncio.gather(*(
        new_orchestrator(store, pricing_config, clock).cancel_booking(booking.id, reason=f"attempt {n}")
        for n in range(5)
    ))

    assert all(result.status == BookingStatus.CANCELLED for result in results)
    record = await memory_seed.record(plan.id, check_in)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (2, 0, 0)


@pytest.mark.asyncio
async def test_concurrent_releases_keep_other_holds(
    memory_uow_factory,
    memory_seed,
    clock,
    check_in,
    check_out,
):
    """Releasing one booking twice at once must not take rooms held by another booking."""
    plan = await memory_seed.rate_plan(total_rooms=5)
    first = await memory_seed.booking(plan.id, guest_ref="first")
    second = await memory_seed.booking(plan.id, guest_ref="second")
    await InventoryLedger(memory_uow_factory(), clock).reserve(first.id)
    await InventoryLedger(memory_uow_factory(), clock).reserve(second.id)

    results = await asyncio.gather(
        InventoryLedger(memory_uow_factory(), clock).release(first.id),
        InventoryLedger(memory_uow_factory(), clock).release(first.id),
    )

    assert sorted(len(records) for records in results) == [0, 3]
    for night in (check_in, check_out - timedelta(days=1)):
        record = await memory_seed.record(plan.id, night)
        assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (4, 1, 0)


@pytest.mark.asyncio
async def test_concurrent_confirms_move_rooms_once(memory_uow_factory, memory_seed, clock, check_in):
    plan = await memory_seed.rate_plan(total_rooms=5)
    first = await memory_seed.booking(plan.id, guest_ref="first")
    second = await memory_seed.booking(plan.id, guest_ref="second")
    await InventoryLedger(memory_uow_factory(), clock).reserve(first.id)
    await InventoryLedger(memory_uow_factory(), clock).reserve(second.id)

    await asyncio.gather(*(
        InventoryLedger(memory_uow_factory(), clock).confirm_reservation(first.id)
        for _ in range(3)
    ))

    record = await memory_seed.record(plan.id, check_in)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (3, 1, 1)
