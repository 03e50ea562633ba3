"""Unit tests for the inventory ledger."""

from datetime import date, timedelta

import pytest

from booking_engine.core.exceptions import CapacityConflict, ConflictError, InsufficientInventory, ValidationError
from booking_engine.models import BookingStatus
from booking_engine.schemas.inventory import InventoryTotalUpdate
from booking_engine.services.inventory_ledger import INVENTORY_SUBJECT, InventoryLedger, inventory_subject_id


def assert_balanced(record):
    assert record.available_rooms + record.reserved_rooms + record.booked_rooms == record.total_rooms
    assert min(record.available_rooms, record.reserved_rooms, record.booked_rooms) >= 0


@pytest.fixture
def second_night(check_in):
    return check_in + timedelta(days=1)


@pytest.fixture
def ledger(uow_factory, clock):
    return InventoryLedger(uow_factory(), clock)


@pytest.mark.asyncio
async def test_reserve_holds_rooms_on_every_night(seed, ledger, second_night, check_in):
    plan = await seed.rate_plan(total_rooms=5)
    booking = await seed.booking(plan.id, rooms=2)

    records = await ledger.reserve(booking.id, actor="guest-1")

    assert [record.date for record in records] == [check_in, second_night, check_in + timedelta(days=2)]
    for night in (check_in, second_night):
        record = await seed.record(plan.id, night)
        assert record.available_rooms == 3
        assert record.reserved_rooms == 2
        assert_balanced(record)

    history = await ledger.audit.history(INVENTORY_SUBJECT, inventory_subject_id(plan.id, check_in))
    assert [entry.action for entry in history] == ["inventory_reserved"]
    assert history[0].details["before"]["available"] == 5
    assert history[0].details["after"]["reserved"] == 2
    assert history[0].details["booking_id"] == str(booking.id)


@pytest.mark.asyncio
async def test_reserve_fails_when_a_later_night_is_short(seed, ledger, uow_factory, second_night, check_in):
    """Two rooms wanted, night one has three, night two has one: nothing changes."""
    plan = await seed.rate_plan(total_rooms=3)
    await seed.inventory(plan.id, check_in, total_rooms=3)
    await seed.inventory(plan.id, second_night, total_rooms=1)
    booking = await seed.booking(plan.id, check_in=check_in, check_out=second_night + timedelta(days=1), rooms=2)

    with pytest.raises(InsufficientInventory) as exc_info:
        await ledger.reserve(booking.id)

    assert exc_info.value.night == second_night
    assert exc_info.value.requested == 2
    assert exc_info.value.available == 1

    first = await seed.record(plan.id, check_in)
    assert first.available_rooms == 3
    assert first.reserved_rooms == 0
    async with uow_factory() as uow:
        assert await uow.allocations.list_for_booking(booking.id) == []


@pytest.mark.asyncio
async def test_reserve_fails_on_a_closed_night(seed, ledger, second_night, check_in):
    plan = await seed.rate_plan(total_rooms=3)
    await seed.inventory(plan.id, second_night, total_rooms=0)
    booking = await seed.booking(plan.id, check_in=check_in, check_out=second_night + timedelta(days=1))

    with pytest.raises(InsufficientInventory) as exc_info:
        await ledger.reserve(booking.id)

    assert exc_info.value.available == 0
    assert exc_info.value.status_code == 409
    # The first night was opened inside the failed unit of work and never stored
    assert await seed.record(plan.id, check_in) is None


@pytest.mark.asyncio
async def test_reserve_twice_changes_nothing(seed, ledger, check_in):
    plan = await seed.rate_plan(total_rooms=5)
    booking = await seed.booking(plan.id)

    await ledger.reserve(booking.id)
    again = await ledger.reserve(booking.id)

    assert len(again) == 3
    record = await seed.record(plan.id, check_in)
    assert record.reserved_rooms == 1
    assert record.available_rooms == 4


@pytest.mark.asyncio
async def test_confirm_then_release_booked_keeps_counts_balanced(seed, ledger, second_night):
    plan = await seed.rate_plan(total_rooms=4)
    booking = await seed.booking(plan.id, rooms=2)
    await ledger.reserve(booking.id)

    await ledger.confirm_reservation(booking.id)
    record = await seed.record(plan.id, second_night)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (2, 0, 2)
    assert_balanced(record)

    # Confirming again finds no reserved allocations
    assert await ledger.confirm_reservation(booking.id) == []

    await ledger.release_booked(booking.id)
    record = await seed.record(plan.id, second_night)
    assert (record.available_rooms, record.reserved_rooms, record.booked_rooms) == (4, 0, 0)
    assert_balanced(record)


@pytest.mark.asyncio
async def test_release_returns_reserved_rooms(seed, ledger, check_in):
    plan = await seed.rate_plan(total_rooms=4)
    booking = await seed.booking(plan.id)
    await ledger.reserve(booking.id)

    released = await ledger.release(booking.id, actor="reservation_sweeper")

    assert len(released) == 3
    record = await seed.record(plan.id, check_in)
    assert record.available_rooms == 4
    assert record.reserved_rooms == 0
    assert await ledger.release(booking.id) == []

    history = await ledger.audit.history(INVENTORY_SUBJECT, inventory_subject_id(plan.id, check_in))
    assert [entry.action for entry in history] == ["inventory_reserved", "inventory_released"]
    assert history[-1].actor == "reservation_sweeper"


@pytest.mark.asyncio
async def test_reserve_requires_pending_booking(seed, ledger, uow_factory, now):
    plan = await seed.rate_plan()
    booking = await seed.booking(plan.id)
    async with uow_factory() as uow:
        stored = await uow.bookings.get_for_update(booking.id)
        stored.transition_to(BookingStatus.CANCELLED, now)

    with pytest.raises(ConflictError):
        await ledger.reserve(booking.id)


@pytest.mark.asyncio
async def test_available_rooms_defaults_to_plan_size(seed, ledger, second_night, check_in, check_out):
    plan = await seed.rate_plan(total_rooms=6)
    await seed.inventory(plan.id, second_night, total_rooms=6, reserved=2, booked=1)

    assert await ledger.available_rooms(plan.id, check_in, check_out) == 3
    assert await ledger.check_availability(plan.id, check_in, check_out, rooms_requested=3)
    assert not await ledger.check_availability(plan.id, check_in, check_out, rooms_requested=4)


@pytest.mark.asyncio
async def test_adjust_inventory(seed, ledger, check_in):
    plan = await seed.rate_plan(total_rooms=5)
    await seed.inventory(plan.id, check_in, total_rooms=5, reserved=1, booked=2)

    record = await ledger.adjust_inventory(plan.id, check_in, -2, "pool renovation", actor="revenue-manager")

    assert record.total_rooms == 3
    assert record.available_rooms == 0
    assert_balanced(record)

    with pytest.raises(CapacityConflict):
        await ledger.adjust_inventory(plan.id, check_in, -1, "leak", actor="revenue-manager")

    history = await ledger.audit.history(INVENTORY_SUBJECT, inventory_subject_id(plan.id, check_in))
    assert [entry.action for entry in history] == ["inventory_adjusted"]
    assert history[0].details["reason"] == "pool renovation"
    assert history[0].details["delta"] == -2
    assert history[0].actor == "revenue-manager"


@pytest.mark.asyncio
async def test_adjust_inventory_opens_missing_night(seed, ledger):
    plan = await seed.rate_plan(total_rooms=5)

    record = await ledger.adjust_inventory(plan.id, date(2025, 8, 1), 2, "overflow wing", actor="revenue-manager")

    assert record.total_rooms == 7
    assert record.available_rooms == 7


@pytest.mark.asyncio
async def test_calendar_and_occupancy_stats(seed, ledger, second_night, check_in):
    plan = await seed.rate_plan(total_rooms=4)
    await seed.inventory(plan.id, check_in, total_rooms=4, reserved=1, booked=1)

    calendar = await ledger.calendar(plan.id, check_in, second_night)

    assert [day.date for day in calendar] == [check_in, second_night]
    assert calendar[0].day_of_week == "Thursday"
    assert calendar[0].occupancy_rate == 0.5
    assert calendar[0].is_available
    assert calendar[1].available_rooms == 4
    assert calendar[1].occupancy_rate == 0.0

    stats = await ledger.occupancy_stats(plan.id, check_in, second_night)

    assert stats.total_room_nights == 8
    assert stats.reserved_room_nights == 1
    assert stats.booked_room_nights == 1
    assert stats.available_room_nights == 6
    assert stats.occupancy_percentage == 25.0


@pytest.mark.asyncio
async def test_occupancy_rate_of_untouched_night(seed, ledger, check_in):
    plan = await seed.rate_plan()

    assert await ledger.occupancy_rate(plan.id, check_in) == 0.0


@pytest.mark.asyncio
async def test_low_inventory_alerts_span_rate_plans(seed, ledger):
    """Today is 1 June; only selling nights within the window at or below the threshold alert."""
    garden = await seed.rate_plan(total_rooms=5, name="Garden King")
    ocean = await seed.rate_plan(total_rooms=5, name="Ocean Suite")
    await seed.inventory(garden.id, date(2025, 6, 5), total_rooms=5, reserved=3)
    await seed.inventory(garden.id, date(2025, 6, 6), total_rooms=5, booked=5)
    await seed.inventory(garden.id, date(2025, 5, 31), total_rooms=5, booked=4)
    await seed.inventory(garden.id, date(2025, 7, 10), total_rooms=5, booked=4)
    await seed.inventory(ocean.id, date(2025, 6, 3), total_rooms=5, booked=2)
    await seed.inventory(ocean.id, date(2025, 6, 4), total_rooms=5, booked=1)

    alerts = await ledger.low_inventory_alerts()

    assert [(alert.date, alert.rate_plan_name, alert.available_rooms) for alert in alerts] == [
        (date(2025, 6, 3), "Ocean Suite", 3),
        (date(2025, 6, 5), "Garden King", 2),
    ]
    assert alerts[0].rate_plan_id == ocean.id
    assert alerts[0].resort_id == ocean.resort_id
    assert alerts[0].room_type_id == ocean.room_type_id
    assert alerts[1].total_rooms == 5

    further = await ledger.low_inventory_alerts(threshold=1, days_ahead=45)

    assert [(alert.date, alert.available_rooms) for alert in further] == [(date(2025, 7, 10), 1)]


@pytest.mark.asyncio
async def test_bulk_update_inventory(seed, ledger, check_in, second_night):
    plan = await seed.rate_plan(total_rooms=5)
    await seed.inventory(plan.id, check_in, total_rooms=5, reserved=1, booked=1)
    third_night = second_night + timedelta(days=1)

    records = await ledger.bulk_update_inventory(
        plan.id,
        [
            InventoryTotalUpdate(date=second_night, total_rooms=8),
            InventoryTotalUpdate(date=check_in, total_rooms=3),
            InventoryTotalUpdate(date=third_night, total_rooms=5),
        ],
        "festival allotment",
        actor="revenue-manager",
    )

    assert [record.date for record in records] == [check_in, second_night, third_night]
    assert [(record.total_rooms, record.available_rooms) for record in records] == [(3, 1), (8, 8), (5, 5)]
    for record in records:
        assert_balanced(record)
    assert (await seed.record(plan.id, second_night)).total_rooms == 8

    history = await ledger.audit.history(INVENTORY_SUBJECT, inventory_subject_id(plan.id, check_in))
    assert [entry.action for entry in history] == ["inventory_bulk_updated"]
    assert history[0].details["delta"] == -2
    assert history[0].details["reason"] == "festival allotment"
    assert history[0].actor == "revenue-manager"
    # The third night already had five rooms
    assert await ledger.audit.history(INVENTORY_SUBJECT, inventory_subject_id(plan.id, third_night)) == []


@pytest.mark.asyncio
async def test_bulk_update_is_all_or_nothing(seed, ledger, check_in, second_night):
    plan = await seed.rate_plan(total_rooms=5)
    await seed.inventory(plan.id, second_night, total_rooms=5, booked=4)

    with pytest.raises(CapacityConflict) as exc_info:
        await ledger.bulk_update_inventory(
            plan.id,
            [
                InventoryTotalUpdate(date=check_in, total_rooms=2),
                InventoryTotalUpdate(date=second_night, total_rooms=3),
            ],
            "renovation",
            actor="revenue-manager",
        )

    assert exc_info.value.code == "CAPACITY_CONFLICT"
    assert await seed.record(plan.id, check_in) is None
    assert (await seed.record(plan.id, second_night)).total_rooms == 5


@pytest.mark.asyncio
async def test_bulk_update_rejects_repeated_dates(seed, ledger, check_in):
    plan = await seed.rate_plan(total_rooms=5)

    with pytest.raises(ValidationError) as exc_info:
        await ledger.bulk_update_inventory(
            plan.id,
            [
                InventoryTotalUpdate(date=check_in, total_rooms=2),
                InventoryTotalUpdate(date=check_in, total_rooms=3),
            ],
            "typo",
            actor="revenue-manager",
        )

    assert exc_info.value.problem_details["errors"] == {"dates": [check_in.isoformat()]}
    assert await seed.record(plan.id, check_in) is None
