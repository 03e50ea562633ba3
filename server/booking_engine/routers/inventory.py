"""Inventory router for calendars, occupancy, alerts and capacity changes."""

import logging

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.dependencies import get_clock, get_current_user, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.inventory import (
    AdjustInventoryRequest,
    BulkUpdateInventoryRequest,
    InventoryCalendarRequest,
    InventorySnapshot,
    LowInventoryAlert,
    LowInventoryAlertsRequest,
    OccupancyStats,
    OccupancyStatsRequest,
)
from ..services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/inventory", tags=["inventory"])

UOW_DEPENDENCY = Depends(get_unit_of_work)
CLOCK_DEPENDENCY = Depends(get_clock)
AUTH_DEPENDENCY = Depends(get_current_user)


def get_ledger(
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> InventoryLedger:
    return InventoryLedger(uow, clock)


LEDGER_DEPENDENCY = Depends(get_ledger)


@router.post("/calendar", response_model=list[InventorySnapshot])
async def calendar(
    request: InventoryCalendarRequest,
    ledger: InventoryLedger = LEDGER_DEPENDENCY,
) -> list[InventorySnapshot]:
    """Room counts for every date of the range, inclusive."""
    return await ledger.calendar(request.rate_plan_id, request.start_date, request.end_date)


@router.post("/stats", response_model=OccupancyStats)
async def occupancy_stats(
    request: OccupancyStatsRequest,
    ledger: InventoryLedger = LEDGER_DEPENDENCY,
) -> OccupancyStats:
    """Room-night totals and occupancy percentage over the range, inclusive."""
    return await ledger.occupancy_stats(request.rate_plan_id, request.start_date, request.end_date)


@router.post("/adjust", response_model=InventorySnapshot)
async def adjust_inventory(
    request: AdjustInventoryRequest,
    ledger: InventoryLedger = LEDGER_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> InventorySnapshot:
    """
    Change the number of rooms sold on one night.

    Requires Bearer authentication; the token subject is recorded as the actor.
    Capacity can never drop below the rooms already reserved or booked.
    """
    await ledger.adjust_inventory(
        request.rate_plan_id,
        request.date,
        request.delta,
        request.reason,
        actor=current_user["user_id"],
    )
    snapshots = await ledger.calendar(request.rate_plan_id, request.date, request.date)
    return snapshots[0]


@router.post("/alerts", response_model=list[LowInventoryAlert])
async def low_inventory_alerts(
    request: LowInventoryAlertsRequest,
    ledger: InventoryLedger = LEDGER_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> list[LowInventoryAlert]:
    """Upcoming nights of any rate plan that are close to selling out."""
    return await ledger.low_inventory_alerts(request.threshold, request.days_ahead)


@router.post("/bulk-update", response_model=list[InventorySnapshot])
async def bulk_update_inventory(
    request: BulkUpdateInventoryRequest,
    ledger: InventoryLedger = LEDGER_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> list[InventorySnapshot]:
    """
    Set the total rooms of several nights in one transaction.

    Requires Bearer authentication. Either every night is updated or none is.
    """
    records = await ledger.bulk_update_inventory(
        request.rate_plan_id,
        request.updates,
        request.reason,
        actor=current_user["user_id"],
    )
    return [
        InventorySnapshot(
            date=record.date,
            day_of_week=record.date.strftime("%A"),
            total_rooms=record.total_rooms,
            available_rooms=record.available_rooms,
            reserved_rooms=record.reserved_rooms,
            booked_rooms=record.booked_rooms,
            is_available=record.available_rooms > 0,
            occupancy_rate=round(record.occupancy_rate, 4),
        )
        for record in records
    ]
