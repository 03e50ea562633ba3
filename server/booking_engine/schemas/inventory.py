"""Inventory-related Pydantic schemas."""

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import DateRange


class InventoryCalendarRequest(DateRange):
    rate_plan_id: UUID


class InventorySnapshot(BaseModel):
    """Room-night counts of one date, as sent to channel managers."""

    date: dt.date
    day_of_week: str
    total_rooms: int
    available_rooms: int
    reserved_rooms: int
    booked_rooms: int
    is_available: bool
    occupancy_rate: float


class OccupancyStatsRequest(DateRange):
    rate_plan_id: UUID


class OccupancyStats(BaseModel):
    """Room-night totals over a date range."""

    rate_plan_id: UUID
    start_date: dt.date
    end_date: dt.date
    total_room_nights: int
    available_room_nights: int
    reserved_room_nights: int
    booked_room_nights: int
    occupancy_percentage: float


class AdjustInventoryRequest(BaseModel):
    """Request schema for adjusting inventory."""

    rate_plan_id: UUID = Field(..., description="Rate plan to adjust")
    date: dt.date = Field(..., description="Night to adjust")
    delta: int = Field(..., description="Capacity change (positive or negative)")
    reason: str = Field(..., min_length=1, max_length=500, description="Reason for adjustment")

    @field_validator("delta")
    @classmethod
    def delta_not_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("delta must not be zero")
        return v


class LowInventoryAlertsRequest(BaseModel):
    threshold: int = Field(3, ge=1, description="Alert when available rooms are at or below this")
    days_ahead: int = Field(30, ge=0, le=366, description="Days after today to scan")


class LowInventoryAlert(BaseModel):
    """A night that still sells but is close to running out."""

    rate_plan_id: UUID
    rate_plan_name: str
    resort_id: UUID
    room_type_id: UUID
    date: dt.date
    available_rooms: int
    total_rooms: int


class InventoryTotalUpdate(BaseModel):
    date: dt.date
    total_rooms: int = Field(..., ge=0, description="New total rooms for the night")


class BulkUpdateInventoryRequest(BaseModel):
    """Set the total rooms of many nights at once."""

    rate_plan_id: UUID = Field(..., description="Rate plan to update")
    updates: list[InventoryTotalUpdate] = Field(..., min_length=1, max_length=366)
    reason: str = Field(..., min_length=1, max_length=500, description="Reason for the update")
