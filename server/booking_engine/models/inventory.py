"""Inventory record and allocation model definitions."""

import datetime as dt
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class AllocationStatus(str, Enum):
    """Lifecycle of the rooms a booking holds on one night."""
    RESERVED = "reserved"
    BOOKED = "booked"
    RELEASED = "released"


class InventoryRecord(Base):
    """Room-night counts for one rate plan on one date.

    ``available + reserved + booked == total`` holds after every committed change.
    """

    __tablename__ = "inventory_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    rate_plan_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    available_rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    reserved_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    booked_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("rate_plan_id", "date", name="uq_inventory_rate_plan_date"),
        CheckConstraint("total_rooms >= 0", name="ck_inventory_total_non_negative"),
        CheckConstraint("available_rooms >= 0", name="ck_inventory_available_non_negative"),
        CheckConstraint("reserved_rooms >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("booked_rooms >= 0", name="ck_inventory_booked_non_negative"),
        CheckConstraint(
            "available_rooms + reserved_rooms + booked_rooms = total_rooms",
            name="ck_inventory_counts_sum_to_total",
        ),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def occupancy_rate(self) -> float:
        """Share of rooms held or sold, 0.0 when the date has no rooms."""
        if self.total_rooms <= 0:
            return 0.0
        return (self.reserved_rooms + self.booked_rooms) / self.total_rooms

    def counts(self) -> dict[str, int]:
        return {
            "total": self.total_rooms,
            "available": self.available_rooms,
            "reserved": self.reserved_rooms,
            "booked": self.booked_rooms,
        }

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord(rate_plan_id={self.rate_plan_id}, date={self.date}, "
            f"available={self.available_rooms}, reserved={self.reserved_rooms}, booked={self.booked_rooms})>"
        )


class InventoryAllocation(Base):
    """Rooms one booking holds on one night."""

    __tablename__ = "inventory_allocations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    rate_plan_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[AllocationStatus] = mapped_column(String(20), nullable=False, index=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "date", name="uq_allocation_booking_date"),
        CheckConstraint("rooms > 0", name="ck_allocation_rooms_positive"),
    )

    def __repr__(self) -> str:
        return f"<InventoryAllocation(booking_id={self.booking_id}, date={self.date}, status={self.status})>"
