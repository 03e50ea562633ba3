"""Booking model and status state machine."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base
from ..core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.EXPIRED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}


class Booking(Base):
    """Guest booking for a number of rooms on one rate plan over a stay."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    reference: Mapped[str] = mapped_column(String(16), nullable=False, unique=True, index=True)
    guest_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    rate_plan_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Stay
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    adults: Mapped[int] = mapped_column(Integer, nullable=False)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Price at booking time
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    taxes: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    promotion_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    promotion_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    price_breakdown: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[BookingStatus] = mapped_column(String(20), nullable=False, index=True)
    refund_due: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_booking_stay_ordered"),
        CheckConstraint("rooms > 0", name="ck_booking_rooms_positive"),
        CheckConstraint("adults > 0", name="ck_booking_adults_positive"),
        CheckConstraint("children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("length(guest_ref) > 0", name="ck_booking_guest_ref_not_empty"),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def current_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def guests(self) -> int:
        return self.adults + self.children

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.current_status]

    def transition_to(self, target: BookingStatus, at: datetime) -> BookingStatus:
        """
        Move the booking to ``target`` and stamp the matching timestamp.

        Returns:
            The status the booking was in before the move

        Raises:
            InvalidTransition: If the transition table forbids the move
        """
        previous = self.current_status
        if not self.can_transition_to(target):
            raise InvalidTransition(self.id, previous.value, BookingStatus(target).value)

        self.status = BookingStatus(target).value
        self.updated_at = at
        if target == BookingStatus.CONFIRMED:
            self.confirmed_at = at
        elif target == BookingStatus.CANCELLED:
            self.cancelled_at = at
        elif target == BookingStatus.EXPIRED:
            self.expired_at = at
        return previous

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reference='{self.reference}', status={self.status}, "
            f"check_in={self.check_in}, check_out={self.check_out})>"
        )
