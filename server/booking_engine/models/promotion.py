"""Promotion and promotion redemption model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class DiscountType(str, Enum):
    """How the discount value is interpreted."""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class PromotionTarget(str, Enum):
    """Whether the discount is computed once on the total or per night."""
    TOTAL = "total"
    PER_NIGHT = "per_night"


class Promotion(Base):
    """Promotion code with eligibility rules and usage limits."""

    __tablename__ = "promotions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    applies_to: Mapped[PromotionTarget] = mapped_column(String(20), nullable=False, default=PromotionTarget.TOTAL)

    # Validity window (inclusive) and stay rules
    valid_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_days: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    blackout_dates: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    min_nights: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    min_booking_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Usage limits
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_uses_per_customer: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Scope allow-lists, empty means every resort / room type / rate plan
    applicable_resorts: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    applicable_room_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    applicable_rate_plans: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="ck_promotion_discount_non_negative"),
        CheckConstraint("current_uses >= 0", name="ck_promotion_current_uses_non_negative"),
        CheckConstraint("valid_until >= valid_from", name="ck_promotion_window_ordered"),
    )

    def __repr__(self) -> str:
        return f"<Promotion(code='{self.code}', type={self.discount_type}, value={self.discount_value})>"


class PromotionRedemption(Base):
    """One use of a promotion by a confirmed booking."""

    __tablename__ = "promotion_redemptions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    promotion_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    booking_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, unique=True)
    guest_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
