"""Rate plan model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class RatePlan(Base):
    """Sellable combination of a room type and a rate plan at one resort.

    Resort and room type live in an external catalog, so they are plain references.
    """

    __tablename__ = "rate_plans"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Catalog references
    resort_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    room_type_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    max_occupancy: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    # Plan terms
    refundable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    breakfast_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("total_rooms >= 0", name="ck_rate_plan_total_rooms_non_negative"),
        CheckConstraint("max_occupancy > 0", name="ck_rate_plan_max_occupancy_positive"),
    )

    def __repr__(self) -> str:
        return f"<RatePlan(id={self.id}, name='{self.name}', total_rooms={self.total_rooms})>"
