"""Seasonal rate model definition."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class SeasonalRate(Base):
    """Nightly price for a rate plan over an inclusive date range."""

    __tablename__ = "seasonal_rates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    rate_plan_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    nightly_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_stay: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_stay: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_seasonal_rate_range_ordered"),
        CheckConstraint("nightly_price >= 0", name="ck_seasonal_rate_price_non_negative"),
        CheckConstraint("min_stay >= 1", name="ck_seasonal_rate_min_stay_positive"),
    )

    def covers(self, night: date) -> bool:
        return self.start_date <= night <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and start <= self.end_date

    def __repr__(self) -> str:
        return f"<SeasonalRate(name='{self.name}', {self.start_date}..{self.end_date}, price={self.nightly_price})>"
