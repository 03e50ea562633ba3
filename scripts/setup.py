#!/usr/bin/env python3
"""Setup script for the resort booking engine."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from booking_engine.core.clock import utcnow
from booking_engine.core.database import async_session_factory, close_db
from booking_engine.models import DiscountType, Promotion, PromotionTarget, RatePlan, SeasonalRate
from booking_engine.repositories.sql import SqlAlchemyUnitOfWork

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_RESORT_ID = uuid4()


def setup_database():
    """Bring the schema up to the latest migration."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


def sample_rates(rate_plan_id, year: int, now) -> list[SeasonalRate]:
    """Low, high and shoulder seasons covering the whole year."""
    seasons = [
        ("Low season", date(year, 1, 1), date(year, 5, 31), "95.00", 1),
        ("High season", date(year, 6, 1), date(year, 8, 31), "145.00", 2),
        ("Shoulder season", date(year, 9, 1), date(year, 12, 31), "110.00", 1),
    ]
    return [
        SeasonalRate(
            id=uuid4(),
            rate_plan_id=rate_plan_id,
            name=name,
            start_date=start,
            end_date=end,
            nightly_price=Decimal(price),
            min_stay=min_stay,
            max_stay=None,
            created_at=now,
            updated_at=now,
        )
        for name, start, end, price, min_stay in seasons
    ]


async def create_sample_data():
    """Create a rate plan, its seasonal rates and one promotion."""
    logger.info("Creating sample data...")
    now = utcnow()

    async with SqlAlchemyUnitOfWork(async_session_factory) as uow:
        if await uow.rate_plans.list_active():
            logger.info("Sample data already exists, skipping...")
            return

        plan = RatePlan(
            id=uuid4(),
            resort_id=SAMPLE_RESORT_ID,
            room_type_id=uuid4(),
            name="Ocean View King",
            total_rooms=12,
            max_occupancy=3,
            refundable=True,
            breakfast_included=True,
            deposit_required=False,
            active=True,
            created_at=now,
            updated_at=now,
        )
        await uow.rate_plans.add(plan)

        for rate in sample_rates(plan.id, now.year, now):
            await uow.rates.add(rate)

        await uow.promotions.add(Promotion(
            id=uuid4(),
            code="WELCOME10",
            name="Welcome offer",
            description="10% off any stay of two nights or more",
            discount_type=DiscountType.PERCENTAGE.value,
            discount_value=Decimal("10"),
            applies_to=PromotionTarget.TOTAL.value,
            valid_from=now,
            valid_until=now + timedelta(days=365),
            valid_days=[],
            blackout_dates=[],
            min_nights=2,
            min_booking_amount=None,
            max_discount_amount=Decimal("150.00"),
            max_uses=500,
            max_uses_per_customer=1,
            current_uses=0,
            applicable_resorts=[],
            applicable_room_types=[],
            applicable_rate_plans=[],
            active=True,
            created_at=now,
            updated_at=now,
        ))

    logger.info("Sample data created for rate plan %s", plan.id)


async def main():
    """Main setup function."""
    logger.info("Starting resort booking engine setup...")

    # Alembic's async env runs its own event loop
    await asyncio.to_thread(setup_database)

    try:
        await create_sample_data()
    finally:
        await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn booking_engine.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
